from typing import Optional

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Missing/malformed field, out-of-range value or bad date format."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotReadyError(HTTPException):
    def __init__(self, detail: str = "数据库连接未就绪"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "路由不存在"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class StoreError(HTTPException):
    """Query or connection failure in the report store.

    `cause` keeps the driver message for development responses; the public
    detail stays generic.
    """

    def __init__(self, detail: str = "服务器内部错误", cause: Optional[str] = None):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
        self.cause = cause


class BroadcastError(Exception):
    """Send failure on a single realtime connection. Never reaches HTTP callers."""

    def __init__(self, connection_id: str, reason: str):
        super().__init__(f"delivery to {connection_id} failed: {reason}")
        self.connection_id = connection_id
        self.reason = reason

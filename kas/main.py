# kas/main.py
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kas.config import Settings, get_settings
from kas.core.errors import NotFoundError, StoreError
from kas.database import Database
from kas.realtime.broadcaster import Broadcaster
from kas.routers import classes, realtime, reports
from kas.services.headteachers import HeadteacherDirectory
from kas.utils.logging import configure_logging

logger = logging.getLogger(__name__)

LOCAL_ORIGIN_REGEX = r"^http://(localhost|127\.0\.0\.1)(:\d+)?$"


def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and not isinstance(exc, NotFoundError):
            return _error(404, NotFoundError().detail)
        cause = getattr(exc, "cause", None) if isinstance(exc, StoreError) else None
        return _error(exc.status_code, str(exc.detail), cause if settings.is_development else None)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
        logger.info("Rejected %s %s: invalid %s", request.method, request.url.path, fields)
        return _error(400, f"请求参数错误: {', '.join(f for f in fields if f) or 'body'}")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "服务器内部错误", str(exc) if settings.is_development else None)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database: Database = app.state.database
        broadcaster: Broadcaster = app.state.broadcaster
        await database.start()
        await broadcaster.start()
        logger.info("KAS backend ready (%s)", settings.APP_ENV)
        try:
            yield
        finally:
            await broadcaster.stop()
            await database.stop()

    app = FastAPI(title="KAS - Class Report Service", version="1.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.database = Database(settings)
    app.state.broadcaster = Broadcaster(
        heartbeat_interval=settings.HEARTBEAT_INTERVAL_SECONDS,
        send_timeout=settings.WS_SEND_TIMEOUT_SECONDS,
    )
    app.state.directory = HeadteacherDirectory(settings.CLASS_DATA_FILE, settings.DEFAULT_HEADTEACHER_FORMAT)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=LOCAL_ORIGIN_REGEX,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    register_exception_handlers(app, settings)

    # Include Routers
    app.include_router(reports.router)
    app.include_router(classes.router)
    app.include_router(realtime.router)

    @app.get("/")
    def read_root():
        return {"message": "KAS Backend", "version": app.version}

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected" if app.state.database.is_ready else "disconnected",
            "realtimeClients": app.state.broadcaster.connected_count(),
        }

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    uvicorn.run("kas.main:app", host=settings.HOST, port=settings.PORT, log_config=None)


app = create_app()

if __name__ == "__main__":
    main()

import json
from typing import Any, Dict

from fastapi import WebSocket
from starlette.websockets import WebSocketState


class WebSocketTransport:
    """Adapts a Starlette WebSocket to the registry's Transport protocol."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send_json(self, data: Dict[str, Any]) -> None:
        await self.websocket.send_text(json.dumps(data, ensure_ascii=False))

    async def close(self, code: int = 1000) -> None:
        if self.websocket.application_state != WebSocketState.DISCONNECTED:
            await self.websocket.close(code=code)

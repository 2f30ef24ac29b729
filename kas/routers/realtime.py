from fastapi import APIRouter, WebSocket

from kas.realtime.broadcaster import Broadcaster
from kas.realtime.transport import WebSocketTransport

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_feed(websocket: WebSocket):
    """
    Live report feed. Clients send {"type": "subscribe"} to start receiving
    new-report events and answer every {"type": "ping"} with {"type": "pong"}.
    """
    broadcaster: Broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    connection = await broadcaster.connect(WebSocketTransport(websocket))
    try:
        # messages from one client are handled strictly in arrival order
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await broadcaster.handle_message(connection, raw)
    finally:
        broadcaster.disconnect(connection)

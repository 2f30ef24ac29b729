import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from kas.schemas.realtime import DEFAULT_CHANNEL


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


class Transport(Protocol):
    async def send_json(self, data: Dict[str, Any]) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


def new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Connection:
    transport: Transport
    connection_id: str = field(default_factory=new_connection_id)
    is_alive: bool = True
    subscribed: bool = False
    channels: Tuple[str, ...] = ()
    state: ConnectionState = ConnectionState.CONNECTED

    def subscribe(self, channels: Optional[Iterable[str]] = None) -> List[str]:
        if self.state is ConnectionState.CLOSED:
            raise RuntimeError(f"connection {self.connection_id} is closed")
        if channels is None:
            channels = [DEFAULT_CHANNEL]
        # dedupe, keep client order
        self.channels = tuple(dict.fromkeys(channels))
        self.subscribed = True
        self.state = ConnectionState.SUBSCRIBED
        return list(self.channels)

    def accepts(self, channel: str) -> bool:
        return self.state is ConnectionState.SUBSCRIBED and channel in self.channels

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED
        self.is_alive = False


class ConnectionRegistry:
    """Live connections keyed by id.

    Callers that await while walking the registry must iterate snapshot(),
    since connects and closes land between awaits.
    """

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def add(self, connection: Connection) -> Connection:
        self._connections[connection.connection_id] = connection
        return connection

    def remove(self, connection_id: str) -> Optional[Connection]:
        return self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def snapshot(self) -> List[Connection]:
        return list(self._connections.values())

    def subscribers(self, channel: str) -> List[Connection]:
        return [c for c in self.snapshot() if c.accepts(channel)]

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.snapshot())

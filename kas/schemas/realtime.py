from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

DEFAULT_CHANNEL = "reports"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# Client -> server

class SubscribeMessage(BaseModel):
    type: Literal["subscribe"]
    channels: Optional[List[str]] = None  # None means the default channel


class PongMessage(BaseModel):
    type: Literal["pong"]


InboundMessage = Annotated[Union[SubscribeMessage, PongMessage], Field(discriminator="type")]

inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes]) -> Union[SubscribeMessage, PongMessage]:
    """Raises pydantic.ValidationError on bad JSON, unknown type or bad shape."""
    return inbound_adapter.validate_json(raw)


# Server -> client

class ConnectedEvent(BaseModel):
    type: Literal["connected"] = "connected"
    clientId: str
    message: str = '已连接到实时通报系统，收到 ping 后请回复 {"type": "pong"}'
    time: datetime = Field(default_factory=_now)


class SubscribedEvent(BaseModel):
    type: Literal["subscribed"] = "subscribed"
    channels: List[str]
    message: str = ""


class NewReportEvent(BaseModel):
    type: Literal["new-report"] = "new-report"
    channel: str = DEFAULT_CHANNEL
    data: Dict[str, Any]
    time: datetime = Field(default_factory=_now)


class PingEvent(BaseModel):
    type: Literal["ping"] = "ping"
    time: datetime = Field(default_factory=_now)


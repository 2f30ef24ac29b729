"""
Realtime fan-out of new reports to WebSocket listeners.

Connections move CONNECTED -> SUBSCRIBED -> CLOSED. Delivery is best effort:
at most once per connection, no retry, nothing queued for connections that
are not subscribed yet.

Liveness: every `heartbeat_interval` seconds each connection is either
terminated (it never answered the previous ping) or flagged not-alive and
pinged. A pong before the next sweep keeps it.
"""
import asyncio
import contextlib
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from kas.core.errors import BroadcastError
from kas.realtime.registry import Connection, ConnectionRegistry, Transport
from kas.schemas.realtime import (
    DEFAULT_CHANNEL,
    ConnectedEvent,
    NewReportEvent,
    PingEvent,
    PongMessage,
    SubscribedEvent,
    SubscribeMessage,
    parse_inbound,
)

logger = logging.getLogger(__name__)

# 1001 "going away"
TERMINATE_CODE = 1001


class Broadcaster:
    def __init__(
        self,
        heartbeat_interval: float = 30.0,
        send_timeout: float = 5.0,
        registry: Optional[ConnectionRegistry] = None,
    ):
        self.heartbeat_interval = heartbeat_interval
        self.send_timeout = send_timeout
        self.registry = registry if registry is not None else ConnectionRegistry()
        self._heartbeat_task: Optional[asyncio.Task] = None

    # lifecycle

    async def start(self) -> None:
        if self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            logger.info("Realtime broadcaster started (heartbeat every %ss)", self.heartbeat_interval)

    async def stop(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None
        for connection in self.registry.snapshot():
            await self.terminate(connection, "server shutdown")
        logger.info("Realtime broadcaster stopped")

    @property
    def running(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    # connection events

    async def connect(self, transport: Transport) -> Connection:
        connection = self.registry.add(Connection(transport=transport))
        logger.info("Realtime client %s connected", connection.connection_id)
        # handshake ack only; the client is not subscribed yet
        await self._deliver(connection, ConnectedEvent(clientId=connection.connection_id).model_dump(mode="json"))
        return connection

    async def handle_message(self, connection: Connection, raw) -> None:
        try:
            message = parse_inbound(raw)
        except PydanticValidationError as e:
            logger.warning(
                "Ignoring malformed message from %s: %s",
                connection.connection_id,
                e.errors(include_url=False),
            )
            return

        if isinstance(message, SubscribeMessage):
            await self.subscribe(connection, message.channels)
        elif isinstance(message, PongMessage):
            self.handle_pong(connection)

    def handle_pong(self, connection: Connection) -> None:
        connection.is_alive = True

    async def subscribe(self, connection: Connection, channels: Optional[Iterable[str]] = None) -> List[str]:
        subscribed = connection.subscribe(channels)
        logger.info("Realtime client %s subscribed to %s", connection.connection_id, subscribed)
        await self._deliver(
            connection,
            SubscribedEvent(channels=subscribed, message=f"已订阅频道: {', '.join(subscribed)}").model_dump(mode="json"),
        )
        return subscribed

    def disconnect(self, connection: Connection) -> None:
        """Transport closed. Safe to call more than once."""
        if self.registry.remove(connection.connection_id) is not None:
            logger.info("Realtime client %s disconnected", connection.connection_id)
        connection.mark_closed()

    async def terminate(self, connection: Connection, reason: str) -> None:
        logger.info("Terminating realtime client %s: %s", connection.connection_id, reason)
        self.disconnect(connection)
        try:
            await connection.transport.close(code=TERMINATE_CODE)
        except Exception as e:
            logger.debug("Close of %s failed: %r", connection.connection_id, e)

    # delivery

    async def _deliver(self, connection: Connection, message: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(connection.transport.send_json(message), timeout=self.send_timeout)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("%s", BroadcastError(connection.connection_id, repr(e)))
            return False

    async def publish(self, payload: Dict[str, Any], channel: str = DEFAULT_CHANNEL) -> int:
        """Send `payload` to every subscriber of `channel`; returns how many got it."""
        targets = self.registry.subscribers(channel)
        if not targets:
            logger.info("No subscribers on %s, nothing sent", channel)
            return 0

        message = NewReportEvent(channel=channel, data=payload).model_dump(mode="json")
        results = await asyncio.gather(*(self._deliver(c, message) for c in targets))
        delivered = sum(1 for ok in results if ok)
        logger.info("Broadcast on %s delivered to %d/%d clients", channel, delivered, len(targets))
        return delivered

    async def send_to(self, connection_id: str, message: Dict[str, Any]) -> bool:
        connection = self.registry.get(connection_id)
        if connection is None:
            return False
        return await self._deliver(connection, message)

    def connected_count(self) -> int:
        return len(self.registry)

    # liveness

    async def sweep(self) -> int:
        """One heartbeat round. Returns the number of connections terminated."""
        connections = self.registry.snapshot()
        dead = [c for c in connections if not c.is_alive]
        alive = [c for c in connections if c.is_alive]
        for connection in dead:
            await self.terminate(connection, "no pong since last ping")

        for connection in alive:
            connection.is_alive = False
        # pings go out together so a stalled client only delays its own
        ping = PingEvent().model_dump(mode="json")
        results = await asyncio.gather(*(self._deliver(c, ping) for c in alive))

        failed = [c for c, ok in zip(alive, results) if not ok]
        for connection in failed:
            await self.terminate(connection, "ping failed")
        return len(dead) + len(failed)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                terminated = await self.sweep()
            except Exception:
                logger.exception("Heartbeat sweep failed")
                continue
            if terminated:
                logger.info("Heartbeat sweep closed %d unresponsive clients", terminated)

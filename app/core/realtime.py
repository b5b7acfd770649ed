"""Realtime connection management for the chat socket gateway."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from fastapi import WebSocket

from app.config.settings import settings
from app.core.metrics import WS_CONNECTIONS_ACTIVE

logger = logging.getLogger(__name__)


def room_channel(match_id: int) -> str:
    return f"match:{match_id}"


def user_channel(user_id: int) -> str:
    return f"user:{user_id}"


@dataclass(frozen=True)
class RealtimeConfig:
    """Configuration used by :class:`ConnectionManager`."""

    max_connections: int
    send_timeout: float
    send_retries: int
    retry_backoff: float
    disconnect_on_backpressure: bool

    @classmethod
    def from_settings(cls) -> "RealtimeConfig":
        return cls(
            max_connections=max(settings.REALTIME_MAX_CONNECTIONS_PER_ROOM, 0),
            send_timeout=max(settings.REALTIME_SEND_TIMEOUT_SECONDS, 0.1),
            send_retries=max(settings.REALTIME_SEND_MAX_RETRIES, 0),
            retry_backoff=max(settings.REALTIME_SEND_RETRY_BACKOFF_SECONDS, 0.0),
            disconnect_on_backpressure=settings.REALTIME_DISCONNECT_ON_SLOW_CONSUMER,
        )


class ConnectionLimitError(Exception):
    """Raised when a room exceeds its concurrent connection limit."""


@dataclass(eq=False)
class ClientConnection:
    """One authenticated socket and the channels it currently belongs to."""

    user_id: int
    websocket: WebSocket
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    channels: Set[str] = field(default_factory=set)


class ConnectionManager:
    """Tracks live sockets per channel and delivers pre-encoded frames to them.

    Channels are either match rooms (``match:<id>``) joined explicitly, or the
    private ``user:<id>`` channel every connection is placed in on register.
    """

    def __init__(self, config: Optional[RealtimeConfig] = None) -> None:
        self._config = config or RealtimeConfig.from_settings()
        self.connections: Dict[str, ClientConnection] = {}
        self.channels: Dict[str, Dict[str, ClientConnection]] = {}

    @property
    def config(self) -> RealtimeConfig:
        return self._config

    def register(self, websocket: WebSocket, user_id: int) -> ClientConnection:
        connection = ClientConnection(user_id=user_id, websocket=websocket)
        self.connections[connection.id] = connection
        self._add(connection, user_channel(user_id))
        WS_CONNECTIONS_ACTIVE.inc()
        logger.info("WebSocket %s registered for user %s", connection.id, user_id)
        return connection

    def unregister(self, connection: ClientConnection) -> None:
        if self.connections.pop(connection.id, None) is None:
            return
        for channel_id in list(connection.channels):
            self._remove(connection, channel_id)
        WS_CONNECTIONS_ACTIVE.dec()
        logger.info("WebSocket %s for user %s disconnected", connection.id, connection.user_id)

    def join_room(self, connection: ClientConnection, match_id: int) -> None:
        channel_id = room_channel(match_id)
        if channel_id in connection.channels:
            return
        members = self.channels.get(channel_id, {})
        if self.config.max_connections and len(members) >= self.config.max_connections:
            logger.warning(
                "Rejecting join to %s - limit of %s reached",
                channel_id,
                self.config.max_connections,
            )
            raise ConnectionLimitError("Room has reached its connection capacity.")
        self._add(connection, channel_id)
        logger.info("User %s joined %s", connection.user_id, channel_id)

    def leave_room(self, connection: ClientConnection, match_id: int) -> None:
        channel_id = room_channel(match_id)
        if channel_id in connection.channels:
            self._remove(connection, channel_id)
            logger.info("User %s left %s", connection.user_id, channel_id)

    def has_user_connection(self, user_id: int) -> bool:
        return bool(self.channels.get(user_channel(user_id)))

    def _add(self, connection: ClientConnection, channel_id: str) -> None:
        self.channels.setdefault(channel_id, {})[connection.id] = connection
        connection.channels.add(channel_id)

    def _remove(self, connection: ClientConnection, channel_id: str) -> None:
        connection.channels.discard(channel_id)
        members = self.channels.get(channel_id)
        if not members:
            return
        members.pop(connection.id, None)
        if not members:
            del self.channels[channel_id]

    async def _send_with_retry(self, connection: ClientConnection, message: str) -> bool:
        attempts = self.config.send_retries + 1
        for attempt in range(attempts):
            try:
                await asyncio.wait_for(
                    connection.websocket.send_text(message),
                    timeout=self.config.send_timeout,
                )
                return True
            except asyncio.TimeoutError:
                logger.warning(
                    "Timed out sending message to slow consumer %s (attempt %s/%s)",
                    connection.id,
                    attempt + 1,
                    attempts,
                )
            except Exception as send_error:
                logger.warning(
                    "WebSocket send to %s failed: %s",
                    connection.id,
                    send_error,
                    exc_info=True,
                )

            if attempt < attempts - 1 and self.config.retry_backoff:
                await asyncio.sleep(self.config.retry_backoff)

        return False

    async def send_to_connection(self, connection_id: str, message: str) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False
        return await self._send_with_retry(connection, message)

    async def deliver(self, channel_id: str, message: str, exclude_connection_id: Optional[str] = None) -> None:
        logger.debug("Delivering to %s: %s", channel_id, message[:100])

        targets: List[ClientConnection] = [
            connection
            for connection in self.channels.get(channel_id, {}).values()
            if connection.id != exclude_connection_id
        ]
        if not targets:
            return

        results = await asyncio.gather(
            *(self._send_with_retry(connection, message) for connection in targets),
            return_exceptions=True,
        )

        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(
                    "Delivery task errored for %s: %s",
                    channel_id,
                    result,
                    exc_info=result,
                )
                self.unregister(connection)
            elif result is False:
                logger.warning("Dropping slow WebSocket consumer %s in %s", connection.id, channel_id)
                if self.config.disconnect_on_backpressure:
                    self.unregister(connection)


__all__ = [
    "ClientConnection",
    "ConnectionLimitError",
    "ConnectionManager",
    "RealtimeConfig",
    "room_channel",
    "user_channel",
]

"""Broadcasting helpers for chat socket clients."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from app.core.realtime import ConnectionManager, room_channel, user_channel
from app.models.enums import ServerEvent
from app.services.redis_pubsub import RedisPubSubManager

logger = logging.getLogger(__name__)


class RealtimeService:
    """The broadcaster handed to the chat and reply services.

    Room and user emits go through Redis when a fan-out publisher is set, and
    fall back to local delivery when it is not or when the publish fails.
    Connection emits are always local since the socket lives here.
    """

    def __init__(self, manager: ConnectionManager, fanout: Optional[RedisPubSubManager] = None) -> None:
        self._manager = manager
        self._fanout = fanout

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @staticmethod
    def format_event(event_type: str, payload: Dict[str, Any], meta: Optional[Dict[str, Any]] = None) -> str:
        """Create the canonical JSON envelope sent over the socket."""
        envelope: Dict[str, Any] = {
            "type": event_type.value if isinstance(event_type, ServerEvent) else event_type,
            "payload": payload,
        }
        if meta:
            envelope["meta"] = meta
        return json.dumps(envelope, default=str)

    async def _emit(self, channel_id: str, frame: str, exclude_connection_id: Optional[str]) -> None:
        if self._fanout is not None:
            if await self._fanout.publish(channel_id, frame, exclude_connection_id):
                return
            logger.warning("Fan-out unavailable, delivering %s locally", channel_id)
        await self._manager.deliver(channel_id, frame, exclude_connection_id=exclude_connection_id)

    async def emit_to_room(
        self,
        match_id: int,
        event_type: str,
        payload: Dict[str, Any],
        *,
        exclude_connection_id: Optional[str] = None,
    ) -> None:
        await self._emit(room_channel(match_id), self.format_event(event_type, payload), exclude_connection_id)

    async def emit_to_user(
        self,
        user_id: int,
        event_type: str,
        payload: Dict[str, Any],
        *,
        exclude_connection_id: Optional[str] = None,
    ) -> None:
        await self._emit(user_channel(user_id), self.format_event(event_type, payload), exclude_connection_id)

    async def emit_to_connection(self, connection_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        await self._manager.send_to_connection(connection_id, self.format_event(event_type, payload))

    async def emit_error(self, connection_id: str, message: str) -> None:
        await self.emit_to_connection(connection_id, ServerEvent.ERROR, {"message": message})

    def is_user_online(self, user_id: int) -> bool:
        return self._manager.has_user_connection(user_id)

import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.config.settings import get_effective_redis_url, settings
from app.core.realtime import ConnectionManager

logger = logging.getLogger(__name__)


class RedisPubSubManager:
    """Relays socket frames between processes.

    Every process publishes ``{"channel", "frame", "exclude"}`` envelopes to a
    single Redis channel and runs one listener that hands each envelope to its
    own :class:`ConnectionManager`, so a room broadcast reaches members no
    matter which process holds their socket.
    """

    def __init__(self, manager: ConnectionManager, channel: Optional[str] = None):
        self.manager = manager
        self.channel = channel or settings.REALTIME_REDIS_CHANNEL
        self.redis_client = None
        self._redis_url_signature = None
        self.pubsub = None
        self.is_running = False
        self._listener_task: Optional[asyncio.Task] = None

    async def _get_redis_client(self):
        target_url = get_effective_redis_url()
        if not target_url:
            return None

        if not self.redis_client or self._redis_url_signature != target_url:
            if self.redis_client:
                try:
                    await self.redis_client.close()
                except RedisError as exc:
                    logger.debug("Error closing stale Redis client: %s", exc)
            try:
                self.redis_client = redis.from_url(target_url, encoding="utf-8", decode_responses=True)
                self._redis_url_signature = target_url
            except RedisError as exc:
                logger.warning("Failed to initialize Redis Pub/Sub client at %s: %s", target_url, exc)
                self.redis_client = None
                self._redis_url_signature = None
        return self.redis_client

    async def publish(self, channel_id: str, frame: str, exclude_connection_id: Optional[str] = None) -> bool:
        """Publish a frame for ``channel_id``; False when Redis could not take it."""
        client = await self._get_redis_client()
        if not client:
            logger.info("Skipping Redis publish for %s because Redis is unavailable", channel_id)
            return False
        envelope = json.dumps({"channel": channel_id, "frame": frame, "exclude": exclude_connection_id})
        try:
            await client.publish(self.channel, envelope)
        except RedisError as exc:
            logger.warning("Redis publish for %s failed: %s", channel_id, exc)
            return False
        logger.debug("Published to %s for %s", self.channel, channel_id)
        return True

    async def handle_envelope(self, data: str) -> None:
        try:
            envelope = json.loads(data)
            channel_id = envelope["channel"]
            frame = envelope["frame"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring malformed fan-out envelope: %s", exc)
            return
        await self.manager.deliver(channel_id, frame, exclude_connection_id=envelope.get("exclude"))

    async def _listener(self):
        """Listen for envelopes and deliver them to local sockets."""
        client = await self._get_redis_client()
        if not client:
            logger.warning("Redis Pub/Sub listener could not start because Redis is unavailable")
            return
        self.pubsub = client.pubsub()
        await self.pubsub.subscribe(self.channel)
        logger.info("Redis Pub/Sub listener started on %s.", self.channel)
        self.is_running = True

        while self.is_running:
            try:
                message = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message and message.get("data") is not None:
                    await self.handle_envelope(str(message["data"]))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in Redis Pub/Sub listener: {e}", exc_info=True)
                # Add a small delay to prevent rapid-fire errors
                await asyncio.sleep(1)

    def start_listener(self):
        """Start the Redis listener as a background task."""
        if not self.is_running and self._listener_task is None:
            logger.info("Creating Redis Pub/Sub listener background task.")
            self._listener_task = asyncio.create_task(self._listener())

    async def stop_listener(self):
        """Stop the Redis listener."""
        self.is_running = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self.pubsub:
            await self.pubsub.unsubscribe()
            await self.pubsub.close()
            self.pubsub = None
        if self.redis_client:
            await self.redis_client.close()
            self.redis_client = None
        logger.info("Redis Pub/Sub listener stopped.")

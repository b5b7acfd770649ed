"""
Cross-process single-flight locks for automated replies.

At most one reply generation may run per match at any time, no matter how
many sockets or worker processes see the triggering event. Two backends
implement the same contract:

* ``PostgresAdvisoryLock`` holds ``pg_try_advisory_lock`` on a dedicated
  pooled connection. The lock belongs to that session, so a crashed worker
  frees it when its connection drops.
* ``RedisReplyLock`` uses ``SET NX PX`` with a per-acquisition token and a
  compare-and-delete release. The TTL frees a crashed holder.

``try_acquire`` never waits for a holder. ``release`` is safe to call for a
key this instance does not hold.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Protocol

import psycopg2
import redis.asyncio as redis
from psycopg2.extensions import connection
from redis.exceptions import RedisError

from app.config.settings import get_effective_redis_url, settings
from app.services.database_service import DatabaseService, get_database_service

logger = logging.getLogger(__name__)

# First key of the two-int advisory lock form; keeps reply locks apart from
# any other advisory locks taken against the same database.
ADVISORY_LOCK_NAMESPACE = 7301

_REDIS_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class ReplyLock(Protocol):
    async def try_acquire(self, conversation_id: int) -> bool:
        ...

    async def release(self, conversation_id: int) -> None:
        ...


class PostgresAdvisoryLock:
    """Session-level advisory lock keyed by match id."""

    def __init__(self, db: DatabaseService, namespace: int = ADVISORY_LOCK_NAMESPACE) -> None:
        self._db = db
        self._namespace = namespace
        self._held: Dict[int, connection] = {}

    def _try_lock(self, conn: connection, conversation_id: int) -> bool:
        with conn.cursor() as cur:
            cur.execute("SELECT pg_try_advisory_lock(%s, %s)", (self._namespace, conversation_id))
            row = cur.fetchone()
        return bool(row and row[0])

    def _unlock(self, conn: connection, conversation_id: int) -> bool:
        with conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_unlock(%s, %s)", (self._namespace, conversation_id))
            row = cur.fetchone()
        return bool(row and row[0])

    async def _checkin(self, conn: connection, conversation_id: int, discard: bool = False) -> None:
        try:
            await asyncio.to_thread(self._db.checkin, conn, discard=discard)
        except psycopg2.Error as exc:
            logger.warning("Could not return reply lock connection for match %s: %s", conversation_id, exc)

    async def try_acquire(self, conversation_id: int) -> bool:
        if conversation_id in self._held:
            return False

        try:
            conn = await asyncio.to_thread(self._db.checkout)
        except psycopg2.Error as exc:
            logger.warning("Could not check out a connection for reply lock %s: %s", conversation_id, exc)
            return False

        try:
            acquired = await asyncio.to_thread(self._try_lock, conn, conversation_id)
        except psycopg2.Error as exc:
            logger.warning("pg_try_advisory_lock failed for match %s: %s", conversation_id, exc)
            await self._checkin(conn, conversation_id, discard=True)
            return False

        if not acquired or conversation_id in self._held:
            await self._checkin(conn, conversation_id)
            return False

        self._held[conversation_id] = conn
        logger.debug("Acquired reply lock for match %s", conversation_id)
        return True

    async def release(self, conversation_id: int) -> None:
        conn = self._held.pop(conversation_id, None)
        if conn is None:
            logger.debug("Release requested for match %s without a held lock", conversation_id)
            return

        discard = False
        try:
            released = await asyncio.to_thread(self._unlock, conn, conversation_id)
            if not released:
                logger.warning("Advisory lock for match %s was not held by its session", conversation_id)
        except psycopg2.Error as exc:
            # Dropping the session frees every advisory lock it holds.
            logger.warning("pg_advisory_unlock failed for match %s: %s", conversation_id, exc)
            discard = True
        finally:
            await self._checkin(conn, conversation_id, discard=discard)


class RedisReplyLock:
    """``SET NX PX`` lock with token-checked release."""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int = 60, prefix: str = "lock:auto_reply") -> None:
        self._redis = redis_client
        self._ttl_ms = max(int(ttl_seconds * 1000), 1)
        self._prefix = prefix
        self._tokens: Dict[int, str] = {}

    def _key(self, conversation_id: int) -> str:
        return f"{self._prefix}:{conversation_id}"

    async def try_acquire(self, conversation_id: int) -> bool:
        if conversation_id in self._tokens:
            return False
        token = uuid.uuid4().hex
        try:
            acquired = await self._redis.set(self._key(conversation_id), token, nx=True, px=self._ttl_ms)
        except RedisError as exc:
            logger.warning("Redis reply lock acquire failed for match %s: %s", conversation_id, exc)
            return False
        if not acquired:
            return False
        self._tokens[conversation_id] = token
        return True

    async def release(self, conversation_id: int) -> None:
        token = self._tokens.pop(conversation_id, None)
        if token is None:
            logger.debug("Release requested for match %s without a held lock", conversation_id)
            return
        try:
            await self._redis.eval(_REDIS_RELEASE_SCRIPT, 1, self._key(conversation_id), token)
        except RedisError as exc:
            # The TTL expires the key if the delete never lands.
            logger.warning("Redis reply lock release failed for match %s: %s", conversation_id, exc)


@asynccontextmanager
async def single_flight(lock: ReplyLock, conversation_id: int) -> AsyncIterator[bool]:
    """Yield whether the lock was taken; release it on every exit path."""
    acquired = await lock.try_acquire(conversation_id)
    try:
        yield acquired
    finally:
        if acquired:
            await lock.release(conversation_id)


def build_reply_lock(
    backend: Optional[str] = None,
    db: Optional[DatabaseService] = None,
    redis_client: Optional[redis.Redis] = None,
) -> ReplyLock:
    backend = (backend or settings.REPLY_LOCK_BACKEND).lower()
    if backend == "redis":
        if redis_client is None:
            redis_url = get_effective_redis_url()
            if not redis_url:
                raise RuntimeError("REPLY_LOCK_BACKEND=redis requires REDIS_URL to be configured.")
            redis_client = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        logger.info("Using Redis reply lock backend.")
        return RedisReplyLock(redis_client, ttl_seconds=settings.REPLY_LOCK_TTL_SECONDS)
    if backend == "postgres":
        logger.info("Using PostgreSQL advisory reply lock backend.")
        return PostgresAdvisoryLock(db or get_database_service())
    raise ValueError(f"Unknown REPLY_LOCK_BACKEND '{backend}'")

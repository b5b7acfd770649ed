import asyncio
import uuid

import pytest
import redis.asyncio as redis

from app.services.reply_lock import RedisReplyLock


def _locks(redis_url, ttl_seconds=5, count=2):
    prefix = f"test:lock:{uuid.uuid4().hex}"
    client = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
    return client, [RedisReplyLock(client, ttl_seconds=ttl_seconds, prefix=prefix) for _ in range(count)]


@pytest.mark.asyncio
async def test_lock_is_exclusive_between_holders(redis_url):
    client, (first, second) = _locks(redis_url)
    try:
        assert await first.try_acquire(1) is True
        assert await second.try_acquire(1) is False

        # Releasing from the non-holder must not free the key.
        await second.release(1)
        assert await second.try_acquire(1) is False

        await first.release(1)
        assert await second.try_acquire(1) is True
        await second.release(1)
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_ttl_frees_crashed_holder(redis_url):
    client, (crashed, survivor) = _locks(redis_url, ttl_seconds=0.2)
    try:
        assert await crashed.try_acquire(7) is True

        await asyncio.sleep(0.4)

        assert await survivor.try_acquire(7) is True
        # The expired holder's late release leaves the new holder's key alone.
        await crashed.release(7)
        assert await RedisReplyLock(client, prefix=survivor._prefix).try_acquire(7) is False
        await survivor.release(7)
    finally:
        await client.close()

"""Shared Redis connections.

Learn: Two pools on the same server. The publisher, cache, and health
check use a decoding client (str in, str out). The consumer reads
streams with a raw client instead: message bodies come back as bytes and
are decoded by the event codec, so a body that isn't valid UTF-8 is just
a malformed message rather than a reply redis-py can't parse.
"""

from typing import Optional

import redis.asyncio as aioredis

from userpulse.config import settings

# Global Redis connection pools (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None
_stream_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the decoding Redis connection pool."""
    global _redis
    _redis = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await _redis.ping()
    return _redis


async def init_stream_redis() -> aioredis.Redis:
    """Initialize the raw (bytes) pool the consumer reads streams with."""
    global _stream_redis
    _stream_redis = aioredis.from_url(settings.redis_url, decode_responses=False)
    await _stream_redis.ping()
    return _stream_redis


async def close_redis() -> None:
    """Close both Redis connection pools."""
    global _redis, _stream_redis
    for client in (_redis, _stream_redis):
        if client is not None:
            await client.aclose()
    _redis = None
    _stream_redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis

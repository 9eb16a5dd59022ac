"""Read-through cache on Redis.

Learn: Explicit cache calls instead of decorators — the call sites that
read, write, and invalidate users say so in plain code:

    user = await cache.get_or_compute(email, load_user)   # read-through
    await cache.put(email, user)                          # write
    await cache.evict(email)                              # invalidate

Values are stored as JSON. The cache is fail-open: if Redis is down, a
read falls back to computing and a write/evict is skipped with a
warning. The database stays the source of truth either way.
"""

import json
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from userpulse.broker.connection import get_redis
from userpulse.config import settings

logger = structlog.get_logger()


class RedisCache:
    """A named JSON cache namespace, e.g. `user_by_email`."""

    def __init__(self, redis: aioredis.Redis, name: str, ttl_seconds: int = 0):
        self.redis = redis
        self.name = name
        self.ttl_seconds = ttl_seconds

    def key(self, key: str) -> str:
        return f"userpulse:cache:{self.name}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(self.key(key))
        except RedisError as e:
            logger.warning("cache.get_failed", cache=self.name, error=str(e))
            return None
        return json.loads(raw) if raw is not None else None

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Optional[Any]]],
    ) -> Optional[Any]:
        """Return the cached value, or compute, cache, and return it.

        A computed None is returned as-is and not cached, so lookups of
        missing records always go back to the source.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.debug("cache.hit", cache=self.name, key=key)
            return cached

        value = await compute()
        if value is not None:
            await self.put(key, value)
        return value

    async def put(self, key: str, value: Any) -> None:
        try:
            await self.redis.set(
                self.key(key),
                json.dumps(value, default=str),
                ex=self.ttl_seconds or None,
            )
        except RedisError as e:
            logger.warning("cache.put_failed", cache=self.name, error=str(e))

    async def evict(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self.redis.delete(*(self.key(k) for k in keys))
        except RedisError as e:
            logger.warning("cache.evict_failed", cache=self.name, error=str(e))


def get_user_cache() -> Optional[RedisCache]:
    """FastAPI dependency — the `user_by_email` cache, or None without Redis."""
    try:
        r = get_redis()
    except RuntimeError:
        return None
    return RedisCache(r, "user_by_email", ttl_seconds=settings.cache_ttl_seconds)

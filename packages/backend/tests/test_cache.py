"""Read-through cache tests against a mocked Redis client."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from userpulse.cache import RedisCache


def _redis(stored=None):
    r = MagicMock()
    r.get = AsyncMock(return_value=stored)
    r.set = AsyncMock(return_value=True)
    r.delete = AsyncMock(return_value=1)
    return r


@pytest.mark.asyncio
async def test_hit_skips_compute():
    r = _redis(json.dumps({"id": 1}))
    cache = RedisCache(r, "user_by_email")
    compute = AsyncMock()

    assert await cache.get_or_compute("al@x.com", compute) == {"id": 1}
    compute.assert_not_called()
    r.get.assert_awaited_once_with("userpulse:cache:user_by_email:al@x.com")


@pytest.mark.asyncio
async def test_miss_computes_and_stores_with_ttl():
    r = _redis()
    cache = RedisCache(r, "user_by_email", ttl_seconds=60)

    value = await cache.get_or_compute("al@x.com", AsyncMock(return_value={"id": 1}))

    assert value == {"id": 1}
    r.set.assert_awaited_once_with(
        "userpulse:cache:user_by_email:al@x.com", '{"id": 1}', ex=60
    )


@pytest.mark.asyncio
async def test_missing_value_is_not_cached():
    r = _redis()
    cache = RedisCache(r, "user_by_email")

    assert await cache.get_or_compute("ghost@x.com", AsyncMock(return_value=None)) is None
    r.set.assert_not_called()


@pytest.mark.asyncio
async def test_redis_down_falls_back_to_compute():
    r = _redis()
    r.get.side_effect = RedisConnectionError("down")
    r.set.side_effect = RedisConnectionError("down")
    cache = RedisCache(r, "user_by_email")

    assert await cache.get_or_compute("al@x.com", AsyncMock(return_value={"id": 1})) == {"id": 1}


@pytest.mark.asyncio
async def test_evict_deletes_namespaced_keys():
    r = _redis()
    cache = RedisCache(r, "user_by_email")

    await cache.evict("a@x.com", "b@x.com")
    await cache.evict()

    r.delete.assert_awaited_once_with(
        "userpulse:cache:user_by_email:a@x.com",
        "userpulse:cache:user_by_email:b@x.com",
    )

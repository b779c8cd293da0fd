"""
Integration Tests for RedisCacheStore
=====================================

Purpose
-------
Run the cache-aside layer against a real Redis (testcontainers) to verify
the store contract: set-with-expiry, get, atomic INCR and ping.

Testing Strategy
----------------
- One Redis container per session, flushed before every test
- Each test gets its own initialized store
"""

import asyncio
import uuid

import pytest

from ggetracker.core.cache.accessor import CacheAccessor
from ggetracker.core.cache.versions import VersionRegistry
from ggetracker.core.exceptions import CacheStoreError
from ggetracker.core.redis.service import RedisCacheStore


@pytest.fixture
async def redis_store(redis_url):
    store = RedisCacheStore(url=redis_url)
    await store.initialize()
    await store.client().flushdb()
    yield store
    await store.shutdown()


@pytest.mark.integration
@pytest.mark.redis
class TestRedisCacheStore:
    async def test_ping(self, redis_store):
        assert await redis_store.ping() is True
        assert redis_store.is_healthy()

    async def test_set_get_and_ttl(self, redis_store):
        await redis_store.set_with_expiry("DE1:1:/players", 60, '{"a": 1}')

        assert await redis_store.get("DE1:1:/players") == '{"a": 1}'
        ttl = await redis_store.client().ttl("DE1:1:/players")
        assert 0 < ttl <= 60

    async def test_entry_expires(self, redis_store):
        await redis_store.set_with_expiry("castle:/castle/analysis/1", 1, "{}")
        await asyncio.sleep(1.5)
        assert await redis_store.get("castle:/castle/analysis/1") is None

    async def test_incr_is_atomic(self, redis_store):
        key = f"fill-version:{uuid.uuid4().hex}"
        results = await asyncio.gather(*(redis_store.incr(key) for _ in range(20)))
        assert sorted(results) == list(range(1, 21))

    async def test_status(self, redis_store):
        status = redis_store.get_status()
        assert status["initialized"] is True
        assert status["healthy"] is True


@pytest.mark.integration
@pytest.mark.redis
class TestCacheAsideOverRedis:
    async def test_get_or_compute_and_bump(self, redis_store):
        versions = VersionRegistry(redis_store)
        accessor = CacheAccessor(redis_store, versions)
        calls = []

        async def producer():
            calls.append(1)
            return {"total": 42}

        assert await accessor.get_or_compute("players", "/players?page=2&server=DE1", producer) == {"total": 42}
        assert await accessor.get_or_compute("players", "/players?page=2&server=DE1", producer) == {"total": 42}
        assert len(calls) == 1

        assert await versions.bump("players") == 2
        await accessor.get_or_compute("players", "/players?page=2&server=DE1", producer)
        assert len(calls) == 2
        assert await redis_store.get("players:2:/players?page=2&server=DE1") == '{"total": 42}'


@pytest.mark.integration
@pytest.mark.redis
class TestUnreachableRedis:
    async def test_initialize_fails_with_cache_store_error(self):
        store = RedisCacheStore(url="redis://127.0.0.1:1/0", socket_timeout=1)
        with pytest.raises(CacheStoreError):
            await store.initialize()
        assert await store.ping() is False

"""Unit tests for the cache stores."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from curriculum_rag.config import RedisSettings
from curriculum_rag.services.cache_store import InMemoryCacheStore, RedisCacheStore
from curriculum_rag.utils.errors import CacheError


class TestInMemoryCacheStore:
    @pytest.mark.asyncio
    async def test_set_get_and_expiry(self, clock):
        store = InMemoryCacheStore(clock=clock)
        await store.set("k", "v", ttl=10)

        assert await store.get("k") == "v"
        clock.advance(10)
        assert await store.get("k") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_delete_counts_removed_keys(self, clock):
        store = InMemoryCacheStore(clock=clock)
        await store.set("a", "1", 60)
        await store.set("b", "2", 60)

        assert await store.delete("a", "b", "missing") == 2

    @pytest.mark.asyncio
    async def test_expire_and_incr(self, clock):
        store = InMemoryCacheStore(clock=clock)
        assert await store.incr("counter") == 1
        assert await store.incr("counter", 5) == 6
        assert await store.expire("counter", 1) is True
        clock.advance(2)
        assert await store.get("counter") is None
        assert await store.expire("counter", 1) is False

    @pytest.mark.asyncio
    async def test_scan_matches_glob(self, clock):
        store = InMemoryCacheStore(clock=clock)
        await store.set("p:rag:1", "x", 60)
        await store.set("p:rag:2", "x", 60)
        await store.set("p:search:1", "x", 60)

        assert sorted(await store.scan("p:rag:*")) == ["p:rag:1", "p:rag:2"]

    @pytest.mark.asyncio
    async def test_sweep_removes_expired_entries(self, clock):
        store = InMemoryCacheStore(clock=clock)
        await store.set("short", "x", 1)
        await store.set("long", "x", 100)
        clock.advance(5)

        assert await store.sweep() == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_sweeper_task_is_cancelled_on_close(self):
        store = InMemoryCacheStore(sweep_interval=60)
        store.start_sweeper()
        assert store._sweep_task is not None

        await store.close()

        assert store._sweep_task is None


class TestRedisCacheStore:
    def test_requires_url_or_pool(self):
        with pytest.raises(CacheError):
            RedisCacheStore(RedisSettings(url=None))

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get.return_value = b"cached"
        client.delete.return_value = 2
        client.expire.return_value = 1
        client.incrby.return_value = 3
        return client

    @pytest.fixture
    def store(self, redis_client):
        store = RedisCacheStore(redis_pool=MagicMock())
        with patch.object(store, "_get_redis_client", return_value=redis_client):
            yield store

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self, store, redis_client):
        assert await store.get("k") == "cached"
        redis_client.get.assert_called_once_with("k")

    @pytest.mark.asyncio
    async def test_set_uses_setex(self, store, redis_client):
        await store.set("k", "v", 30)
        redis_client.setex.assert_called_once_with("k", 30, "v")

    @pytest.mark.asyncio
    async def test_delete_expire_incr(self, store, redis_client):
        assert await store.delete("a", "b") == 2
        assert await store.delete() == 0
        assert await store.expire("a", 10) is True
        assert await store.incr("a", 2) == 3
        redis_client.incrby.assert_called_once_with("a", 2)

    @pytest.mark.asyncio
    async def test_scan_collects_keys(self, store, redis_client):
        async def scan_iter(match, count):
            for key in (b"p:rag:1", "p:rag:2"):
                yield key

        redis_client.scan_iter = scan_iter

        assert await store.scan("p:rag:*") == ["p:rag:1", "p:rag:2"]

    @pytest.mark.asyncio
    async def test_close_disconnects_pool(self):
        pool = MagicMock()
        pool.disconnect = AsyncMock()
        await RedisCacheStore(redis_pool=pool).close()
        pool.disconnect.assert_awaited_once()

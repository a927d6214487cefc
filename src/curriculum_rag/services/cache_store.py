"""Key/value stores backing the cache service."""

import asyncio
import fnmatch
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

import redis.asyncio as redis
from redis.asyncio import ConnectionPool, Redis

from curriculum_rag.config import RedisSettings
from curriculum_rag.utils.errors import CacheError
from curriculum_rag.utils.logging import get_logger

logger = get_logger("cache_store")


class CacheStore(ABC):
    """Minimal string key/value interface with store-side expiry."""

    backend = "none"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        ...

    @abstractmethod
    async def expire(self, key: str, ttl: int) -> bool:
        ...

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        ...

    @abstractmethod
    async def ping(self) -> None:
        ...

    @abstractmethod
    async def scan(self, pattern: str) -> List[str]:
        ...

    async def close(self) -> None:
        return None


class RedisCacheStore(CacheStore):
    """Redis-backed store using a shared asyncio connection pool."""

    backend = "redis"

    def __init__(self, redis_settings: Optional[RedisSettings] = None, redis_pool: Optional[ConnectionPool] = None):
        """Initialize the store.

        Args:
            redis_settings: Connection settings, used when no pool is given.
            redis_pool: Optional Redis connection pool.
        """
        self.settings = redis_settings or RedisSettings()

        if redis_pool:
            self.redis_pool = redis_pool
        else:
            if not self.settings.url:
                raise CacheError("REDIS_URL is required for the Redis cache store")
            self.redis_pool = redis.ConnectionPool.from_url(
                self.settings.url,
                password=self.settings.password,
                decode_responses=True,
                socket_timeout=self.settings.socket_timeout,
                socket_connect_timeout=self.settings.socket_connect_timeout,
                max_connections=self.settings.max_connections,
            )

    def _get_redis_client(self) -> Redis:
        """Get a Redis client from the connection pool."""
        return redis.Redis(connection_pool=self.redis_pool)

    async def get(self, key: str) -> Optional[str]:
        value = await self._get_redis_client().get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self._get_redis_client().setex(key, ttl, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._get_redis_client().delete(*keys)

    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self._get_redis_client().expire(key, ttl))

    async def incr(self, key: str, amount: int = 1) -> int:
        return await self._get_redis_client().incrby(key, amount)

    async def ping(self) -> None:
        await self._get_redis_client().ping()

    async def scan(self, pattern: str) -> List[str]:
        client = self._get_redis_client()
        keys = []
        async for key in client.scan_iter(match=pattern, count=500):
            keys.append(key.decode("utf-8") if isinstance(key, bytes) else key)
        return keys

    async def close(self) -> None:
        await self.redis_pool.disconnect()
        logger.info("Redis cache store disconnected")


class InMemoryCacheStore(CacheStore):
    """
    Process-local store used when Redis is not configured.

    Entries expire on read; an optional background task sweeps expired keys.
    """

    backend = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: Optional[float] = None):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._sweep_task: Optional[asyncio.Task] = None

    def _expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._expired(expires_at):
                del self._data[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        async with self._lock:
            self._data[key] = (value, self._clock() + ttl)

    async def delete(self, *keys: str) -> int:
        async with self._lock:
            removed = 0
            for key in keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
            return removed

    async def expire(self, key: str, ttl: int) -> bool:
        async with self._lock:
            item = self._data.get(key)
            if item is None or self._expired(item[1]):
                return False
            self._data[key] = (item[0], self._clock() + ttl)
            return True

    async def incr(self, key: str, amount: int = 1) -> int:
        async with self._lock:
            item = self._data.get(key)
            if item is None or self._expired(item[1]):
                current, expires_at = 0, None
            else:
                current, expires_at = int(item[0]), item[1]
            current += amount
            self._data[key] = (str(current), expires_at)
            return current

    async def ping(self) -> None:
        return None

    async def scan(self, pattern: str) -> List[str]:
        async with self._lock:
            return [
                key
                for key, (_, expires_at) in self._data.items()
                if not self._expired(expires_at) and fnmatch.fnmatchcase(key, pattern)
            ]

    async def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        async with self._lock:
            expired = [key for key, (_, expires_at) in self._data.items() if self._expired(expires_at)]
            for key in expired:
                del self._data[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the periodic sweep task if an interval is configured."""
        if self._sweep_interval and self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            await self.sweep()

    async def close(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

"""Namespaced cache with TTL validation, metrics and graceful degradation."""

import hashlib
import json
import re
import time
from typing import Any, Callable, Dict, List, Optional

from curriculum_rag.config import RedisSettings
from curriculum_rag.models.cache import CacheEntry, CacheMetrics
from curriculum_rag.services.cache_store import CacheStore
from curriculum_rag.utils.logging import get_logger

logger = get_logger("cache_service")


class Namespace:
    EMBEDDING = "emb:"
    RAG = "rag:"
    SEARCH = "search:"
    SESSION = "session:"
    METRICS = "metrics:"
    TEMPORARY = "tmp:"


# Default TTLs in seconds
DEFAULT_TTLS = {
    Namespace.EMBEDDING: 24 * 3600,
    Namespace.RAG: 1800,
    Namespace.SEARCH: 900,
    Namespace.SESSION: 2 * 3600,
    Namespace.TEMPORARY: 300,
}
EPHEMERAL_TTL = DEFAULT_TTLS[Namespace.TEMPORARY]

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9:_-]")


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def normalize_query(query: str) -> str:
    return " ".join(query.lower().split())


class CacheService:
    """
    JSON cache over a CacheStore.

    Every value is wrapped in a CacheEntry and its TTL is checked again on read,
    so an entry is never served past its lifetime even if the store kept it.
    Store failures are logged and turned into misses; nothing here raises.
    """

    def __init__(
        self,
        store: Optional[CacheStore],
        redis_settings: Optional[RedisSettings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._settings = redis_settings or RedisSettings()
        self._clock = clock
        self._degraded = store is None
        self._last_probe: Optional[float] = None
        self.metrics = CacheMetrics()

    @property
    def backend(self) -> str:
        return self._store.backend if self._store is not None else "none"

    @property
    def store(self) -> Optional[CacheStore]:
        return self._store

    @property
    def is_available(self) -> bool:
        return self._store is not None and not self._degraded

    async def connect(self) -> bool:
        """Ping the store; on failure stay in pass-through mode."""
        if self._store is None:
            return False
        self._last_probe = self._clock()
        try:
            await self._store.ping()
            self._degraded = False
            logger.info(f"Cache connected: backend={self.backend}")
        except Exception as e:
            self._degraded = True
            logger.warning(f"Cache store unreachable, running without cache: {e}")
        return not self._degraded

    async def _ready(self) -> bool:
        """True when the store can be used; while degraded, re-probe at most once per reconnect_interval."""
        if self._store is None:
            return False
        if self._degraded and (
            self._last_probe is None or self._clock() - self._last_probe >= self._settings.reconnect_interval
        ):
            await self.connect()
        return not self._degraded

    def make_key(self, namespace: str, key: str) -> str:
        """Build the store key: sanitized, and hashed when too long."""
        prefix = f"{self._settings.key_prefix}{namespace}"
        final_key = prefix + _UNSAFE_KEY_CHARS.sub("_", key)
        if len(final_key) > self._settings.max_key_length:
            return prefix + hash_text(final_key)
        return final_key

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        if not await self._ready():
            return None

        cache_key = self.make_key(namespace, key)
        try:
            raw = await self._store.get(cache_key)
        except Exception as e:
            logger.error(f"Cache GET failed for {cache_key}: {e}")
            self.metrics.errors += 1
            self.metrics.misses += 1
            return None

        if raw is None:
            self.metrics.misses += 1
            return None

        try:
            entry = CacheEntry.model_validate(json.loads(raw))
        except ValueError as e:
            logger.error(f"Cache entry corrupt, deleting {cache_key}: {e} (preview={raw[:100]!r})")
            await self._delete_key(cache_key)
            self.metrics.misses += 1
            return None

        if not entry.is_valid(self._now_ms()):
            await self._delete_key(cache_key)
            self.metrics.misses += 1
            return None

        self.metrics.hits += 1
        return entry.data

    async def set(self, namespace: str, key: str, data: Any, ttl: Optional[int] = None) -> bool:
        if not await self._ready():
            return False

        cache_key = self.make_key(namespace, key)
        final_ttl = ttl if ttl is not None else DEFAULT_TTLS.get(namespace, EPHEMERAL_TTL)
        entry = CacheEntry(data=data, timestamp=self._now_ms(), ttl=final_ttl)

        try:
            serialized = entry.model_dump_json()
        except ValueError as e:
            logger.warning(f"Cache value not serializable for {cache_key}: {e}")
            return False

        size = len(serialized.encode("utf-8"))
        if size > self._settings.max_value_size:
            logger.warning(f"Cache entry too large: {size} bytes (max {self._settings.max_value_size})")
            return False

        try:
            await self._store.set(cache_key, serialized, final_ttl)
        except Exception as e:
            logger.warning(f"Cache SET failed for {cache_key}: {e}")
            self.metrics.errors += 1
            return False

        self.metrics.sets += 1
        return True

    async def delete(self, namespace: str, key: str) -> bool:
        if not await self._ready():
            return False
        return await self._delete_key(self.make_key(namespace, key))

    async def _delete_key(self, cache_key: str) -> bool:
        try:
            removed = await self._store.delete(cache_key)
        except Exception as e:
            logger.warning(f"Cache DELETE failed for {cache_key}: {e}")
            self.metrics.errors += 1
            return False
        if removed > 0:
            self.metrics.deletes += 1
            return True
        return False

    async def touch(self, namespace: str, key: str, ttl: int) -> bool:
        """Extend the store-side lifetime of a key."""
        if not await self._ready():
            return False
        try:
            return await self._store.expire(self.make_key(namespace, key), ttl)
        except Exception as e:
            logger.warning(f"Cache EXPIRE failed: {e}")
            return False

    async def increment(self, namespace: str, key: str, amount: int = 1, ttl: Optional[int] = None) -> int:
        """Atomic counter stored outside the CacheEntry envelope; 0 when unavailable."""
        if not await self._ready():
            return 0
        cache_key = self.make_key(namespace, key)
        try:
            value = await self._store.incr(cache_key, amount)
            if ttl is not None and value == amount:
                await self._store.expire(cache_key, ttl)
            return value
        except Exception as e:
            logger.warning(f"Cache INCR failed for {cache_key}: {e}")
            return 0

    async def invalidate_by_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern (relative to the global key prefix)."""
        if not await self._ready():
            return 0
        try:
            keys: List[str] = await self._store.scan(f"{self._settings.key_prefix}{pattern}")
            if not keys:
                return 0
            removed = await self._store.delete(*keys)
        except Exception as e:
            logger.warning(f"Cache invalidation failed for pattern {pattern}: {e}")
            return 0
        self.metrics.deletes += removed
        logger.info(f"Invalidated {removed} cache keys matching {pattern}")
        return removed

    async def cache_embedding(self, text: str, embedding: List[float], model: str = "") -> bool:
        return await self.set(
            Namespace.EMBEDDING,
            hash_text(f"{model}:{text}"),
            {"embedding": embedding, "model": model},
        )

    async def get_embedding(self, text: str, model: str = "") -> Optional[List[float]]:
        data = await self.get(Namespace.EMBEDDING, hash_text(f"{model}:{text}"))
        if not isinstance(data, dict):
            return None
        return data.get("embedding")

    @staticmethod
    def rag_key(query: str, niveau: str, matiere: str, variant: str = "") -> str:
        """Key for a context; `variant` encodes the search parameters the context depends on."""
        if variant:
            return f"{niveau}:{matiere}:{variant}:{hash_text(normalize_query(query))}"
        return f"{niveau}:{matiere}:{hash_text(normalize_query(query))}"

    async def cache_rag_context(
        self, query: str, niveau: str, matiere: str, data: Dict[str, Any], variant: str = ""
    ) -> bool:
        return await self.set(Namespace.RAG, self.rag_key(query, niveau, matiere, variant), data)

    async def get_rag_context(
        self, query: str, niveau: str, matiere: str, variant: str = ""
    ) -> Optional[Dict[str, Any]]:
        return await self.get(Namespace.RAG, self.rag_key(query, niveau, matiere, variant))

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.snapshot()

    async def health_check(self) -> Dict[str, Any]:
        if self._store is None:
            return {"status": "disabled", "backend": "none", "latency_ms": None, "error": "No cache store configured"}

        start = time.perf_counter()
        try:
            await self._store.ping()
        except Exception as e:
            return {"status": "unhealthy", "backend": self.backend, "latency_ms": None, "error": str(e)}
        if self._degraded:
            self._degraded = False
            logger.info(f"Cache reconnected: backend={self.backend}")
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        return {
            "status": "healthy",
            "backend": self.backend,
            "latency_ms": latency_ms,
            "error": None,
        }

    async def close(self) -> None:
        if self._store is not None:
            await self._store.close()

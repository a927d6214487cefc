"""Cache entry and metrics models."""

from typing import Any

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """Serialized form of every cached value."""

    data: Any
    timestamp: int = Field(..., description="Write time, epoch milliseconds")
    ttl: int = Field(..., description="Time to live in seconds")
    hits: int = 0

    def is_valid(self, now_ms: int) -> bool:
        return now_ms - self.timestamp <= self.ttl * 1000


class CacheMetrics(BaseModel):
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0

    @property
    def total_operations(self) -> int:
        return self.hits + self.misses + self.sets + self.deletes

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def snapshot(self) -> dict:
        return {
            **self.model_dump(),
            "hit_rate": round(self.hit_rate, 4),
            "total_operations": self.total_operations,
        }

"""
Cache backend implementations.

Compiled protocol artifacts are kept in memory keyed by source; a null
backend disables caching altogether.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """A cache entry with metadata.

    Attributes:
        value: Cached value
        created_at: Creation timestamp
        ttl: Time-to-live in seconds
        hits: Number of cache hits
    """

    value: Any
    created_at: float
    ttl: float | None = None
    hits: int = 0

    @property
    def is_expired(self) -> bool:
        if self.ttl is None:
            return False
        return time.time() >= self.created_at + self.ttl

    @property
    def age_seconds(self) -> float:
        return time.time() - self.created_at


@dataclass
class CacheStats:
    """Counters reported by a cache backend."""

    size: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": round(self.hit_rate, 4),
        }


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value; returns True if it was present."""
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> CacheStats:
        raise NotImplementedError


class MemoryCache(CacheBackend):
    """In-memory cache backend with TTL support.

    Example:
        >>> cache = MemoryCache(max_size=256, default_ttl=3600)
        >>> await cache.set("file:/protocols/weather.json", artifact)
        >>> artifact = await cache.get("file:/protocols/weather.json")
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float | None = None,
    ) -> None:
        """Initialize memory cache.

        Args:
            max_size: Maximum number of entries
            default_ttl: Default TTL in seconds
        """
        self._cache: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired:
                del self._cache[key]
                self._misses += 1
                return None

            entry.hits += 1
            self._hits += 1
            return entry.value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        async with self._lock:
            if len(self._cache) >= self._max_size and key not in self._cache:
                self._evict_one()

            self._cache[key] = CacheEntry(
                value=value,
                created_at=time.time(),
                ttl=ttl if ttl is not None else self._default_ttl,
            )

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    def keys(self) -> list[str]:
        """Keys of entries that have not expired."""
        return [k for k, v in self._cache.items() if not v.is_expired]

    def _evict_one(self) -> None:
        """Evict one entry: an expired one if any, else the least hit."""
        if not self._cache:
            return

        expired = [k for k, v in self._cache.items() if v.is_expired]
        if expired:
            victim = expired[0]
        else:
            victim = min(self._cache, key=lambda k: self._cache[k].hits)
        del self._cache[victim]
        self._evictions += 1

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._cache),
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )

    @property
    def size(self) -> int:
        return len(self._cache)


class NullCache(CacheBackend):
    """Cache backend that stores nothing; used when caching is disabled."""

    async def get(self, key: str) -> Any | None:  # noqa: ARG002
        return None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        pass

    async def delete(self, key: str) -> bool:  # noqa: ARG002
        return False

    async def clear(self) -> None:
        pass

    def stats(self) -> CacheStats:
        return CacheStats()

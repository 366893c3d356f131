"""Tests for cache module."""

import time

import pytest

from protocol_forge.cache import CacheEntry, CacheStats, MemoryCache, NullCache


class TestCacheEntry:
    """Tests for CacheEntry."""

    def test_no_ttl_never_expires(self) -> None:
        entry = CacheEntry(value="artifact", created_at=time.time() - 10_000)
        assert not entry.is_expired

    def test_expired(self) -> None:
        entry = CacheEntry(value="artifact", created_at=time.time() - 10, ttl=5)
        assert entry.is_expired
        assert entry.age_seconds >= 10


class TestCacheStats:
    """Tests for CacheStats."""

    def test_hit_rate(self) -> None:
        stats = CacheStats(hits=3, misses=1)
        assert stats.hit_rate == 0.75
        assert stats.to_dict()["hit_rate"] == 0.75

    def test_empty_hit_rate(self) -> None:
        assert CacheStats().hit_rate == 0.0


class TestMemoryCache:
    """Tests for MemoryCache."""

    @pytest.mark.asyncio
    async def test_set_and_get(self) -> None:
        """Test storing and reading an entry."""
        cache = MemoryCache()
        await cache.set("file:/protocols/weather.json", {"name": "weather-api"})

        assert await cache.get("file:/protocols/weather.json") == {"name": "weather-api"}
        assert await cache.get("file:/protocols/missing.json") is None

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.size == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss(self) -> None:
        """Test that an expired entry is dropped on read."""
        cache = MemoryCache(default_ttl=0.0)
        await cache.set("key", "value")

        assert await cache.get("key") is None
        assert cache.size == 0

    @pytest.mark.asyncio
    async def test_explicit_ttl_overrides_default(self) -> None:
        cache = MemoryCache(default_ttl=0.0)
        await cache.set("key", "value", ttl=60)
        assert await cache.get("key") == "value"

    @pytest.mark.asyncio
    async def test_delete_and_clear(self) -> None:
        """Test removing entries."""
        cache = MemoryCache()
        await cache.set("a", 1)
        await cache.set("b", 2)

        assert await cache.delete("a") is True
        assert await cache.delete("a") is False
        assert cache.keys() == ["b"]

        await cache.clear()
        assert cache.size == 0

    @pytest.mark.asyncio
    async def test_eviction_prefers_least_hit(self) -> None:
        """Test that a full cache evicts its least used entry."""
        cache = MemoryCache(max_size=2)
        await cache.set("hot", 1)
        await cache.set("cold", 2)
        await cache.get("hot")

        await cache.set("new", 3)

        assert sorted(cache.keys()) == ["hot", "new"]
        assert cache.stats().evictions == 1

    @pytest.mark.asyncio
    async def test_overwrite_does_not_evict(self) -> None:
        cache = MemoryCache(max_size=1)
        await cache.set("a", 1)
        await cache.set("a", 2)

        assert await cache.get("a") == 2
        assert cache.stats().evictions == 0


class TestNullCache:
    """Tests for NullCache."""

    @pytest.mark.asyncio
    async def test_stores_nothing(self) -> None:
        cache = NullCache()
        await cache.set("key", "value")

        assert await cache.get("key") is None
        assert await cache.delete("key") is False
        assert cache.stats().size == 0

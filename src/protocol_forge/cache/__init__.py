"""
Cache module - TTL caching of compiled protocol artifacts.
"""

from protocol_forge.cache.backends import (
    CacheBackend,
    CacheEntry,
    CacheStats,
    MemoryCache,
    NullCache,
)

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheStats",
    "MemoryCache",
    "NullCache",
]

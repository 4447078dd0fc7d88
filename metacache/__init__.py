"""Pluggable async caching for database metadata services."""

__version__ = "0.1.0"

from .cache import (
    CacheBackend,
    CacheError,
    CacheSerializationError,
    CacheSetupError,
    CacheStats,
    CacheType,
    FileCacheBackend,
    MemoryCacheBackend,
    NoOpCacheBackend,
    create_cache,
    create_cache_from_config,
)

__all__ = [
    "CacheBackend",
    "CacheError",
    "CacheSerializationError",
    "CacheSetupError",
    "CacheStats",
    "CacheType",
    "FileCacheBackend",
    "MemoryCacheBackend",
    "NoOpCacheBackend",
    "create_cache",
    "create_cache_from_config",
]

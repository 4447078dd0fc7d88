"""Caching layer for database metadata.

Supports an in-process memory cache, a persistent file cache, and a no-op
cache used when caching is disabled. Configure via a ``[cache]`` table in
metacache.toml or METACACHE_CACHE_* environment variables.

Examples:
    In-memory (default): storage = "memory"
    File: storage = "file", file_path = "./cache"
    Disabled: enabled = false
"""

from .base import CacheBackend, CacheEntry, CacheError, CacheSerializationError, CacheSetupError, CacheStats
from .engine import (
    CacheOptions,
    CacheType,
    cleanup_cache,
    create_cache,
    create_cache_from_config,
    get_cache,
)
from .file import FileCacheBackend
from .locks import PathLockRegistry
from .memory import MemoryCacheBackend
from .noop import NoOpCacheBackend
from .serializers import JSONSerializer, Serializer

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheError",
    "CacheOptions",
    "CacheSerializationError",
    "CacheSetupError",
    "CacheStats",
    "CacheType",
    "FileCacheBackend",
    "JSONSerializer",
    "MemoryCacheBackend",
    "NoOpCacheBackend",
    "PathLockRegistry",
    "Serializer",
    "cleanup_cache",
    "create_cache",
    "create_cache_from_config",
    "get_cache",
]

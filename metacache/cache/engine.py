"""Cache factory and global instance management."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field

from ..config.settings import AppConfig, CacheConfig, load_app_config
from .base import CacheBackend
from .file import DEFAULT_CLEANUP_INTERVAL as FILE_CLEANUP_INTERVAL
from .file import FileCacheBackend
from .locks import DEFAULT_LOCK_TIMEOUT
from .memory import DEFAULT_CLEANUP_INTERVAL as MEMORY_CLEANUP_INTERVAL
from .memory import MemoryCacheBackend
from .noop import NoOpCacheBackend

logger = logging.getLogger(__name__)


class CacheType(str, Enum):
    MEMORY = "memory"
    FILE = "file"


class CacheOptions(BaseModel):
    """Options accepted by :func:`create_cache`.

    ``compression`` and ``cleanup_interval`` fall back to per-backend defaults
    when left unset.
    """

    ttl: float = 3600
    max_size: int = Field(default=1000, gt=0)
    namespace: str = "default"
    cleanup_interval: Optional[float] = Field(default=None, ge=0)
    serialization: bool = True
    file_path: Optional[str] = None
    encryption_key: Optional[str] = Field(default=None, repr=False)
    compression: Optional[bool] = None
    lock_timeout: float = Field(default=DEFAULT_LOCK_TIMEOUT, gt=0)
    hash_algorithm: Literal["md5", "sha1", "sha256"] = "md5"


def create_cache(
    cache_type: Union[CacheType, str],
    options: Optional[CacheOptions] = None,
    **overrides: Any,
) -> CacheBackend:
    """Build a memory or file cache.

    Args:
        cache_type: ``"memory"`` or ``"file"``
        options: Cache options (defaults when omitted)
        **overrides: Individual option overrides

    Raises:
        ValueError: If the type is unknown or a file cache has no ``file_path``
    """
    try:
        cache_type = CacheType(cache_type)
    except ValueError:
        raise ValueError(f"Unsupported cache type: {cache_type}") from None

    opts = options or CacheOptions()
    if overrides:
        opts = CacheOptions(**{**opts.model_dump(), **overrides})

    if cache_type is CacheType.MEMORY:
        return MemoryCacheBackend(
            ttl=opts.ttl,
            max_size=opts.max_size,
            namespace=opts.namespace,
            cleanup_interval=(
                MEMORY_CLEANUP_INTERVAL if opts.cleanup_interval is None else opts.cleanup_interval
            ),
            serialization=opts.serialization,
        )

    if not opts.file_path:
        raise ValueError("File cache requires the file_path option")

    return FileCacheBackend(
        base_dir=opts.file_path,
        ttl=opts.ttl,
        max_size=opts.max_size,
        namespace=opts.namespace,
        cleanup_interval=(
            FILE_CLEANUP_INTERVAL if opts.cleanup_interval is None else opts.cleanup_interval
        ),
        compression=True if opts.compression is None else opts.compression,
        encryption_key=opts.encryption_key,
        lock_timeout=opts.lock_timeout,
        hash_algorithm=opts.hash_algorithm,
    )


def create_cache_from_config(
    config: Union[AppConfig, CacheConfig, Mapping[str, Any]],
) -> CacheBackend:
    """Build the cache described by the application config.

    Disabled caching yields a :class:`NoOpCacheBackend`.
    """
    if isinstance(config, AppConfig):
        cache_config = config.cache
    elif isinstance(config, CacheConfig):
        cache_config = config
    else:
        section = config.get("cache", config)
        cache_config = CacheConfig(**(section or {}))

    if not cache_config.enabled:
        logger.info("Caching disabled, using no-op cache")
        return NoOpCacheBackend()

    cache_type = CacheType(cache_config.storage)
    options = CacheOptions(
        ttl=cache_config.ttl,
        max_size=cache_config.max_size,
        namespace="default",
        cleanup_interval=cache_config.cleanup_interval,
        file_path=cache_config.file_path or "./cache",
        encryption_key=cache_config.encryption_key,
        compression=cache_type is CacheType.FILE,
    )
    return create_cache(cache_type, options)


# Global cache instance
_cache: Optional[CacheBackend] = None
_cache_lock: Optional[asyncio.Lock] = None


def _get_cache_lock() -> asyncio.Lock:
    """Get or create the cache initialization lock."""
    global _cache_lock
    if _cache_lock is None:
        _cache_lock = asyncio.Lock()
    return _cache_lock


async def get_cache(config: Optional[AppConfig] = None) -> CacheBackend:
    """Get the process-wide cache, creating and initializing it on first use.

    Args:
        config: Application config (only used on first call; loaded from
            file and environment when omitted)
    """
    global _cache

    if _cache is not None:
        return _cache

    lock = _get_cache_lock()
    async with lock:
        if _cache is not None:
            return _cache

        backend = create_cache_from_config(config or load_app_config())
        await backend.initialize()
        _cache = backend
        logger.info(f"Cache initialized: {backend.backend_type}")
        return _cache


async def cleanup_cache() -> None:
    """Close the process-wide cache."""
    global _cache, _cache_lock

    if _cache:
        await _cache.close()
        _cache = None
    _cache_lock = None

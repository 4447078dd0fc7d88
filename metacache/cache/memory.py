"""In-memory cache backend."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from datetime import datetime
from typing import Any, List, Optional

from .base import CacheBackend, CacheEntry, CacheSerializationError, CacheStats, compute_expiry
from .serializers import JSONSerializer, Serializer

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600
DEFAULT_MAX_SIZE = 1000
DEFAULT_CLEANUP_INTERVAL = 300  # 5 minutes


class MemoryCacheBackend(CacheBackend):
    """Process-local cache with TTL and LRU eviction.

    Each instance owns its store; ``with_namespace`` returns a new instance
    rather than a filtered view of this one.
    """

    backend_type = "memory"

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        namespace: str = "default",
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        serialization: bool = True,
        serializer: Optional[Serializer] = None,
    ):
        """Initialize memory cache.

        Args:
            ttl: Default time-to-live in seconds (``<= 0`` never expires)
            max_size: Maximum number of entries (LRU eviction when exceeded)
            namespace: Namespace this instance stores keys under
            cleanup_interval: Seconds between background sweeps (0 disables)
            serialization: Copy values through ``serializer`` on set
            serializer: Serializer used for copies (JSON by default)
        """
        super().__init__(namespace=namespace, cleanup_interval=cleanup_interval)
        self._ttl = ttl
        self._max_size = max_size
        self._serialization = serialization
        self._serializer = serializer or JSONSerializer()
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._last_cleanup: Optional[datetime] = None

    async def initialize(self) -> None:
        logger.info(
            f"Initializing in-memory cache (namespace: {self._namespace}, max_size: {self._max_size})"
        )
        await super().initialize()

    async def close(self) -> None:
        """Stop cleanup task and drop all entries."""
        await super().close()
        self._cache.clear()
        logger.info(f"In-memory cache closed ({self._namespace})")

    def _make_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _strip_key(self, stored_key: str) -> str:
        return stored_key[len(self._namespace) + 1 :]

    def _evict_lru(self) -> None:
        """Evict the single least recently used entry."""
        if not self._cache:
            return
        # min() keeps the first of equal timestamps; order tracks recency.
        lru_key, _ = min(self._cache.items(), key=lambda item: item[1].last_accessed)
        del self._cache[lru_key]
        self._evictions += 1
        logger.debug(f"Cache EVICT (LRU): {lru_key}")

    def _copy_value(self, value: Any) -> Any:
        if not self._serialization:
            return value
        try:
            return self._serializer.copy(value)
        except CacheSerializationError:
            raise
        except Exception as e:
            raise CacheSerializationError(f"Cache value cannot be serialized: {e}") from e

    async def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the cache."""
        stored_key = self._make_key(key)
        async with self._lock:
            entry = self._cache.get(stored_key)
            if entry is None:
                self._misses += 1
                return default

            now = time.time()
            if entry.is_expired(now):
                del self._cache[stored_key]
                self._misses += 1
                logger.debug(f"Cache EXPIRED: {stored_key}")
                return default

            entry.touch(now)
            self._cache.move_to_end(stored_key)
            self._hits += 1
            return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set a value in the cache."""
        stored = self._copy_value(value)
        stored_key = self._make_key(key)
        now = time.time()
        expiry = compute_expiry(ttl, self._ttl, now)

        async with self._lock:
            # Evict only for new keys; overwrites keep the size unchanged
            if stored_key not in self._cache and len(self._cache) >= self._max_size:
                self._evict_lru()

            self._cache[stored_key] = CacheEntry.create(stored, expiry, now=now)
            self._cache.move_to_end(stored_key)

    async def has(self, key: str) -> bool:
        """Check if a key exists and is not expired."""
        stored_key = self._make_key(key)
        async with self._lock:
            entry = self._cache.get(stored_key)
            if entry is None:
                return False
            if entry.is_expired():
                del self._cache[stored_key]
                return False
            return True

    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        async with self._lock:
            return self._cache.pop(self._make_key(key), None) is not None

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.debug(f"Cache CLEAR ({self._namespace}): removed {count} entries")

    async def cleanup(self) -> None:
        """Remove expired entries, then trim back to max_size."""
        async with self._lock:
            now = time.time()
            expired_keys = [key for key, entry in self._cache.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._cache[key]

            evicted = 0
            while len(self._cache) > self._max_size:
                self._evict_lru()
                evicted += 1

            self._last_cleanup = datetime.now()

        if expired_keys or evicted:
            logger.debug(
                f"Cache cleanup ({self._namespace}): {len(expired_keys)} expired, {evicted} evicted"
            )

    def _live_items(self):
        now = time.time()
        return [(k, e) for k, e in self._cache.items() if not e.is_expired(now)]

    async def get_keys(self) -> List[str]:
        async with self._lock:
            return [self._strip_key(key) for key, _ in self._live_items()]

    async def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        async with self._lock:
            live = self._live_items()
            memory_usage = 0
            for _, entry in live:
                try:
                    memory_usage += len(self._serializer.dumps(entry.value))
                except CacheSerializationError:
                    # Only reachable with serialization disabled
                    pass

            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(live),
                max_size=self._max_size,
                backend_type=self.backend_type,
                namespace=self._namespace,
                keys=[self._strip_key(key) for key, _ in live],
                memory_usage=memory_usage,
                last_cleanup=self._last_cleanup,
            )

    def with_namespace(self, namespace: str) -> "MemoryCacheBackend":
        child = MemoryCacheBackend(
            ttl=self._ttl,
            max_size=self._max_size,
            namespace=namespace,
            cleanup_interval=self._cleanup_interval,
            serialization=self._serialization,
            serializer=self._serializer,
        )
        self._adopt(child)
        return child

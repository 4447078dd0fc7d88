"""Base cache abstractions shared by every backend."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None.
_MISSING = object()


class CacheError(Exception):
    """Base class for cache failures surfaced to callers."""


class CacheSerializationError(CacheError):
    """A value could not be serialized for storage."""


class CacheSetupError(CacheError):
    """The backing store could not be prepared (e.g. directory creation failed)."""


def compute_expiry(ttl: Optional[float], default_ttl: float, now: float) -> Optional[float]:
    """Resolve a per-call TTL against the cache default.

    A positive TTL expires ``ttl`` seconds from ``now``; zero or a negative
    value means the entry never expires. ``None`` falls back to ``default_ttl``
    under the same rule.
    """
    effective = default_ttl if ttl is None else ttl
    if effective > 0:
        return now + effective
    return None


@dataclass
class CacheEntry:
    """Envelope around a cached value."""

    value: Any
    expiry: Optional[float]  # Unix timestamp, None = never expires
    last_accessed: float
    created_at: float
    hit_count: int = 0
    key: Optional[str] = None

    @classmethod
    def create(
        cls, value: Any, expiry: Optional[float], key: Optional[str] = None, now: Optional[float] = None
    ) -> "CacheEntry":
        now = time.time() if now is None else now
        return cls(value=value, expiry=expiry, last_accessed=now, created_at=now, key=key)

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if entry has expired."""
        if self.expiry is None:
            return False
        now = time.time() if now is None else now
        return self.expiry <= now

    def touch(self, now: Optional[float] = None) -> None:
        """Record a hit."""
        self.last_accessed = time.time() if now is None else now
        self.hit_count += 1

    def to_dict(self) -> Dict[str, Any]:
        # Shallow: only the serializer walks value
        return {
            "value": self.value,
            "expiry": self.expiry,
            "last_accessed": self.last_accessed,
            "created_at": self.created_at,
            "hit_count": self.hit_count,
            "key": self.key,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CacheEntry":
        if not isinstance(data, dict):
            raise ValueError(f"Cache entry must be a mapping, got {type(data).__name__}")
        try:
            expiry = data["expiry"]
            return cls(
                value=data["value"],
                expiry=float(expiry) if expiry is not None else None,
                last_accessed=float(data["last_accessed"]),
                created_at=float(data["created_at"]),
                hit_count=int(data.get("hit_count") or 0),
                key=data.get("key"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed cache entry: {e}") from e


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int
    misses: int
    size: int
    max_size: int
    backend_type: str
    namespace: str
    keys: List[str] = field(default_factory=list)
    memory_usage: Optional[int] = None
    last_cleanup: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0


class CacheBackend(ABC):
    """Abstract base class for cache backends.

    Subclasses implement the single-key primitives plus stats, namespacing
    and cleanup. Batch operations and ``get_or_set`` are built on top of the
    primitives here.
    """

    backend_type = "abstract"

    def __init__(self, namespace: str = "default", cleanup_interval: float = 0) -> None:
        self._namespace = namespace
        self._cleanup_interval = cleanup_interval
        self._cleanup_task: Optional[asyncio.Task] = None
        self._children: List["CacheBackend"] = []
        self._parent: Optional["CacheBackend"] = None

    @property
    def namespace(self) -> str:
        return self._namespace

    # Lifecycle

    async def initialize(self) -> None:
        """Start the periodic maintenance task."""
        self._start_cleanup_task()

    async def close(self) -> None:
        """Stop the periodic maintenance task and close derived namespace views."""
        children, self._children = self._children, []
        for child in children:
            await child.close()
        parent, self._parent = self._parent, None
        if parent is not None and self in parent._children:
            parent._children.remove(self)
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def __aenter__(self) -> "CacheBackend":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _start_cleanup_task(self) -> None:
        """Start periodic cleanup if an interval is configured."""
        if self._cleanup_interval <= 0:
            return
        if self._cleanup_task and not self._cleanup_task.done():
            return
        try:
            asyncio.get_running_loop()
            self._cleanup_task = asyncio.create_task(self._periodic_cleanup())
        except RuntimeError:
            # No event loop yet
            pass

    def _adopt(self, child: "CacheBackend") -> "CacheBackend":
        """Track a namespace view so it shares this cache's lifecycle."""
        self._children.append(child)
        child._parent = self
        if self._cleanup_task is not None:
            child._start_cleanup_task()
        return child

    async def _periodic_cleanup(self) -> None:
        """Periodically run cleanup()."""
        while True:
            try:
                await asyncio.sleep(self._cleanup_interval)
                await self.cleanup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in {self.backend_type} cache cleanup ({self._namespace}): {e}")

    # Primitives

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the cache.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            Cached value or ``default``
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache (must be serializable)
            ttl: Time-to-live in seconds. ``<= 0`` never expires, ``None``
                uses the cache default.

        Raises:
            CacheSerializationError: If the value cannot be serialized
        """
        ...

    @abstractmethod
    async def has(self, key: str) -> bool:
        """Check if a key exists and is not expired, without refreshing recency."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value from the cache.

        Returns:
            True if key existed and was deleted
        """
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry in this namespace."""
        ...

    @abstractmethod
    async def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        ...

    @abstractmethod
    async def get_keys(self) -> List[str]:
        """List live keys in this namespace."""
        ...

    @abstractmethod
    def with_namespace(self, namespace: str) -> "CacheBackend":
        """Return a cache with the same options and its own store for ``namespace``."""
        ...

    @abstractmethod
    async def cleanup(self) -> None:
        """Remove expired entries and trim to the configured size."""
        ...

    # Batch operations

    async def get_many(self, keys: Sequence[str]) -> List[Any]:
        """Get several values; missing keys yield None in the same position."""
        return list(await asyncio.gather(*(self.get(key) for key in keys)))

    async def set_many(
        self, entries: Iterable[Tuple[str, Any]], ttl: Optional[float] = None
    ) -> None:
        """Set several key/value pairs with a shared TTL."""
        await asyncio.gather(*(self.set(key, value, ttl) for key, value in entries))

    async def delete_many(self, keys: Sequence[str]) -> int:
        """Delete several keys.

        Returns:
            Number of keys that existed
        """
        results = await asyncio.gather(*(self.delete(key) for key in keys))
        return sum(1 for deleted in results if deleted)

    # Convenience methods for common patterns

    async def get_or_set(
        self,
        key: str,
        factory: Any,  # Callable that returns value
        ttl: Optional[float] = None,
    ) -> Any:
        """Get value from cache, or compute and cache it.

        Concurrent callers missing the same key may each run ``factory``.

        Args:
            key: Cache key
            factory: Sync or async callable returning the value, or the value itself
            ttl: Time-to-live in seconds

        Returns:
            Cached or computed value
        """
        value = await self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        value = await resolve_factory(factory)
        await self.set(key, value, ttl)
        return value


async def resolve_factory(factory: Any) -> Any:
    """Call ``factory`` (awaiting it when needed) or return it unchanged."""
    if not callable(factory):
        return factory
    value = factory()
    if asyncio.iscoroutine(value) or isinstance(value, asyncio.Future):
        value = await value
    return value

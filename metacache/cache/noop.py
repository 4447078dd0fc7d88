"""Pass-through backend used when caching is disabled."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .base import CacheBackend, CacheStats, resolve_factory


class NoOpCacheBackend(CacheBackend):
    """Stores nothing: every read misses and every write is dropped.

    Lets consumers keep a single code path whether or not caching is enabled.
    """

    backend_type = "noop"

    def __init__(self) -> None:
        super().__init__(namespace="noop", cleanup_interval=0)

    async def get(self, key: str, default: Any = None) -> Any:
        return default

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        return None

    async def has(self, key: str) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False

    async def clear(self) -> None:
        return None

    async def get_many(self, keys: Sequence[str]) -> List[Any]:
        return [None for _ in keys]

    async def set_many(self, entries: Iterable[Tuple[str, Any]], ttl: Optional[float] = None) -> None:
        return None

    async def delete_many(self, keys: Sequence[str]) -> int:
        return 0

    async def get_or_set(self, key: str, factory: Any, ttl: Optional[float] = None) -> Any:
        return await resolve_factory(factory)

    async def get_stats(self) -> CacheStats:
        return CacheStats(
            hits=0,
            misses=0,
            size=0,
            max_size=0,
            backend_type=self.backend_type,
            namespace=self._namespace,
        )

    async def get_keys(self) -> List[str]:
        return []

    def with_namespace(self, namespace: str) -> "NoOpCacheBackend":
        return self

    async def cleanup(self) -> None:
        return None

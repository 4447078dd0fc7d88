"""File-backed cache backend with optional compression and encryption."""

from __future__ import annotations

import asyncio
import gzip
import hashlib
import logging
import os
import secrets
import time
import zlib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..utils.crypto import PayloadCipher
from .base import (
    CacheBackend,
    CacheEntry,
    CacheError,
    CacheSerializationError,
    CacheSetupError,
    CacheStats,
    compute_expiry,
)
from .locks import DEFAULT_LOCK_TIMEOUT, PathLockRegistry
from .serializers import JSONSerializer, Serializer

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600
DEFAULT_MAX_SIZE = 1000
DEFAULT_CLEANUP_INTERVAL = 600  # 10 minutes
DEFAULT_RECENCY_WRITE_INTERVAL = 10
HASH_ALGORITHMS = ("md5", "sha1", "sha256")

# Failures that mean "this file is not a readable entry"
_DECODE_ERRORS = (OSError, EOFError, ValueError, zlib.error, CacheSerializationError)


def validate_namespace(namespace: str) -> str:
    """Ensure a namespace maps to exactly one directory under the base dir."""
    separators = [sep for sep in (os.sep, os.altsep, "/") if sep]
    if (
        not namespace
        or namespace in (".", "..")
        or "\x00" in namespace
        or any(sep in namespace for sep in separators)
    ):
        raise ValueError(f"Invalid cache namespace for file storage: {namespace!r}")
    return namespace


class FileCacheBackend(CacheBackend):
    """Persistent cache storing one file per key under ``base_dir/namespace``.

    File names are digests of the raw key, so the original key is embedded in
    each stored entry to support ``get_keys``. Writes go through a per-path
    lock and a temp-file rename; reads never lock and treat any undecodable
    file as a miss, deleting it.

    Recency on disk is coarse: hits are counted in-process and only written
    back every ``recency_write_interval`` hits.
    """

    backend_type = "file"

    def __init__(
        self,
        base_dir: Union[str, Path],
        ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        namespace: str = "default",
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        compression: bool = True,
        encryption_key: Optional[str] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        hash_algorithm: str = "md5",
        recency_write_interval: int = DEFAULT_RECENCY_WRITE_INTERVAL,
        serializer: Optional[Serializer] = None,
        locks: Optional[PathLockRegistry] = None,
    ):
        """Initialize file cache.

        Args:
            base_dir: Root directory; each namespace gets a subdirectory
            ttl: Default time-to-live in seconds (``<= 0`` never expires)
            max_size: Maximum number of entries kept by cleanup
            namespace: Subdirectory name for this instance
            cleanup_interval: Seconds between background sweeps (0 disables)
            compression: Gzip entries on disk
            encryption_key: Secret enabling AES encryption when set
            lock_timeout: Seconds before a held write lock is force released
            hash_algorithm: Digest used for file names (md5, sha1, sha256)
            recency_write_interval: Persist access metadata every N hits
            serializer: Serializer for stored entries (JSON by default)
            locks: Lock registry shared with sibling namespace views
        """
        super().__init__(namespace=validate_namespace(namespace), cleanup_interval=cleanup_interval)
        if hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(
                f"Unsupported hash algorithm {hash_algorithm!r}, expected one of {HASH_ALGORITHMS}"
            )

        self._base_dir = Path(base_dir)
        self._dir = self._base_dir / self._namespace
        self._ttl = ttl
        self._max_size = max_size
        self._compression = compression
        self._encryption_key = encryption_key or None
        self._cipher = PayloadCipher(encryption_key) if encryption_key else None
        self._hash_algorithm = hash_algorithm
        self._recency_write_interval = max(1, recency_write_interval)
        self._serializer = serializer or JSONSerializer()
        # Views share their creator's registry; only the creator releases it
        self._owns_locks = locks is None
        self._locks = locks or PathLockRegistry(lock_timeout)

        self._initialized = False
        self._hits = 0
        self._misses = 0
        self._last_cleanup: Optional[datetime] = None
        # path -> (unpersisted hit count, time of last hit)
        self._recent_hits: Dict[str, Tuple[int, float]] = {}
        self._maintenance_task: Optional[asyncio.Task] = None
        self._capacity_dirty = False

    @property
    def directory(self) -> Path:
        return self._dir

    async def initialize(self) -> None:
        await self._ensure_dir()
        logger.info(
            f"Initializing file cache (dir: {self._dir}, max_size: {self._max_size}, "
            f"compression: {self._compression}, encrypted: {self._cipher is not None})"
        )
        await super().initialize()

    async def close(self) -> None:
        """Stop background work and release held locks."""
        await super().close()
        task, self._maintenance_task = self._maintenance_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._owns_locks:
            self._locks.release_all()
        self._recent_hits.clear()
        logger.info(f"File cache closed ({self._dir})")

    async def _ensure_dir(self) -> None:
        if self._initialized:
            return
        try:
            await asyncio.to_thread(self._dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise CacheSetupError(f"Cannot create cache directory {self._dir}: {e}") from e
        self._initialized = True

    def path_for(self, key: str) -> Path:
        """File path an entry for ``key`` is stored at."""
        digest = hashlib.new(self._hash_algorithm, key.encode("utf-8"), usedforsecurity=False)
        return self._dir / digest.hexdigest()

    # Encoding pipeline: serializer -> gzip -> AES

    def _encode(self, entry: CacheEntry) -> bytes:
        data = self._serializer.dumps(entry.to_dict())
        if self._compression:
            data = gzip.compress(data)
        if self._cipher:
            data = self._cipher.encrypt(data)
        return data

    def _decode(self, data: bytes) -> CacheEntry:
        if self._cipher:
            data = self._cipher.decrypt(data)
        if self._compression:
            data = gzip.decompress(data)
        return CacheEntry.from_dict(self._serializer.loads(data))

    def _load(self, path: Path) -> CacheEntry:
        return self._decode(path.read_bytes())

    def _write_atomic(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except Exception:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise

    def _list_entry_files(self) -> List[Path]:
        try:
            return [p for p in self._dir.iterdir() if not p.name.startswith(".") and p.is_file()]
        except FileNotFoundError:
            return []

    @staticmethod
    def _unlink_sync(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    # Entry I/O

    async def _read_entry(self, path: Path) -> Optional[CacheEntry]:
        """Read a live entry, discarding expired or corrupt files."""
        try:
            entry = await asyncio.to_thread(self._load, path)
        except FileNotFoundError:
            return None
        except _DECODE_ERRORS as e:
            logger.debug(f"Unreadable cache file {path}: {e}")
            await self._discard(path)
            return None

        if entry.is_expired():
            logger.debug(f"Cache EXPIRED: {path.name}")
            await self._discard(path)
            return None
        return entry

    async def _discard(self, path: Path) -> None:
        """Delete a file that was found expired or corrupt, unless a writer replaced it."""
        try:
            async with self._locks.hold(str(path)):
                try:
                    current = await asyncio.to_thread(self._load, path)
                    if not current.is_expired():
                        return
                except FileNotFoundError:
                    return
                except _DECODE_ERRORS:
                    pass
                await asyncio.to_thread(self._unlink_sync, path)
                self._recent_hits.pop(str(path), None)
        except OSError as e:
            logger.warning(f"Failed to remove stale cache file {path}: {e}")

    async def _write_entry(self, path: Path, entry: CacheEntry) -> None:
        try:
            data = await asyncio.to_thread(self._encode, entry)
        except CacheError:
            raise
        except Exception as e:
            raise CacheSerializationError(f"Cache value cannot be serialized: {e}") from e
        async with self._locks.hold(str(path)):
            await asyncio.to_thread(self._write_atomic, path, data)

    async def _record_hit(self, path: Path) -> None:
        """Count a hit and persist access metadata every Nth hit."""
        lock_key = str(path)
        now = time.time()
        pending, _ = self._recent_hits.get(lock_key, (0, now))
        pending += 1
        if pending < self._recency_write_interval:
            self._recent_hits[lock_key] = (pending, now)
            return

        self._recent_hits.pop(lock_key, None)
        try:
            async with self._locks.hold(lock_key):
                # Re-read so a concurrent set() is not overwritten with stale data
                current = await asyncio.to_thread(self._load, path)
                if current.is_expired(now):
                    return
                current.last_accessed = now
                current.hit_count += pending
                data = await asyncio.to_thread(self._encode, current)
                await asyncio.to_thread(self._write_atomic, path, data)
        except FileNotFoundError:
            pass
        except Exception as e:
            logger.warning(f"Failed to persist access metadata for {path.name}: {e}")

    # Cache API

    async def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the cache."""
        await self._ensure_dir()
        path = self.path_for(key)
        entry = await self._read_entry(path)
        if entry is None or (entry.key is not None and entry.key != key):
            self._misses += 1
            return default

        self._hits += 1
        await self._record_hit(path)
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set a value in the cache."""
        await self._ensure_dir()
        path = self.path_for(key)
        now = time.time()
        entry = CacheEntry.create(value, compute_expiry(ttl, self._ttl, now), key=key, now=now)

        await self._write_entry(path, entry)
        self._recent_hits.pop(str(path), None)
        self._schedule_capacity_check()

    async def has(self, key: str) -> bool:
        await self._ensure_dir()
        entry = await self._read_entry(self.path_for(key))
        return entry is not None and (entry.key is None or entry.key == key)

    async def delete(self, key: str) -> bool:
        await self._ensure_dir()
        path = self.path_for(key)
        async with self._locks.hold(str(path)):
            existed = await asyncio.to_thread(self._unlink_sync, path)
        self._recent_hits.pop(str(path), None)
        return existed

    async def clear(self) -> None:
        await self._ensure_dir()
        paths = await asyncio.to_thread(self._list_entry_files)
        for path in paths:
            async with self._locks.hold(str(path)):
                await asyncio.to_thread(self._unlink_sync, path)
        self._recent_hits.clear()
        logger.debug(f"Cache CLEAR ({self._namespace}): removed {len(paths)} files")

    async def _scan(self) -> List[Tuple[Path, CacheEntry, int]]:
        """Read every live entry, discarding expired and unreadable files."""
        live = []
        for path in await asyncio.to_thread(self._list_entry_files):
            entry = await self._read_entry(path)
            if entry is None:
                continue
            try:
                size = (await asyncio.to_thread(path.stat)).st_size
            except FileNotFoundError:
                continue
            live.append((path, entry, size))
        return live

    def _recency(self, path: Path, entry: CacheEntry) -> float:
        pending = self._recent_hits.get(str(path))
        if pending is None:
            return entry.last_accessed
        return max(entry.last_accessed, pending[1])

    async def cleanup(self) -> None:
        """Remove expired/unreadable files, then delete the least recently used excess."""
        await self._ensure_dir()
        before = len(await asyncio.to_thread(self._list_entry_files))
        live = await self._scan()
        self._last_cleanup = datetime.now()

        excess = len(live) - self._max_size
        if excess > 0:
            live.sort(key=lambda item: self._recency(item[0], item[1]))
            for path, _, _ in live[:excess]:
                async with self._locks.hold(str(path)):
                    await asyncio.to_thread(self._unlink_sync, path)
                self._recent_hits.pop(str(path), None)

        removed = before - len(live)
        if removed > 0 or excess > 0:
            logger.debug(
                f"Cache cleanup ({self._namespace}): {removed} expired/unreadable, "
                f"{max(excess, 0)} evicted"
            )

    def _schedule_capacity_check(self) -> None:
        """Queue a capacity check after a write; runs after set() has returned."""
        self._capacity_dirty = True
        if self._maintenance_task and not self._maintenance_task.done():
            return
        self._maintenance_task = asyncio.create_task(self._ensure_capacity())

    async def _ensure_capacity(self) -> None:
        while self._capacity_dirty:
            self._capacity_dirty = False
            try:
                count = len(await asyncio.to_thread(self._list_entry_files))
                if count > self._max_size:
                    await self.cleanup()
            except Exception as e:
                logger.error(f"Error in file cache capacity check ({self._namespace}): {e}")

    async def get_keys(self) -> List[str]:
        await self._ensure_dir()
        return [entry.key for _, entry, _ in await self._scan() if entry.key is not None]

    async def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        await self._ensure_dir()
        live = await self._scan()
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(live),
            max_size=self._max_size,
            backend_type=self.backend_type,
            namespace=self._namespace,
            keys=[entry.key for _, entry, _ in live if entry.key is not None],
            memory_usage=sum(size for _, _, size in live),
            last_cleanup=self._last_cleanup,
        )

    def with_namespace(self, namespace: str) -> "FileCacheBackend":
        child = FileCacheBackend(
            base_dir=self._base_dir,
            ttl=self._ttl,
            max_size=self._max_size,
            namespace=namespace,
            cleanup_interval=self._cleanup_interval,
            compression=self._compression,
            encryption_key=self._encryption_key,
            lock_timeout=self._locks.timeout,
            hash_algorithm=self._hash_algorithm,
            recency_write_interval=self._recency_write_interval,
            serializer=self._serializer,
            locks=self._locks,
        )
        self._adopt(child)
        return child

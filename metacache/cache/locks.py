"""Per-path async locks with a fail-safe auto-release."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0


class _Hold:
    __slots__ = ("released", "timer")

    def __init__(self) -> None:
        self.released = asyncio.Event()
        self.timer: Optional[asyncio.TimerHandle] = None


class PathLockRegistry:
    """Serializes writers to the same path within one event loop.

    A holder that does not release within ``timeout`` seconds is released
    automatically so a stuck writer cannot block later writers forever.
    Waiters are never failed; they proceed once the lock is free or forced
    free.
    """

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.timeout = timeout
        self._held: Dict[str, _Hold] = {}

    def locked(self, path: str) -> bool:
        return path in self._held

    async def acquire(self, path: str) -> Callable[[], None]:
        """Wait for ``path`` to be free, take it, and return the release callback."""
        while True:
            current = self._held.get(path)
            if current is None:
                break
            await current.released.wait()

        hold = _Hold()
        hold.timer = asyncio.get_running_loop().call_later(self.timeout, self._expire, path, hold)
        self._held[path] = hold
        return lambda: self._release(path, hold)

    @asynccontextmanager
    async def hold(self, path: str) -> AsyncIterator[None]:
        release = await self.acquire(path)
        try:
            yield
        finally:
            release()

    def _release(self, path: str, hold: _Hold) -> None:
        if hold.released.is_set():
            return
        if hold.timer is not None:
            hold.timer.cancel()
        hold.released.set()
        if self._held.get(path) is hold:
            del self._held[path]

    def _expire(self, path: str, hold: _Hold) -> None:
        if not hold.released.is_set():
            logger.warning(f"Lock on {path} held for more than {self.timeout}s, force releasing")
            self._release(path, hold)

    def release_all(self) -> None:
        """Release every held lock (used on shutdown)."""
        for path, hold in list(self._held.items()):
            self._release(path, hold)

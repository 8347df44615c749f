"""
Per-session mutual exclusion.

Locks are created on first use. A lock that is held or awaited stays in the
active map; once nobody references it, it moves to a TTLCache and is
evicted after sitting idle, so the registry does not grow with every
session key ever seen.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict

from cachetools import TTLCache

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ('lock', 'refs')

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.refs = 0


class SessionLockHandle:
    """Held session lock; call ``release()`` exactly once."""

    def __init__(self, registry: 'SessionLockRegistry', session_key: str):
        self._registry = registry
        self.session_key = session_key
        self._released = False

    def release(self) -> None:
        if self._released:
            raise RuntimeError(f"Session lock {self.session_key} already released")
        self._released = True
        self._registry._release(self.session_key)


class SessionLockRegistry:
    """
    Registry of per-session asyncio locks.

    Different session keys never block each other. Waiters on the same key
    are served in the order they called ``acquire``.
    """

    def __init__(
        self,
        idle_ttl_seconds: float = 3600,
        max_idle: int = 10000,
        timer: Callable[[], float] = time.monotonic
    ):
        self._active: Dict[str, _Entry] = {}
        self._idle: TTLCache = TTLCache(maxsize=max_idle, ttl=idle_ttl_seconds, timer=timer)

    def _checkout(self, session_key: str) -> _Entry:
        entry = self._active.get(session_key)
        if entry is None:
            entry = self._idle.pop(session_key, None) or _Entry()
            self._active[session_key] = entry
        entry.refs += 1
        return entry

    def _checkin(self, session_key: str, entry: _Entry) -> None:
        entry.refs -= 1
        if entry.refs == 0:
            del self._active[session_key]
            self._idle[session_key] = entry

    async def acquire(self, session_key: str) -> SessionLockHandle:
        entry = self._checkout(session_key)
        try:
            await entry.lock.acquire()
        except BaseException:
            self._checkin(session_key, entry)
            raise
        return SessionLockHandle(self, session_key)

    def _release(self, session_key: str) -> None:
        entry = self._active[session_key]
        entry.lock.release()
        self._checkin(session_key, entry)

    @asynccontextmanager
    async def lock(self, session_key: str) -> AsyncIterator[SessionLockHandle]:
        handle = await self.acquire(session_key)
        try:
            yield handle
        finally:
            handle.release()

    def is_locked(self, session_key: str) -> bool:
        entry = self._active.get(session_key)
        return entry is not None and entry.lock.locked()

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def idle_count(self) -> int:
        self._idle.expire()
        return len(self._idle)


__all__ = ['SessionLockRegistry', 'SessionLockHandle']

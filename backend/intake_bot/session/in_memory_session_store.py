"""
In-memory session store implementation.
Suitable for development, tests and single-instance deployments.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional

from ..models.session import Session
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """
    In-memory implementation of SessionStore.

    Features:
    - TTL refreshed on every save
    - LRU eviction when max_sessions is reached
    - Deep copies in and out, so callers never share state with the store

    Limitations:
    - Sessions lost on restart
    - Not shared across multiple instances
    """

    def __init__(
        self,
        ttl_seconds: int = 600,
        max_sessions: int = 10000,
        timer: Callable[[], float] = time.monotonic
    ):
        self.sessions: "OrderedDict[str, Session]" = OrderedDict()
        self.expiry: Dict[str, float] = {}
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self.timer = timer
        self.lock = asyncio.Lock()

        logger.info(
            f"InMemorySessionStore initialized "
            f"(max_sessions={max_sessions}, ttl={ttl_seconds}s)"
        )

    def _expired(self, session_key: str) -> bool:
        expires_at = self.expiry.get(session_key)
        return expires_at is not None and self.timer() >= expires_at

    def _remove(self, session_key: str) -> bool:
        self.expiry.pop(session_key, None)
        return self.sessions.pop(session_key, None) is not None

    async def get(self, session_key: str) -> Optional[Session]:
        async with self.lock:
            if self._expired(session_key):
                self._remove(session_key)
                logger.debug(f"Session {session_key} expired and removed")
                return None

            session = self.sessions.get(session_key)
            if session is None:
                return None

            self.sessions.move_to_end(session_key)
            return session.model_copy(deep=True)

    async def save(self, session: Session) -> None:
        async with self.lock:
            key = session.session_key
            self.sessions[key] = session.model_copy(deep=True)
            self.sessions.move_to_end(key)
            self.expiry[key] = self.timer() + self.ttl_seconds

            while len(self.sessions) > self.max_sessions:
                evicted, _ = self.sessions.popitem(last=False)
                self.expiry.pop(evicted, None)
                logger.debug(f"Evicted session {evicted} (LRU)")

    async def clear(self, session_key: str) -> bool:
        async with self.lock:
            expired = self._expired(session_key)
            removed = self._remove(session_key)
            return removed and not expired

    async def close(self) -> None:
        async with self.lock:
            self.sessions.clear()
            self.expiry.clear()


__all__ = ['InMemorySessionStore']

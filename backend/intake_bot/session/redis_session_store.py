"""
Redis-backed session store implementation.
Suitable for production multi-instance deployments.
"""
import logging
from typing import Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..errors import StoreError
from ..models.session import Session
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """
    Redis-backed implementation of SessionStore.

    Sessions are stored as JSON under ``{prefix}:{session_key}`` and written
    with ``SET ... EX ttl`` so every save refreshes the expiry. Every read
    goes to Redis; nothing is cached in-process.
    """

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "intake:conv",
        ttl_seconds: int = 600,
        max_connections: int = 50,
        socket_timeout: float = 5.0,
        socket_connect_timeout: float = 5.0,
        client: Optional[Redis] = None
    ):
        """
        Initialize Redis session store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Prefix for session keys
            ttl_seconds: TTL applied on every save
            max_connections: Maximum connection pool size
            socket_timeout: Socket timeout in seconds
            socket_connect_timeout: Connection timeout in seconds
            client: Pre-built client (shared with the deduper)
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

        if client is None:
            pool = redis.ConnectionPool.from_url(
                redis_url,
                max_connections=max_connections,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_connect_timeout,
                decode_responses=True,
                socket_keepalive=True
            )
            client = Redis(connection_pool=pool)
            self._owns_client = True
        else:
            self._owns_client = False

        self.client: Redis = client

        logger.info(
            f"RedisSessionStore initialized "
            f"(prefix={key_prefix}, ttl={ttl_seconds}s)"
        )

    def _make_key(self, session_key: str) -> str:
        return f"{self.key_prefix}:{session_key}"

    async def get(self, session_key: str) -> Optional[Session]:
        key = self._make_key(session_key)

        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.error(f"Redis error getting session {session_key}: {e}")
            raise StoreError(f"Failed to load session {session_key}") from e

        if raw is None:
            return None

        try:
            return Session.from_json(raw)
        except (ValueError, ValidationError) as e:
            # Unreadable record; treat as absent so the user can start over
            logger.error(
                f"Discarding corrupt session record {session_key}: {e}",
                extra={"session_key": session_key}
            )
            return None

    async def save(self, session: Session) -> None:
        key = self._make_key(session.session_key)

        try:
            await self.client.set(key, session.to_json(), ex=self.ttl_seconds)
        except RedisError as e:
            logger.error(f"Redis error saving session {session.session_key}: {e}")
            raise StoreError(f"Failed to save session {session.session_key}") from e

        logger.debug(f"Saved session {session.session_key} (ttl={self.ttl_seconds}s)")

    async def clear(self, session_key: str) -> bool:
        key = self._make_key(session_key)

        try:
            deleted = await self.client.delete(key)
        except RedisError as e:
            logger.error(f"Redis error clearing session {session_key}: {e}")
            raise StoreError(f"Failed to clear session {session_key}") from e

        if deleted:
            logger.debug(f"Cleared session {session_key}")
        return bool(deleted)

    async def ping(self) -> bool:
        """
        Test Redis connection.

        Returns:
            True if connected
        """
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._owns_client:
            await self.client.aclose()
            logger.info("✓ Closed Redis connection")


__all__ = ['RedisSessionStore']

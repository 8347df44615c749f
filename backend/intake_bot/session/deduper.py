"""
Exactly-once claiming of inbound message ids.

The platform may deliver the same event more than once. A message is
processed only by the caller that claims its id first; claims expire after
a retention window independent of session lifetime.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import redis.asyncio as redis
from cachetools import TTLCache
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..errors import StoreError

logger = logging.getLogger(__name__)


class MessageDeduper(ABC):

    @abstractmethod
    async def claim(self, message_id: str) -> bool:
        """
        Atomically claim a message id.

        Returns:
            True if this caller claimed the id, False if it was already claimed

        Raises:
            StoreError: If the claim could not be checked; callers drop the message
        """
        pass

    async def close(self) -> None:
        pass


class RedisMessageDeduper(MessageDeduper):
    """Claims via ``SET {prefix}:{message_id} 1 NX EX ttl``."""

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "intake:processed",
        ttl_seconds: int = 86400,
        max_connections: int = 50,
        socket_timeout: float = 5.0,
        client: Optional[Redis] = None
    ):
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

        if client is None:
            pool = redis.ConnectionPool.from_url(
                redis_url,
                max_connections=max_connections,
                socket_timeout=socket_timeout,
                decode_responses=True
            )
            client = Redis(connection_pool=pool)
            self._owns_client = True
        else:
            self._owns_client = False

        self.client: Redis = client

    def _make_key(self, message_id: str) -> str:
        return f"{self.key_prefix}:{message_id}"

    async def claim(self, message_id: str) -> bool:
        try:
            result = await self.client.set(
                self._make_key(message_id), "1", nx=True, ex=self.ttl_seconds
            )
        except RedisError as e:
            logger.error(
                f"Redis error claiming message {message_id}: {e}",
                extra={"message_id": message_id}
            )
            raise StoreError(f"Failed to claim message {message_id}") from e

        return bool(result)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class InMemoryMessageDeduper(MessageDeduper):
    """Single-process deduper backed by a TTLCache."""

    def __init__(
        self,
        ttl_seconds: int = 86400,
        max_entries: int = 100000,
        timer: Callable[[], float] = time.monotonic
    ):
        self.claims: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=timer)
        self.lock = asyncio.Lock()

    async def claim(self, message_id: str) -> bool:
        async with self.lock:
            if message_id in self.claims:
                return False
            self.claims[message_id] = True
            return True


__all__ = ['MessageDeduper', 'RedisMessageDeduper', 'InMemoryMessageDeduper']

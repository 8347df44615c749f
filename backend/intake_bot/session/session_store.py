"""
Abstract session store interface.
Defines the contract for session persistence implementations.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..models.session import Session

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """
    Abstract base class for session storage.

    Implementations must:
    - refresh the TTL on every save
    - treat a missing record as "not found" for get and clear, never an error
    - raise StoreError on transport failures
    """

    @abstractmethod
    async def get(self, session_key: str) -> Optional[Session]:
        """
        Get a session by key.

        Args:
            session_key: Session identifier

        Returns:
            Session or None if not found

        Raises:
            StoreError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def save(self, session: Session) -> None:
        """
        Persist a session and refresh its TTL.

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def clear(self, session_key: str) -> bool:
        """
        Delete a session.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass

    async def get_or_create(
        self,
        session_key: str,
        user_id: str,
        display_name: Optional[str] = None
    ) -> Session:
        """
        Load a session, creating a fresh one when none exists.

        An existing session gets its identity fields refreshed in place. A
        fresh session is not persisted until the caller saves it.
        """
        session = await self.get(session_key)

        if session is not None:
            session.update_identity(user_id, display_name)
            return session

        logger.debug(f"Creating new session {session_key}")
        return Session(
            session_key=session_key,
            user_id=user_id,
            display_name=display_name,
        )

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


__all__ = ['SessionStore']

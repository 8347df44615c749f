"""
Chat platform interface.

The engine and the escalation pipeline only talk to the platform through
this interface, so tests can substitute a recording fake.
"""
from abc import ABC, abstractmethod
from typing import Optional, Tuple


class ChatPlatform(ABC):

    @abstractmethod
    async def send_text(self, chat_id: str, text: str) -> str:
        """Send a text message to a chat; returns the new message id."""
        pass

    @abstractmethod
    async def reply_text(self, message_id: str, text: str) -> str:
        """Reply to a message with text; returns the new message id."""
        pass

    @abstractmethod
    async def send_post(
        self,
        chat_id: str,
        title: str,
        text: str,
        mention_user_id: Optional[str] = None
    ) -> str:
        """Send a rich-text post; returns its message id (a thread root)."""
        pass

    @abstractmethod
    async def upload_file(self, file_name: str, data: bytes) -> str:
        """Upload bytes; returns a file reference valid for sending."""
        pass

    @abstractmethod
    async def reply_file_in_thread(self, root_message_id: str, file_key: str) -> str:
        """Reply with a file inside the thread rooted at ``root_message_id``."""
        pass

    @abstractmethod
    async def download_resource(
        self,
        message_id: str,
        file_key: str,
        resource_type: str = "file"
    ) -> Tuple[bytes, str]:
        """Download a message attachment; returns (data, file name)."""
        pass

    @abstractmethod
    async def get_message(self, message_id: str) -> Tuple[str, str]:
        """Fetch a message; returns (message type, raw content JSON)."""
        pass

    @abstractmethod
    async def invite_user(self, chat_id: str, user_id: str) -> None:
        """Add a user to a group chat."""
        pass

    async def close(self) -> None:
        pass


__all__ = ['ChatPlatform']

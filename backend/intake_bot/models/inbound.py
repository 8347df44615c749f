"""
Normalized inbound chat message.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


P2P_CHAT_TYPE = "p2p"


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    IMAGE = "image"
    AUDIO = "audio"
    MEDIA = "media"
    STICKER = "sticker"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'MessageType':
        try:
            return cls(value or "")
        except ValueError:
            return cls.OTHER


class InboundMessage(BaseModel):
    """One message delivered by the chat platform."""

    chat_id: str = Field(..., min_length=1)
    sender_id: str = Field(default="")
    sender_name: Optional[str] = None
    message_id: str = Field(..., min_length=1)
    chat_type: str = Field(default=P2P_CHAT_TYPE)
    message_type: MessageType = Field(default=MessageType.TEXT)
    text: str = Field(default="")
    file_key: Optional[str] = None
    file_name: Optional[str] = None
    content_missing: bool = Field(
        default=False,
        description="Delivered without content; fetch it before processing"
    )

    @property
    def is_text(self) -> bool:
        return self.message_type == MessageType.TEXT

    @property
    def is_private(self) -> bool:
        return self.chat_type == P2P_CHAT_TYPE

    @property
    def resource_type(self) -> str:
        return "image" if self.message_type == MessageType.IMAGE else "file"


__all__ = ['MessageType', 'InboundMessage', 'P2P_CHAT_TYPE']

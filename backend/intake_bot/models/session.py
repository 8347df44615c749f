"""
Persisted conversation session.

A session is keyed by chat identity and holds everything collected so far:
the message log, the collected field values, attached files and, for
suggestions, the verbatim suggestion text.
"""
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .schema import FieldSchema, FieldSpec

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationMode(str, Enum):
    UNSPECIFIED = "unspecified"
    ISSUE_REPORT = "issue_report"
    SUGGESTION = "suggestion"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class FileRecord(BaseModel):
    """A file the user attached, as referenced in the originating chat."""

    origin_message_id: str = Field(..., min_length=1)
    origin_file_ref: str = Field(..., min_length=1)
    file_name: str = Field(default="")
    resource_type: str = Field(
        default="file",
        description="Download resource type (file or image)"
    )

    model_config = {"frozen": True}


class Session(BaseModel):
    """
    Conversation session.

    ``messages`` and ``files`` are append-only; ``collected_fields`` never
    holds an empty value (absence means "not collected yet").
    """

    session_key: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Chat identity the session belongs to"
    )

    user_id: str = Field(
        default="",
        max_length=255,
        description="Originating user identity"
    )

    display_name: Optional[str] = Field(
        None,
        max_length=255,
        description="Originating user display name"
    )

    mode: ConversationMode = Field(
        default=ConversationMode.UNSPECIFIED,
        description="Conversation mode"
    )

    messages: List[ChatMessage] = Field(default_factory=list)

    collected_fields: Dict[str, str] = Field(default_factory=dict)

    files: List[FileRecord] = Field(default_factory=list)

    suggestion_text: str = Field(default="")

    created_at: datetime = Field(default_factory=utc_now)

    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('collected_fields')
    @classmethod
    def drop_empty_values(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {k: val for k, val in v.items() if val}

    # ===========================
    # Mutation
    # ===========================

    def touch(self) -> None:
        self.updated_at = utc_now()

    def add_message(self, role: MessageRole, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self.messages.append(message)
        self.touch()
        return message

    def add_file(self, record: FileRecord) -> None:
        self.files.append(record)
        self.touch()

    def set_field(self, key: str, value: str) -> None:
        if not value:
            raise ValueError(f"Refusing to store empty value for field {key!r}")
        self.collected_fields[key] = value
        self.touch()

    def enter_mode(self, mode: ConversationMode) -> None:
        """
        Move the session into an established mode.

        A session never goes back to UNSPECIFIED and never switches between
        ISSUE_REPORT and SUGGESTION once classified.
        """
        if mode == ConversationMode.UNSPECIFIED:
            raise ValueError("A session cannot return to the unspecified mode")

        if self.mode == mode:
            return

        if self.mode != ConversationMode.UNSPECIFIED:
            raise ValueError(f"Illegal mode transition: {self.mode.value} -> {mode.value}")

        self.mode = mode
        self.touch()

    def update_identity(self, user_id: str, display_name: Optional[str]) -> None:
        self.user_id = user_id
        self.display_name = display_name
        self.touch()

    # ===========================
    # Queries
    # ===========================

    def is_complete(self, schema: FieldSchema) -> bool:
        return schema.is_complete(self.collected_fields)

    def missing_fields(self, schema: FieldSchema) -> List[FieldSpec]:
        return schema.missing(self.collected_fields)

    @property
    def has_files(self) -> bool:
        return bool(self.files)

    # ===========================
    # Serialization
    # ===========================

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        return cls.model_validate(data)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> 'Session':
        return cls.from_dict(json.loads(json_str))


__all__ = [
    'ConversationMode',
    'MessageRole',
    'ChatMessage',
    'FileRecord',
    'Session',
    'utc_now',
]

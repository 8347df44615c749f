"""
Data model: field schema, sessions and inbound messages.
"""
from .inbound import InboundMessage, MessageType, P2P_CHAT_TYPE
from .schema import DEFAULT_FIELDS, DEFAULT_SCHEMA, FieldSchema, FieldSpec
from .session import (
    ChatMessage,
    ConversationMode,
    FileRecord,
    MessageRole,
    Session,
    utc_now,
)

__all__ = [
    'FieldSpec',
    'FieldSchema',
    'DEFAULT_FIELDS',
    'DEFAULT_SCHEMA',
    'ConversationMode',
    'MessageRole',
    'ChatMessage',
    'FileRecord',
    'Session',
    'utc_now',
    'InboundMessage',
    'MessageType',
    'P2P_CHAT_TYPE',
]

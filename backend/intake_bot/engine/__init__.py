"""
Conversation engine: mode transitions, field merging and response rendering.
"""
from .conversation_engine import (
    ESCALATE_PREFIX,
    ConversationEngine,
    is_escalation,
    next_mode,
    strip_escalation_marker,
)
from .merge import FieldChange, merge_extraction

__all__ = [
    'ESCALATE_PREFIX',
    'ConversationEngine',
    'FieldChange',
    'merge_extraction',
    'is_escalation',
    'next_mode',
    'strip_escalation_marker',
]

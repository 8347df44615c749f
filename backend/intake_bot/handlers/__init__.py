"""
Inbound message handling and hand-off.
"""
from .escalation import EscalationPipeline, EscalationReport
from .message_handler import (
    CONTEXT_CLEARED_TEXT,
    NOTHING_TO_SUBMIT_TEXT,
    PROCESSING_ERROR_TEXT,
    SUBMISSION_FAILED_TEXT,
    MessageHandler,
)

__all__ = [
    'EscalationPipeline',
    'EscalationReport',
    'MessageHandler',
    'CONTEXT_CLEARED_TEXT',
    'NOTHING_TO_SUBMIT_TEXT',
    'PROCESSING_ERROR_TEXT',
    'SUBMISSION_FAILED_TEXT',
]

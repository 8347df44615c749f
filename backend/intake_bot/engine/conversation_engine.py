"""
Conversation engine.

Drives one session through the intake conversation: classifies the session
as an issue report or a suggestion, collects fields from each message via
the configured extractor, and decides when the case is ready for hand-off.

Responses that must be delivered and then handed off start with
``ESCALATE_PREFIX``; callers strip the marker with
``strip_escalation_marker`` before sending.
"""
import logging
from typing import Dict, Optional, Sequence

from ..extraction.base import FieldExtractor
from ..models.inbound import InboundMessage, MessageType
from ..models.schema import FieldSchema
from ..models.session import ConversationMode, FileRecord, MessageRole, Session
from ..session.session_store import SessionStore
from ..utils.best_effort import best_effort
from . import rendering
from .merge import FieldChange, merge_extraction

logger = logging.getLogger(__name__)


ESCALATE_PREFIX = "ESCALATE:"

DEFAULT_ESCALATION_HINT = "转人工"


def is_escalation(response: str) -> bool:
    return response.startswith(ESCALATE_PREFIX)


def strip_escalation_marker(response: str) -> str:
    if is_escalation(response):
        return response[len(ESCALATE_PREFIX):]
    return response


def is_suggestion(text: str, prefixes: Sequence[str]) -> bool:
    lowered = text.strip().lower()
    return any(prefix and lowered.startswith(prefix.lower()) for prefix in prefixes)


def next_mode(
    current: ConversationMode,
    message_type: MessageType,
    text: str,
    suggestion_prefixes: Sequence[str]
) -> ConversationMode:
    """
    Mode transition function.

    - an established mode never changes
    - non-text input classifies the session as an issue report
    - text starting with a suggestion prefix classifies it as a suggestion
    - any other text classifies it as an issue report
    """
    if current != ConversationMode.UNSPECIFIED:
        return current

    if message_type != MessageType.TEXT:
        return ConversationMode.ISSUE_REPORT

    if is_suggestion(text, suggestion_prefixes):
        return ConversationMode.SUGGESTION

    return ConversationMode.ISSUE_REPORT


def describe_attachment(message: InboundMessage) -> str:
    if message.text:
        return message.text
    if message.file_name:
        return f"上传了文件: {message.file_name}"
    return f"[{message.message_type.value}]"


class ConversationEngine:
    """
    Per-session state machine.

    The caller holds the session lock for the duration of ``process``.
    Extractor failures degrade to an empty result; store failures propagate.
    """

    def __init__(
        self,
        store: SessionStore,
        extractor: FieldExtractor,
        schema: FieldSchema,
        suggestion_prefixes: Sequence[str] = (),
        escalation_hint: str = DEFAULT_ESCALATION_HINT,
        extractor_timeout: Optional[float] = 30.0
    ):
        self.store = store
        self.extractor = extractor
        self.schema = schema
        self.suggestion_prefixes = list(suggestion_prefixes)
        self.escalation_hint = escalation_hint
        self.extractor_timeout = extractor_timeout

    async def process(self, session: Session, message: InboundMessage) -> str:
        """
        Process one inbound message for ``session``.

        Returns:
            Reply text, prefixed with ``ESCALATE_PREFIX`` when the case
            should be handed off; empty string when there is nothing to say

        Raises:
            StoreError: If the session cannot be saved
        """
        if message.message_type != MessageType.TEXT:
            return await self._process_attachment(session, message)

        text = message.text.strip()
        if not text:
            return ""

        mode = next_mode(session.mode, message.message_type, text, self.suggestion_prefixes)
        session.enter_mode(mode)

        if mode == ConversationMode.SUGGESTION:
            return await self._process_suggestion(session, text)

        return await self._process_issue_text(session, message.text)

    # ===========================
    # Mode handlers
    # ===========================

    async def _process_attachment(self, session: Session, message: InboundMessage) -> str:
        if message.file_key:
            session.add_file(FileRecord(
                origin_message_id=message.message_id,
                origin_file_ref=message.file_key,
                file_name=message.file_name or "",
                resource_type=message.resource_type,
            ))

        session.add_message(MessageRole.USER, describe_attachment(message))
        session.enter_mode(next_mode(session.mode, message.message_type, "", self.suggestion_prefixes))

        logger.info(
            f"Attachment recorded ({message.message_type.value}, files={len(session.files)})",
            extra={"session_key": session.session_key, "message_id": message.message_id}
        )

        if session.mode == ConversationMode.SUGGESTION:
            return await self._reply(
                session, rendering.render_suggestion_received(session, self.schema), escalate=True
            )

        if session.is_complete(self.schema):
            return await self._reply(
                session, rendering.render_completion(session, self.schema), escalate=True
            )

        return await self._reply(
            session,
            rendering.render_file_received(session.missing_fields(self.schema), self.escalation_hint)
        )

    async def _process_suggestion(self, session: Session, text: str) -> str:
        if session.suggestion_text:
            session.suggestion_text = f"{session.suggestion_text}\n{text}"
        else:
            session.suggestion_text = text

        session.add_message(MessageRole.USER, text)

        logger.info(
            "Suggestion received",
            extra={"session_key": session.session_key}
        )

        return await self._reply(
            session, rendering.render_suggestion_received(session, self.schema), escalate=True
        )

    async def _process_issue_text(self, session: Session, text: str) -> str:
        session.add_message(MessageRole.USER, text)

        snapshot = dict(session.collected_fields)
        extraction = await self._extract(session, text, snapshot)
        changes = merge_extraction(session, extraction, self.schema, snapshot)

        if session.is_complete(self.schema):
            logger.info(
                "All required fields collected",
                extra={"session_key": session.session_key}
            )
            return await self._reply(
                session, rendering.render_completion(session, self.schema), escalate=True
            )

        return await self._reply(session, self._collect_reply(session, changes))

    # ===========================
    # Helpers
    # ===========================

    async def _extract(self, session: Session, text: str, snapshot: Dict[str, str]) -> Dict[str, str]:
        result = await best_effort(
            "extract_fields",
            lambda: self.extractor.extract(text, dict(snapshot)),
            timeout=self.extractor_timeout,
            default={},
            session_key=session.session_key,
        )
        return result.value or {}

    def _collect_reply(self, session: Session, changes: Sequence[FieldChange]) -> str:
        if not changes and len(session.messages) <= 2:
            return rendering.render_welcome(self.schema, self.escalation_hint)

        return rendering.render_still_need(
            changes, session.missing_fields(self.schema), self.escalation_hint
        )

    async def _reply(self, session: Session, text: str, escalate: bool = False) -> str:
        session.add_message(MessageRole.ASSISTANT, text)
        await self.store.save(session)
        return f"{ESCALATE_PREFIX}{text}" if escalate else text


__all__ = [
    'ESCALATE_PREFIX',
    'ConversationEngine',
    'is_escalation',
    'strip_escalation_marker',
    'is_suggestion',
    'next_mode',
    'describe_attachment',
]

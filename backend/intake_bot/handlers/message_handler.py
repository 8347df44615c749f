"""
Inbound message handling.

For each delivered message: claim it exactly once, fetch its content when
the event arrived without it, serialize on the chat's session lock, apply
the clear / force-escalate keywords, run the conversation engine and, when
it signals completion, the escalation pipeline. The session lock stays
held until the hand-off finishes.
"""
import logging
from typing import Optional, Sequence

from ..engine.conversation_engine import ConversationEngine, is_escalation, strip_escalation_marker
from ..errors import EscalationError, StoreError
from ..messaging.base import ChatPlatform
from ..messaging.events import with_fetched_content
from ..models.inbound import InboundMessage
from ..models.session import Session
from ..session.deduper import MessageDeduper
from ..session.session_lock import SessionLockRegistry
from ..session.session_store import SessionStore
from ..utils.best_effort import best_effort
from .escalation import EscalationPipeline

logger = logging.getLogger(__name__)


CONTEXT_CLEARED_TEXT = "上下文已清除，请重新开始描述您的问题。\nContext cleared, please describe your issue again."
NOTHING_TO_SUBMIT_TEXT = "请先描述您的问题，我会帮您收集必要信息。\nPlease describe your issue first, I'll help collect the details."
PROCESSING_ERROR_TEXT = "抱歉，处理您的消息时出错了，请稍后重试。\nSorry, something went wrong, please try again later."
SUBMISSION_FAILED_TEXT = "提交失败，请稍后重试。\nSubmission failed, please try again later."


def contains_keyword(text: str, keywords: Sequence[str]) -> bool:
    lowered = text.lower()
    return any(keyword and keyword.lower() in lowered for keyword in keywords)


class MessageHandler:

    def __init__(
        self,
        engine: ConversationEngine,
        pipeline: EscalationPipeline,
        store: SessionStore,
        deduper: MessageDeduper,
        locks: SessionLockRegistry,
        platform: ChatPlatform,
        escalation_keywords: Sequence[str] = (),
        clear_keywords: Sequence[str] = (),
        send_timeout: Optional[float] = 10.0
    ):
        self.engine = engine
        self.pipeline = pipeline
        self.store = store
        self.deduper = deduper
        self.locks = locks
        self.platform = platform
        self.escalation_keywords = list(escalation_keywords)
        self.clear_keywords = list(clear_keywords)
        self.send_timeout = send_timeout

    async def handle(self, message: InboundMessage) -> None:
        log_context = {"session_key": message.chat_id, "message_id": message.message_id}

        try:
            claimed = await self.deduper.claim(message.message_id)
        except StoreError as e:
            logger.error(
                f"Dedup check failed, dropping message {message.message_id}: {e}",
                extra=log_context
            )
            return

        if not claimed:
            logger.info(f"Message {message.message_id} already processed, skipping", extra=log_context)
            return

        if not message.is_private:
            logger.info(f"Ignoring non-p2p message (chat_type={message.chat_type})", extra=log_context)
            return

        if message.content_missing:
            message = await self._fetch_content(message)

        async with self.locks.lock(message.chat_id):
            await self._handle_locked(message)

    async def _handle_locked(self, message: InboundMessage) -> None:
        if message.is_text and contains_keyword(message.text, self.clear_keywords):
            await self._clear(message)
            return

        if message.is_text and contains_keyword(message.text, self.escalation_keywords):
            await self._force_escalate(message)
            return

        try:
            session = await self.store.get_or_create(
                message.chat_id, message.sender_id, message.sender_name
            )
            response = await self.engine.process(session, message)
        except Exception as e:
            logger.error(
                f"Failed to process message {message.message_id}: {e}",
                extra={"session_key": message.chat_id, "message_id": message.message_id},
                exc_info=True
            )
            await self._reply(message, PROCESSING_ERROR_TEXT)
            return

        if not response:
            return

        if is_escalation(response):
            await self._send(message.chat_id, strip_escalation_marker(response))
            await self._escalate(session)
        else:
            await self._send(message.chat_id, response)

    async def _clear(self, message: InboundMessage) -> None:
        try:
            await self.store.clear(message.chat_id)
        except StoreError as e:
            logger.error(f"Failed to clear session {message.chat_id}: {e}")
            await self._reply(message, PROCESSING_ERROR_TEXT)
            return

        logger.info(f"Session {message.chat_id} cleared by user")
        await self._send(message.chat_id, CONTEXT_CLEARED_TEXT)

    async def _force_escalate(self, message: InboundMessage) -> None:
        try:
            session = await self.store.get(message.chat_id)
        except StoreError as e:
            logger.error(f"Failed to load session {message.chat_id}: {e}")
            await self._reply(message, PROCESSING_ERROR_TEXT)
            return

        if session is None:
            await self._send(message.chat_id, NOTHING_TO_SUBMIT_TEXT)
            return

        logger.info(f"User requested hand-off for {message.chat_id}")
        await self._escalate(session)

    async def _escalate(self, session: Session) -> None:
        try:
            await self.pipeline.run(session)
        except EscalationError as e:
            logger.error(f"Escalation failed for {session.session_key}: {e}")
            await self._send(session.session_key, SUBMISSION_FAILED_TEXT)
        except StoreError as e:
            # Case was submitted and the user notified; only the cleanup failed
            logger.error(f"Failed to clear escalated session {session.session_key}: {e}")

    async def _fetch_content(self, message: InboundMessage) -> InboundMessage:
        logger.info(
            f"Message {message.message_id} delivered without content, fetching via API",
            extra={"session_key": message.chat_id, "message_id": message.message_id}
        )
        fetched = await best_effort(
            "get_message",
            lambda: self.platform.get_message(message.message_id),
            timeout=self.send_timeout,
            session_key=message.chat_id
        )
        if not fetched.success:
            return message

        raw_type, raw_content = fetched.value
        return with_fetched_content(message, raw_type, raw_content)

    async def _send(self, chat_id: str, text: str) -> None:
        await best_effort(
            "send_text",
            lambda: self.platform.send_text(chat_id, text),
            timeout=self.send_timeout,
            session_key=chat_id
        )

    async def _reply(self, message: InboundMessage, text: str) -> None:
        await best_effort(
            "reply_text",
            lambda: self.platform.reply_text(message.message_id, text),
            timeout=self.send_timeout,
            session_key=message.chat_id
        )


__all__ = [
    'MessageHandler',
    'contains_keyword',
    'CONTEXT_CLEARED_TEXT',
    'NOTHING_TO_SUBMIT_TEXT',
    'PROCESSING_ERROR_TEXT',
    'SUBMISSION_FAILED_TEXT',
]

"""
Hand-off of a session to the human support chat.

Steps, in order:
1. invite the user into the support chat (best effort)
2. post the case summary, mentioning the user (mandatory; its message id
   is the thread root for the files)
3. relay every attached file into that thread (each file best effort)
4. tell the user the case was submitted (best effort)
5. clear the session
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..engine import rendering
from ..errors import EscalationError
from ..messaging.base import ChatPlatform
from ..models.schema import FieldSchema
from ..models.session import FileRecord, Session
from ..session.session_store import SessionStore
from ..utils.best_effort import best_effort

logger = logging.getLogger(__name__)


DEFAULT_ATTACHMENT_NAME = "attachment"


@dataclass
class EscalationReport:
    session_key: str
    invited: bool = False
    root_message_id: Optional[str] = None
    relayed_files: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    notified: bool = False
    cleared: bool = False


class EscalationPipeline:
    """
    Drives the hand-off of one session.

    Only the summary post can abort the pipeline (EscalationError). A
    failure to clear the session afterwards surfaces as StoreError.
    """

    def __init__(
        self,
        platform: ChatPlatform,
        store: SessionStore,
        schema: FieldSchema,
        escalation_chat_id: str,
        step_timeout: Optional[float] = 10.0
    ):
        self.platform = platform
        self.store = store
        self.schema = schema
        self.escalation_chat_id = escalation_chat_id
        self.step_timeout = step_timeout

    async def run(self, session: Session) -> EscalationReport:
        """
        Hand the session off to the support chat.

        Raises:
            EscalationError: If the case summary could not be posted
            StoreError: If the session could not be cleared afterwards
        """
        report = EscalationReport(session_key=session.session_key)
        log_context = {"session_key": session.session_key}

        logger.info(
            f"Escalating session {session.session_key} "
            f"(mode={session.mode.value}, files={len(session.files)})",
            extra=log_context
        )

        # 1. Invite
        if session.user_id:
            invite = await best_effort(
                "invite_user",
                lambda: self.platform.invite_user(self.escalation_chat_id, session.user_id),
                timeout=self.step_timeout,
                **log_context
            )
            report.invited = invite.success

        # 2. Summary post
        report.root_message_id = await self._post_summary(session)

        # 3. Files
        if session.files and not report.root_message_id:
            logger.warning(
                "Summary post returned no message id, skipping file relay",
                extra=log_context
            )
        elif session.files:
            for record in session.files:
                relayed = await best_effort(
                    "relay_file",
                    lambda record=record: self._relay_file(report.root_message_id, record),
                    timeout=self.step_timeout,
                    file_key=record.origin_file_ref,
                    **log_context
                )
                target = report.relayed_files if relayed.success else report.failed_files
                target.append(record.origin_file_ref)

        # 4. Notify
        notice = rendering.render_submitted_notice(report.invited)
        notified = await best_effort(
            "notify_user",
            lambda: self.platform.send_text(session.session_key, notice),
            timeout=self.step_timeout,
            **log_context
        )
        report.notified = notified.success

        # 5. Clear
        await self.store.clear(session.session_key)
        report.cleared = True

        logger.info(
            f"Escalation completed for {session.session_key} "
            f"(relayed={len(report.relayed_files)}, failed={len(report.failed_files)})",
            extra=log_context
        )
        return report

    async def _post_summary(self, session: Session) -> str:
        title = rendering.render_handoff_title(session)
        summary = rendering.render_handoff_summary(session, self.schema)

        try:
            return await asyncio.wait_for(
                self.platform.send_post(
                    self.escalation_chat_id,
                    title,
                    summary,
                    mention_user_id=session.user_id or None
                ),
                timeout=self.step_timeout
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to post case summary for {session.session_key}: {e}",
                extra={"session_key": session.session_key},
                exc_info=True
            )
            raise EscalationError(f"Failed to post case summary: {e}") from e

    async def _relay_file(self, root_message_id: str, record: FileRecord) -> str:
        data, downloaded_name = await self.platform.download_resource(
            record.origin_message_id, record.origin_file_ref, record.resource_type
        )

        file_name = downloaded_name or record.file_name or DEFAULT_ATTACHMENT_NAME

        file_key = await self.platform.upload_file(file_name, data)
        await self.platform.reply_file_in_thread(root_message_id, file_key)

        logger.debug(f"Relayed {file_name} ({len(data)} bytes) as {file_key}")
        return file_key


__all__ = ['EscalationPipeline', 'EscalationReport']

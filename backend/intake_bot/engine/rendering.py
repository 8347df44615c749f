"""
User-facing and hand-off texts.
"""
from typing import List, Sequence

from ..models.schema import FieldSchema, FieldSpec
from ..models.session import ConversationMode, Session
from .merge import FieldChange


ISSUE_REPORT_TITLE = "用户问题反馈 / User Issue Report"
SUGGESTION_TITLE = "用户建议反馈 / User Suggestion"

SUBMISSION_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _bullets(fields: Sequence[FieldSpec]) -> str:
    return "".join(f"- {spec.label}\n" for spec in fields)


def _escalation_hint(keyword: str) -> str:
    return f"\n回复「{keyword}」可直接提交当前信息。\nReply \"{keyword}\" to submit what you have now."


def render_welcome(schema: FieldSchema, escalation_keyword: str) -> str:
    parts = [
        "您好，我是技术支持助手。\nHi, I'm the support assistant.\n\n",
        "为了帮您处理问题，请提供以下信息 / Please provide:\n",
        _bullets(schema.required),
    ]
    if schema.optional:
        parts.append("\n可选信息 / Optional:\n")
        parts.append(_bullets(schema.optional))
    parts.append("\n您可以一次性告诉我，也可以分多次发送。\n")
    parts.append("如有日志文件，可直接发送附件。")
    parts.append(_escalation_hint(escalation_keyword))
    return "".join(parts)


def render_change_notes(changes: Sequence[FieldChange]) -> str:
    notes = []
    for change in changes:
        if change.is_update:
            notes.append(f"{change.label}: {change.value}（已更新 / updated）")
        else:
            notes.append(f"{change.label}: {change.value}")
    return "、".join(notes)


def render_still_need(
    changes: Sequence[FieldChange],
    missing: Sequence[FieldSpec],
    escalation_keyword: str
) -> str:
    parts: List[str] = []

    if changes:
        parts.append(f"已记录 / Recorded: {render_change_notes(changes)}\n\n")
        parts.append("还需要以下信息 / Still needed:\n")
    else:
        parts.append("请继续提供以下信息 / Please continue with:\n")

    parts.append(_bullets(missing))
    parts.append(_escalation_hint(escalation_keyword))
    return "".join(parts)


def render_file_received(missing: Sequence[FieldSpec], escalation_keyword: str) -> str:
    return (
        "收到文件，已记录。/ File received.\n\n"
        "还需要以下信息 / Still needed:\n"
        f"{_bullets(missing)}"
        f"{_escalation_hint(escalation_keyword)}"
    )


def render_user_summary(session: Session, schema: FieldSchema) -> str:
    """Filled fields as ``- label: value`` lines, in schema order."""
    lines: List[str] = []

    if session.mode == ConversationMode.SUGGESTION:
        lines.append(f"- 建议内容 / Suggestion: {session.suggestion_text}")
    else:
        for spec in schema:
            value = session.collected_fields.get(spec.key)
            if value:
                lines.append(f"- {spec.label}: {value}")

    if session.has_files:
        lines.append("- 日志文件 / Log files: 已上传 / Uploaded")

    return "".join(f"{line}\n" for line in lines)


def render_completion(session: Session, schema: FieldSchema) -> str:
    return (
        "信息收集完毕！/ All set!\n\n"
        f"{render_user_summary(session, schema)}"
        "\n正在为您提交到技术支持团队... / Submitting to the support team..."
    )


def render_suggestion_received(session: Session, schema: FieldSchema) -> str:
    return (
        "感谢您的建议！/ Thanks for your suggestion!\n\n"
        f"{render_user_summary(session, schema)}"
        "\n正在为您提交到技术支持团队... / Submitting to the support team..."
    )


def render_handoff_title(session: Session) -> str:
    if session.mode == ConversationMode.SUGGESTION:
        return SUGGESTION_TITLE
    return ISSUE_REPORT_TITLE


def render_handoff_summary(session: Session, schema: FieldSchema) -> str:
    """Body of the case post in the hand-off chat."""
    lines = [f"【提交时间】{session.updated_at.strftime(SUBMISSION_TIME_FORMAT)}"]

    if session.mode == ConversationMode.SUGGESTION:
        lines.append("【类型】建议反馈")
        lines.append("")
        lines.append(f"【内容】{session.suggestion_text}")
    else:
        lines.append("【类型】问题反馈")
        lines.append("")
        for spec in schema:
            value = session.collected_fields.get(spec.key)
            if value:
                lines.append(f"【{spec.heading}】{value}")

    if session.has_files:
        lines.append("")
        lines.append("【日志文件】已上传（见话题内附件）")

    return "\n".join(lines) + "\n"


def render_submitted_notice(invited: bool) -> str:
    text = (
        "✅ 您的问题已提交给技术支持团队，我们会尽快处理！\n"
        "Your issue has been submitted to the support team. We'll handle it ASAP!"
    )
    if invited:
        text += (
            "\n\n您已被邀请到技术支持群，可以在群里直接跟进问题。\n"
            "You've been invited to the support group where you can follow up directly."
        )
    return text


__all__ = [
    'ISSUE_REPORT_TITLE',
    'SUGGESTION_TITLE',
    'render_welcome',
    'render_change_notes',
    'render_still_need',
    'render_file_received',
    'render_user_summary',
    'render_completion',
    'render_suggestion_received',
    'render_handoff_title',
    'render_handoff_summary',
    'render_submitted_notice',
]

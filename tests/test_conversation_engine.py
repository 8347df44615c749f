"""
Tests for the conversation engine.
"""
from unittest.mock import AsyncMock

import pytest

from intake_bot.engine import (
    ESCALATE_PREFIX,
    is_escalation,
    next_mode,
    strip_escalation_marker,
)
from intake_bot.errors import ExtractionError, StoreError
from intake_bot.models import ConversationMode, MessageType
from intake_bot.models.session import MessageRole


PREFIXES = ["建议", "suggestion", "feedback"]


# ===========================
# Mode Transition Tests
# ===========================

@pytest.mark.unit
@pytest.mark.parametrize("text,expected", [
    ("feedback: the button is broken", ConversationMode.SUGGESTION),
    ("Suggestion add dark mode", ConversationMode.SUGGESTION),
    ("建议增加夜间模式", ConversationMode.SUGGESTION),
    ("the app crashes", ConversationMode.ISSUE_REPORT),
    ("my feedback is", ConversationMode.ISSUE_REPORT),
])
def test_next_mode_from_unspecified_text(text, expected):
    assert next_mode(ConversationMode.UNSPECIFIED, MessageType.TEXT, text, PREFIXES) == expected


@pytest.mark.unit
@pytest.mark.parametrize("message_type", [MessageType.FILE, MessageType.IMAGE, MessageType.OTHER])
def test_next_mode_non_text_is_issue_report(message_type):
    assert next_mode(ConversationMode.UNSPECIFIED, message_type, "", PREFIXES) == ConversationMode.ISSUE_REPORT


@pytest.mark.unit
@pytest.mark.parametrize("current", [ConversationMode.ISSUE_REPORT, ConversationMode.SUGGESTION])
def test_established_mode_never_changes(current):
    for text in ("feedback: x", "crash"):
        assert next_mode(current, MessageType.TEXT, text, PREFIXES) == current
    assert next_mode(current, MessageType.FILE, "", PREFIXES) == current


@pytest.mark.unit
def test_escalation_marker_helpers():
    response = f"{ESCALATE_PREFIX}hello"

    assert is_escalation(response)
    assert strip_escalation_marker(response) == "hello"
    assert not is_escalation("hello")
    assert strip_escalation_marker("hello") == "hello"


# ===========================
# Issue Report Flow Tests
# ===========================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_collection_then_completion(engine, extractor, store, new_session, make_message):
    session = new_session()
    extractor.queue = [{"a": "v1"}, {"b": "x"}]

    first = await engine.process(session, make_message("version is v1"))

    assert not is_escalation(first)
    assert "- Field B" in first
    assert "- Field A" not in first
    assert "A: v1" in first
    assert session.mode == ConversationMode.ISSUE_REPORT

    second = await engine.process(session, make_message("b is x"))

    assert is_escalation(second)
    assert session.is_complete(engine.schema)
    assert "信息收集完毕" in second

    stored = await store.get("oc_user1")
    assert stored.collected_fields == {"a": "v1", "b": "x"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_extractor_receives_snapshot(engine, extractor, new_session, make_message):
    session = new_session()
    session.set_field("a", "v1")

    await engine.process(session, make_message("hello"))

    assert extractor.calls == [("hello", {"a": "v1"})]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_welcome_on_first_message_without_fields(engine, new_session, make_message):
    session = new_session()

    response = await engine.process(session, make_message("hi"))

    assert "您好" in response
    assert "- Field A" in response
    assert "可选信息 / Optional" in response
    assert "回复「转人工」" in response


@pytest.mark.unit
@pytest.mark.asyncio
async def test_later_message_without_fields_asks_to_continue(engine, new_session, make_message):
    session = new_session()
    await engine.process(session, make_message("hi"))

    response = await engine.process(session, make_message("still here"))

    assert "请继续提供以下信息" in response
    assert "您好" not in response


@pytest.mark.unit
@pytest.mark.asyncio
async def test_correction_is_noted_as_update(engine, extractor, new_session, make_message):
    session = new_session()
    session.set_field("a", "v1")
    extractor.queue = [{"a": "v2"}]

    response = await engine.process(session, make_message("actually v2"))

    assert "A: v2（已更新 / updated）" in response
    assert session.collected_fields["a"] == "v2"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_extractor_failure_fails_open(engine, extractor, store, new_session, make_message):
    session = new_session()
    extractor.error = ExtractionError("model down")

    response = await engine.process(session, make_message("hello"))

    assert not is_escalation(response)
    assert session.collected_fields == {}
    assert await store.get("oc_user1") is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_text_is_a_no_op(engine, store, new_session, make_message):
    session = new_session()

    assert await engine.process(session, make_message("   ")) == ""
    assert session.messages == []
    assert session.mode == ConversationMode.UNSPECIFIED
    assert await store.get("oc_user1") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_failure_propagates(engine, store, new_session, make_message):
    store.save = AsyncMock(side_effect=StoreError("redis down"))

    with pytest.raises(StoreError):
        await engine.process(new_session(), make_message("hello"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_history_records_both_roles(engine, new_session, make_message):
    session = new_session()

    await engine.process(session, make_message("hello"))

    assert [m.role for m in session.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
    assert session.messages[0].content == "hello"


# ===========================
# Suggestion Flow Tests
# ===========================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_suggestion_escalates_immediately(engine, extractor, new_session, make_message):
    session = new_session()

    response = await engine.process(session, make_message("feedback: the button is broken"))

    assert session.mode == ConversationMode.SUGGESTION
    assert session.suggestion_text == "feedback: the button is broken"
    assert is_escalation(response)
    assert "感谢您的建议" in response
    assert extractor.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_suggestion_follow_up_is_appended(engine, new_session, make_message):
    session = new_session()
    await engine.process(session, make_message("建议 add dark mode"))

    response = await engine.process(session, make_message("and bigger fonts"))

    assert session.suggestion_text == "建议 add dark mode\nand bigger fonts"
    assert is_escalation(response)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_issue_session_stays_issue_on_suggestion_prefix(engine, extractor, new_session, make_message):
    session = new_session()
    await engine.process(session, make_message("crash on start"))

    await engine.process(session, make_message("feedback: also slow"))

    assert session.mode == ConversationMode.ISSUE_REPORT
    assert session.suggestion_text == ""
    assert len(extractor.calls) == 2


# ===========================
# Attachment Flow Tests
# ===========================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_is_recorded(engine, store, new_session, make_message):
    session = new_session()
    message = make_message(
        "上传了文件: app.log",
        message_type=MessageType.FILE,
        message_id="om_file",
        file_key="file_k1",
        file_name="app.log",
    )

    response = await engine.process(session, message)

    assert session.mode == ConversationMode.ISSUE_REPORT
    assert len(session.files) == 1
    record = session.files[0]
    assert record.origin_message_id == "om_file"
    assert record.origin_file_ref == "file_k1"
    assert record.file_name == "app.log"
    assert record.resource_type == "file"
    assert "收到文件" in response
    assert "- Field A" in response
    assert not is_escalation(response)
    assert (await store.get("oc_user1")).has_files


@pytest.mark.unit
@pytest.mark.asyncio
async def test_image_uses_image_resource_type(engine, new_session, make_message):
    session = new_session()
    message = make_message("[图片]", message_type=MessageType.IMAGE, file_key="img_k1")

    await engine.process(session, message)

    assert session.files[0].resource_type == "image"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_on_complete_session_escalates(engine, new_session, make_message):
    session = new_session()
    session.enter_mode(ConversationMode.ISSUE_REPORT)
    session.set_field("a", "1")
    session.set_field("b", "2")

    response = await engine.process(
        session, make_message(message_type=MessageType.FILE, file_key="k", file_name="x.log")
    )

    assert is_escalation(response)
    assert "日志文件 / Log files" in response


@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_in_suggestion_mode_escalates(engine, new_session, make_message):
    session = new_session()
    await engine.process(session, make_message("feedback: ui"))

    response = await engine.process(
        session, make_message(message_type=MessageType.IMAGE, file_key="img")
    )

    assert session.mode == ConversationMode.SUGGESTION
    assert len(session.files) == 1
    assert is_escalation(response)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_attachment_without_key_is_described(engine, new_session, make_message):
    session = new_session()

    await engine.process(session, make_message("[表情包]", message_type=MessageType.STICKER))

    assert session.files == []
    assert session.messages[0].content == "[表情包]"

"""
Pytest configuration and shared fixtures for testing.
Provides test settings, in-memory stores, and fakes for the extractor and
the chat platform.
"""
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# Set testing environment before importing the package
os.environ["INTAKE_ENVIRONMENT"] = "testing"
os.environ["INTAKE_SESSION_STORE_TYPE"] = "in_memory"
os.environ["INTAKE_EXTRACTOR_TYPE"] = "rule"
os.environ["INTAKE_ESCALATION_CHAT_ID"] = "oc_support"
os.environ["INTAKE_REDIS_URL"] = "redis://localhost:6379/15"  # Test DB

from intake_bot.config import Settings
from intake_bot.config.settings import DEFAULT_CLEAR_CONTEXT_KEYWORDS, DEFAULT_ESCALATION_KEYWORDS
from intake_bot.engine import ConversationEngine
from intake_bot.extraction.base import FieldExtractor
from intake_bot.handlers import EscalationPipeline, MessageHandler
from intake_bot.messaging.base import ChatPlatform
from intake_bot.models import (
    FieldSchema,
    FieldSpec,
    InboundMessage,
    MessageType,
    Session,
)
from intake_bot.session import (
    InMemoryMessageDeduper,
    InMemorySessionStore,
    SessionLockRegistry,
)


# ===========================
# Fakes
# ===========================

class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExtractor(FieldExtractor):
    """
    Extractor returning scripted results.

    ``results`` maps message text to an extraction result; ``queue`` results
    are returned in order for any text. ``error`` is raised when set.
    """

    def __init__(self, schema: FieldSchema):
        super().__init__(schema)
        self.results: Dict[str, Dict[str, str]] = {}
        self.queue: List[Dict[str, str]] = []
        self.error: Optional[Exception] = None
        self.calls: List[Tuple[str, Dict[str, str]]] = []

    async def extract(self, text: str, collected: Dict[str, str]) -> Dict[str, str]:
        self.calls.append((text, dict(collected)))

        if self.error is not None:
            raise self.error

        if text in self.results:
            return dict(self.results[text])
        if self.queue:
            return dict(self.queue.pop(0))
        return {}


class FakePlatform(ChatPlatform):
    """
    Chat platform that records every call.

    ``failures`` maps a method name to an exception raised by that method;
    ``messages`` maps message ids to (type, content) served by get_message;
    ``download_failures`` holds file keys whose download fails.
    """

    def __init__(self):
        self.calls: List[Tuple[str, tuple]] = []
        self.failures: Dict[str, Exception] = {}
        self.download_failures: Dict[str, Exception] = {}
        self.root_message_id = "om_root"
        self.messages: Dict[str, Tuple[str, str]] = {}
        self._uploads = 0

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def calls_to(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    @property
    def sent_texts(self) -> List[str]:
        return [args[1] for args in self.calls_to("send_text")]

    async def send_text(self, chat_id: str, text: str) -> str:
        self._record("send_text", chat_id, text)
        return f"om_text_{len(self.calls)}"

    async def reply_text(self, message_id: str, text: str) -> str:
        self._record("reply_text", message_id, text)
        return f"om_reply_{len(self.calls)}"

    async def send_post(self, chat_id, title, text, mention_user_id=None) -> str:
        self._record("send_post", chat_id, title, text, mention_user_id)
        return self.root_message_id

    async def upload_file(self, file_name: str, data: bytes) -> str:
        self._record("upload_file", file_name, data)
        self._uploads += 1
        return f"file_new_{self._uploads}"

    async def reply_file_in_thread(self, root_message_id: str, file_key: str) -> str:
        self._record("reply_file_in_thread", root_message_id, file_key)
        return f"om_thread_{len(self.calls)}"

    async def download_resource(self, message_id, file_key, resource_type="file"):
        self._record("download_resource", message_id, file_key, resource_type)
        if file_key in self.download_failures:
            raise self.download_failures[file_key]
        return f"bytes-of-{file_key}".encode(), f"{file_key}.log"

    async def get_message(self, message_id: str) -> Tuple[str, str]:
        self._record("get_message", message_id)
        return self.messages[message_id]

    async def invite_user(self, chat_id: str, user_id: str) -> None:
        self._record("invite_user", chat_id, user_id)


# ===========================
# Settings Fixtures
# ===========================

@pytest.fixture
def test_settings() -> Settings:
    """Settings for the testing environment."""
    return Settings(
        environment="testing",
        session_store_type="in_memory",
        extractor_type="rule",
        escalation_chat_id="oc_support",
        feishu_app_id="cli_test",
        feishu_app_secret="secret",
        external_call_timeout_seconds=2.0,
        extractor_timeout_seconds=2.0,
        shutdown_grace_seconds=2.0,
    )


@pytest.fixture
def ab_schema() -> FieldSchema:
    """Two required fields and one optional field."""
    return FieldSchema([
        FieldSpec(key="a", label="Field A", short_label="A"),
        FieldSpec(key="b", label="Field B", short_label="B"),
        FieldSpec(key="note", label="Note", required=False),
    ])


# ===========================
# Component Fixtures
# ===========================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore(ttl_seconds=600)


@pytest.fixture
def deduper(clock) -> InMemoryMessageDeduper:
    return InMemoryMessageDeduper(ttl_seconds=86400, timer=clock)


@pytest.fixture
def locks() -> SessionLockRegistry:
    return SessionLockRegistry(idle_ttl_seconds=60, max_idle=100)


@pytest.fixture
def extractor(ab_schema) -> FakeExtractor:
    return FakeExtractor(ab_schema)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def engine(store, extractor, ab_schema) -> ConversationEngine:
    return ConversationEngine(
        store=store,
        extractor=extractor,
        schema=ab_schema,
        suggestion_prefixes=["建议", "suggestion", "feedback"],
        escalation_hint="转人工",
        extractor_timeout=2.0,
    )


@pytest.fixture
def pipeline(platform, store, ab_schema) -> EscalationPipeline:
    return EscalationPipeline(
        platform=platform,
        store=store,
        schema=ab_schema,
        escalation_chat_id="oc_support",
        step_timeout=2.0,
    )


@pytest.fixture
def handler(engine, pipeline, store, deduper, locks, platform) -> MessageHandler:
    return MessageHandler(
        engine=engine,
        pipeline=pipeline,
        store=store,
        deduper=deduper,
        locks=locks,
        platform=platform,
        escalation_keywords=DEFAULT_ESCALATION_KEYWORDS,
        clear_keywords=DEFAULT_CLEAR_CONTEXT_KEYWORDS,
        send_timeout=2.0,
    )


# ===========================
# Factory Fixtures
# ===========================

@pytest.fixture
def make_message() -> Callable[..., InboundMessage]:
    """Build inbound messages with sensible defaults."""
    counter = {"n": 0}

    def _make(
        text: str = "",
        chat_id: str = "oc_user1",
        message_type: MessageType = MessageType.TEXT,
        message_id: Optional[str] = None,
        **kwargs: Any
    ) -> InboundMessage:
        counter["n"] += 1
        return InboundMessage(
            chat_id=chat_id,
            sender_id=kwargs.pop("sender_id", "ou_user1"),
            message_id=message_id or f"om_{counter['n']}",
            chat_type=kwargs.pop("chat_type", "p2p"),
            message_type=message_type,
            text=text,
            **kwargs
        )

    return _make


@pytest.fixture
def new_session() -> Callable[..., Session]:
    def _make(session_key: str = "oc_user1", **kwargs: Any) -> Session:
        return Session(session_key=session_key, user_id=kwargs.pop("user_id", "ou_user1"), **kwargs)

    return _make



# ===========================
# Pytest Configuration
# ===========================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "requires_redis: marks tests requiring Redis connection"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests based on their location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)

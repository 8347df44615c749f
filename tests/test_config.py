"""
Tests for service settings.
"""
import pytest
from pydantic import ValidationError

from intake_bot.config import Settings
from intake_bot.config.settings import DEFAULT_ESCALATION_KEYWORDS


@pytest.mark.unit
def test_defaults(test_settings):
    assert test_settings.session_key_prefix == "intake:conv"
    assert test_settings.session_ttl_seconds == 600
    assert test_settings.dedup_key_prefix == "intake:processed"
    assert test_settings.dedup_ttl_seconds == 86400
    assert test_settings.llm_temperature == 0.1
    assert test_settings.escalation_keywords == DEFAULT_ESCALATION_KEYWORDS
    assert test_settings.get_field_schema().keys[0] == "issue"


@pytest.mark.unit
@pytest.mark.parametrize("word", ["reset", "human", "agent"])
def test_default_triggers_ignore_ordinary_words(test_settings, word):
    text = f"the app shows a {word} button"

    for keyword in test_settings.escalation_keywords + test_settings.clear_context_keywords:
        assert keyword.lower() not in text


@pytest.mark.unit
def test_keyword_lists_accept_comma_separated_and_json():
    settings = Settings(
        environment="testing",
        escalation_keywords="转人工, human ,",
        clear_context_keywords='["reset", "/clear"]',
    )

    assert settings.escalation_keywords == ["转人工", "human"]
    assert settings.clear_context_keywords == ["reset", "/clear"]


@pytest.mark.unit
def test_keyword_lists_from_environment(monkeypatch):
    monkeypatch.setenv("INTAKE_SUGGESTION_PREFIXES", "idea,建议")

    settings = Settings()

    assert settings.suggestion_prefixes == ["idea", "建议"]


@pytest.mark.unit
def test_field_schema_from_json_string():
    settings = Settings(
        environment="testing",
        field_schema='[{"key": "x", "label": "X"}, {"key": "y", "label": "Y", "required": false}]',
    )

    schema = settings.get_field_schema()
    assert schema.keys == ["x", "y"]
    assert [f.key for f in schema.required] == ["x"]


@pytest.mark.unit
def test_field_schema_needs_a_required_field():
    with pytest.raises(ValidationError):
        Settings(environment="testing", field_schema='[{"key": "x", "label": "X", "required": false}]')


@pytest.mark.unit
def test_invalid_choices_rejected():
    with pytest.raises(ValidationError):
        Settings(environment="staging")

    with pytest.raises(ValidationError):
        Settings(environment="testing", session_store_type="memcached")


@pytest.mark.unit
def test_production_requires_platform_settings():
    with pytest.raises(ValidationError, match="escalation_chat_id"):
        Settings(environment="production", feishu_app_id="cli", feishu_app_secret="s", escalation_chat_id="")


@pytest.mark.unit
def test_llm_key_requires_model_and_url():
    with pytest.raises(ValidationError):
        Settings(environment="testing", extractor_type="llm", llm_api_key="sk-test")


@pytest.mark.unit
def test_secrets_are_masked(test_settings):
    dumped = test_settings.safe_dump()

    assert test_settings.get_feishu_app_secret() == "secret"
    assert "secret" not in str(dumped["feishu_app_secret"])

"""
Service configuration.
Every setting can be overridden through an ``INTAKE_``-prefixed environment
variable or a ``.env`` file.

List settings (keyword triggers, field schema) accept a real list, a JSON
array string, or a comma-separated string.
"""
import json
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models.schema import DEFAULT_FIELDS, FieldSchema, FieldSpec

logger = logging.getLogger(__name__)


DEFAULT_ESCALATION_KEYWORDS = ["转人工", "人工客服", "/human"]
DEFAULT_CLEAR_CONTEXT_KEYWORDS = ["清除上下文", "重新开始", "/clear", "/reset"]
DEFAULT_SUGGESTION_PREFIXES = ["建议", "意见", "反馈建议", "suggestion", "feedback", "advice"]


def _parse_str_list(v: Any, default: List[str]) -> List[str]:
    if v is None:
        return list(default)

    if isinstance(v, (list, tuple)):
        return [str(item).strip() for item in v if str(item).strip()]

    if isinstance(v, str):
        stripped = v.strip()
        if stripped.startswith('['):
            try:
                return _parse_str_list(json.loads(stripped), default)
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in stripped.split(',') if item.strip()]

    return v


class Settings(BaseSettings):
    """
    Intake service settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        enable_decoding=False,
    )

    # ===========================
    # Environment
    # ===========================

    environment: str = Field(
        default="development",
        description="Deployment environment (development, testing, production)"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # ===========================
    # Session Store
    # ===========================

    session_store_type: str = Field(
        default="redis",
        description="Session store backend (redis, in_memory)"
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    redis_max_connections: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum Redis connections in the pool"
    )

    redis_socket_timeout: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Redis socket timeout in seconds"
    )

    session_key_prefix: str = Field(
        default="intake:conv",
        description="Key prefix for persisted sessions"
    )

    session_ttl_seconds: int = Field(
        default=600,
        ge=60,
        description="Session TTL in seconds, refreshed on every save"
    )

    dedup_key_prefix: str = Field(
        default="intake:processed",
        description="Key prefix for processed-message claims"
    )

    dedup_ttl_seconds: int = Field(
        default=86400,
        ge=60,
        description="How long a processed message id is remembered"
    )

    # ===========================
    # Session Lock Registry
    # ===========================

    session_lock_idle_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="Idle time after which an unused session lock is evicted"
    )

    session_lock_max_idle: int = Field(
        default=10000,
        ge=1,
        description="Maximum number of idle session locks kept around"
    )

    # ===========================
    # Feishu (chat platform)
    # ===========================

    feishu_app_id: str = Field(
        default="",
        description="Feishu app id"
    )

    feishu_app_secret: Optional[SecretStr] = Field(
        default=None,
        description="Feishu app secret"
    )

    feishu_verification_token: Optional[SecretStr] = Field(
        default=None,
        description="Event callback verification token (checked when set)"
    )

    feishu_base_url: str = Field(
        default="https://open.feishu.cn/open-apis",
        description="Feishu Open API base URL"
    )

    escalation_chat_id: str = Field(
        default="",
        description="Group chat that receives handed-off cases"
    )

    feishu_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="HTTP timeout for Feishu API calls"
    )

    feishu_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient Feishu transport errors"
    )

    # ===========================
    # Field Extraction
    # ===========================

    extractor_type: str = Field(
        default="llm",
        description="Field extractor (llm, rule)"
    )

    llm_api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key for the OpenAI-compatible extraction endpoint"
    )

    llm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the OpenAI-compatible endpoint"
    )

    llm_model: Optional[str] = Field(
        default=None,
        description="Model name used for field extraction"
    )

    llm_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for extraction"
    )

    extractor_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Deadline for a single extraction call"
    )

    # ===========================
    # Keyword Triggers
    # ===========================

    escalation_keywords: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ESCALATION_KEYWORDS),
        description="Case-insensitive substrings that force a hand-off"
    )

    clear_context_keywords: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CLEAR_CONTEXT_KEYWORDS),
        description="Case-insensitive substrings that clear the session"
    )

    suggestion_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SUGGESTION_PREFIXES),
        description="Case-insensitive prefixes that mark a suggestion"
    )

    # ===========================
    # Field Schema
    # ===========================

    field_schema: List[FieldSpec] = Field(
        default_factory=lambda: list(DEFAULT_FIELDS),
        description="Ordered field descriptors collected from the user"
    )

    # ===========================
    # Timeouts / Shutdown
    # ===========================

    external_call_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Deadline for each best-effort external call"
    )

    shutdown_grace_seconds: float = Field(
        default=30.0,
        ge=0,
        description="How long shutdown waits for in-flight messages"
    )

    # ===========================
    # Validators
    # ===========================

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = v.lower()
        if v not in ('development', 'testing', 'production'):
            raise ValueError(f"Invalid environment: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"Invalid log level: {v}")
        return v

    @field_validator('session_store_type')
    @classmethod
    def validate_store_type(cls, v: str) -> str:
        v = v.lower()
        if v not in ('redis', 'in_memory'):
            raise ValueError(f"Invalid session store type: {v}")
        return v

    @field_validator('extractor_type')
    @classmethod
    def validate_extractor_type(cls, v: str) -> str:
        v = v.lower()
        if v not in ('llm', 'rule'):
            raise ValueError(f"Invalid extractor type: {v}")
        return v

    @field_validator('escalation_keywords', mode='before')
    @classmethod
    def parse_escalation_keywords(cls, v):
        """Parse escalation keywords from various formats."""
        return _parse_str_list(v, DEFAULT_ESCALATION_KEYWORDS)

    @field_validator('clear_context_keywords', mode='before')
    @classmethod
    def parse_clear_context_keywords(cls, v):
        """Parse clear-context keywords from various formats."""
        return _parse_str_list(v, DEFAULT_CLEAR_CONTEXT_KEYWORDS)

    @field_validator('suggestion_prefixes', mode='before')
    @classmethod
    def parse_suggestion_prefixes(cls, v):
        """Parse suggestion prefixes from various formats."""
        return _parse_str_list(v, DEFAULT_SUGGESTION_PREFIXES)

    @field_validator('field_schema', mode='before')
    @classmethod
    def parse_field_schema(cls, v):
        """Parse the field schema from a JSON array string."""
        if v is None:
            return list(DEFAULT_FIELDS)

        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"field_schema must be a JSON array: {e}")

        return v

    @field_validator('field_schema')
    @classmethod
    def validate_field_schema(cls, v: List[FieldSpec]) -> List[FieldSpec]:
        # FieldSchema rejects duplicate keys
        FieldSchema(v)
        if not any(spec.required for spec in v):
            raise ValueError("field_schema needs at least one required field")
        return v

    @model_validator(mode='after')
    def validate_integrations(self) -> 'Settings':
        if self.extractor_type == 'llm' and self.llm_api_key is not None:
            if not self.llm_base_url or not self.llm_model:
                raise ValueError(
                    "llm_base_url and llm_model are required when llm_api_key is set"
                )

        if self.environment == 'production':
            missing = []
            if not self.feishu_app_id:
                missing.append('feishu_app_id')
            if self.feishu_app_secret is None:
                missing.append('feishu_app_secret')
            if not self.escalation_chat_id:
                missing.append('escalation_chat_id')
            if missing:
                raise ValueError(
                    f"Missing required production settings: {', '.join(missing)}"
                )

        return self

    # ===========================
    # Helper Methods
    # ===========================

    def get_field_schema(self) -> FieldSchema:
        return FieldSchema(self.field_schema)

    def get_feishu_app_secret(self) -> str:
        if self.feishu_app_secret:
            return self.feishu_app_secret.get_secret_value()
        return ""

    def get_verification_token(self) -> Optional[str]:
        if self.feishu_verification_token:
            return self.feishu_verification_token.get_secret_value()
        return None

    def get_llm_api_key(self) -> Optional[str]:
        if self.llm_api_key:
            return self.llm_api_key.get_secret_value()
        return None

    def safe_dump(self) -> Dict[str, Any]:
        """Settings for logging; secrets stay masked."""
        return self.model_dump(exclude={'field_schema'})


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

__all__ = ['Settings', 'settings', 'get_settings']

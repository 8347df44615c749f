"""
Field extraction strategies.
"""
import logging

from ..config.settings import Settings
from ..models.schema import FieldSchema
from .base import (
    PLACEHOLDER_VALUES,
    FieldExtractor,
    clean_extracted_value,
    normalize_extraction,
)
from .llm_extractor import LLMFieldExtractor, parse_extraction_content
from .rule_extractor import RuleBasedExtractor

logger = logging.getLogger(__name__)


def create_extractor(settings: Settings, schema: FieldSchema) -> FieldExtractor:
    """
    Build the configured extractor.

    Falls back to the rule-based extractor when the model-based one is
    selected but no API key is configured.
    """
    if settings.extractor_type == "llm":
        api_key = settings.get_llm_api_key()
        if api_key:
            return LLMFieldExtractor(
                schema=schema,
                api_key=api_key,
                base_url=settings.llm_base_url,
                model=settings.llm_model,
                temperature=settings.llm_temperature,
                timeout=settings.extractor_timeout_seconds,
            )
        logger.warning("No LLM API key configured, using rule-based extraction")

    return RuleBasedExtractor(schema)


__all__ = [
    'FieldExtractor',
    'LLMFieldExtractor',
    'RuleBasedExtractor',
    'PLACEHOLDER_VALUES',
    'clean_extracted_value',
    'normalize_extraction',
    'parse_extraction_content',
    'create_extractor',
]

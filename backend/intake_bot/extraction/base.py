"""
Field extractor capability and result normalization.

An extractor turns one user message into a partial field map. It only
reports values found in that message and returns an empty string for
anything it did not find.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

from ..models.schema import FieldSchema

logger = logging.getLogger(__name__)


PLACEHOLDER_VALUES = frozenset({
    "n/a", "na", "none", "null", "nil", "unknown", "-", "--",
    "未提供", "无", "未知", "不知道", "暂无", "空",
})


def clean_extracted_value(value: Any) -> str:
    """Trim a value and map placeholder words to the empty string."""
    if value is None:
        return ""

    text = str(value).strip()
    if text.lower() in PLACEHOLDER_VALUES:
        return ""
    return text


def normalize_extraction(result: Mapping[str, Any], schema: FieldSchema) -> Dict[str, str]:
    """
    Keep only schema keys and clean every value.

    Returns a map with every schema key present; keys the extractor did not
    report map to the empty string.
    """
    unknown = [key for key in result if key not in schema]
    if unknown:
        logger.debug(f"Ignoring extracted keys outside the schema: {unknown}")

    return {key: clean_extracted_value(result.get(key)) for key in schema.keys}


class FieldExtractor(ABC):
    """Swappable field extraction strategy."""

    def __init__(self, schema: FieldSchema):
        self.schema = schema

    @abstractmethod
    async def extract(self, text: str, collected: Dict[str, str]) -> Dict[str, str]:
        """
        Extract field values from a single message.

        Args:
            text: Raw user message
            collected: Snapshot of values collected so far (read-only)

        Returns:
            Map of field key to value; empty string when not found

        Raises:
            ExtractionError: If the extraction backend fails
        """
        pass

    def empty_result(self) -> Dict[str, str]:
        return {key: "" for key in self.schema.keys}

    async def close(self) -> None:
        pass


__all__ = [
    'FieldExtractor',
    'PLACEHOLDER_VALUES',
    'clean_extracted_value',
    'normalize_extraction',
]

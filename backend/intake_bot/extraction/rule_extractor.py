"""
Rule-based field extraction.

Recognizes ``name: value`` segments (ASCII or full-width colon), one per
line or separated by semicolons, where ``name`` is a field key, one of its
labels or one of its aliases, compared case-insensitively.
"""
import logging
import re
from typing import Dict

from ..models.schema import FieldSchema
from .base import FieldExtractor, clean_extracted_value

logger = logging.getLogger(__name__)


_SEGMENT_SPLIT = re.compile(r"[\n;；]+")
_SEGMENT = re.compile(r"^\s*(?:[-*•]\s*)?(?P<name>[^:：]{1,40}?)\s*[:：]\s*(?P<value>.*?)\s*$")


def _names_for_schema(schema: FieldSchema) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for spec in schema:
        candidates = [spec.key, spec.label, spec.heading, *spec.aliases]
        candidates.extend(part for part in spec.label.split("/"))
        for candidate in candidates:
            name = candidate.strip().lower()
            if name:
                names.setdefault(name, spec.key)
    return names


class RuleBasedExtractor(FieldExtractor):
    """Deterministic extractor for labelled input; never fails."""

    def __init__(self, schema: FieldSchema):
        super().__init__(schema)
        self.names = _names_for_schema(schema)

    async def extract(self, text: str, collected: Dict[str, str]) -> Dict[str, str]:
        result = self.empty_result()

        for segment in _SEGMENT_SPLIT.split(text or ""):
            match = _SEGMENT.match(segment)
            if not match:
                continue

            key = self.names.get(match.group("name").strip().lower())
            if key is None:
                continue

            value = clean_extracted_value(match.group("value"))
            if value and value != collected.get(key):
                result[key] = value

        return result


__all__ = ['RuleBasedExtractor']

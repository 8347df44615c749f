"""
Merging extractor output into a session.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from ..extraction.base import normalize_extraction
from ..models.schema import FieldSchema
from ..models.session import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldChange:
    key: str
    label: str
    value: str
    previous: Optional[str] = None

    @property
    def is_update(self) -> bool:
        return bool(self.previous)


def merge_extraction(
    session: Session,
    extraction: Mapping[str, str],
    schema: FieldSchema,
    snapshot: Optional[Dict[str, str]] = None
) -> List[FieldChange]:
    """
    Apply an extraction result to ``session.collected_fields``.

    For each schema field, a non-empty extracted value that differs from the
    snapshot's value is stored and reported. Empty or unchanged values are
    skipped, so a merge never erases collected data and applying the same
    result twice changes nothing the second time.

    Args:
        session: Session to update in place
        extraction: Raw extractor output (cleaned here)
        schema: Field schema; keys outside it are ignored
        snapshot: Values the extraction was computed against
            (defaults to the session's current values)

    Returns:
        Changes in schema order
    """
    if snapshot is None:
        snapshot = dict(session.collected_fields)

    cleaned = normalize_extraction(extraction, schema)
    changes: List[FieldChange] = []

    for spec in schema:
        value = cleaned[spec.key]
        if not value:
            continue

        previous = snapshot.get(spec.key) or None
        if value == previous:
            continue

        session.set_field(spec.key, value)
        changes.append(FieldChange(
            key=spec.key,
            label=spec.heading,
            value=value,
            previous=previous,
        ))
        logger.debug(
            f"Collected {spec.key}={value!r} (was {previous!r})",
            extra={"session_key": session.session_key}
        )

    return changes


__all__ = ['FieldChange', 'merge_extraction']

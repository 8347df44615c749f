"""
Field schema describing the record collected from the user.

The schema is ordered: rendering, missing-field prompts and merging all
walk the fields in declaration order.
"""
from typing import Dict, Iterator, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator


class FieldSpec(BaseModel):
    """A single field of the intake record."""

    key: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Key used in collected fields and extractor results"
    )

    label: str = Field(
        ...,
        min_length=1,
        description="Display label shown to the user (may be bilingual)"
    )

    short_label: Optional[str] = Field(
        None,
        description="Compact label used as heading in the hand-off summary"
    )

    required: bool = Field(
        default=True,
        description="Whether the field must be collected before hand-off"
    )

    aliases: List[str] = Field(
        default_factory=list,
        description="Extra names accepted by rule-based extraction"
    )

    model_config = {"frozen": True}

    @field_validator('key')
    @classmethod
    def validate_key(cls, v: str) -> str:
        v = v.strip()
        if not v.replace('_', '').isalnum():
            raise ValueError(f"Field key must be alphanumeric/underscore: {v!r}")
        return v

    @property
    def heading(self) -> str:
        return self.short_label or self.label


class FieldSchema:
    """
    Ordered collection of FieldSpec.

    Required fields come first in rendering, followed by optional ones, each
    group keeping declaration order.
    """

    def __init__(self, fields: Sequence[FieldSpec]):
        seen = set()
        for spec in fields:
            if spec.key in seen:
                raise ValueError(f"Duplicate field key in schema: {spec.key}")
            seen.add(spec.key)

        self._fields: List[FieldSpec] = list(fields)
        self._by_key: Dict[str, FieldSpec] = {f.key: f for f in self._fields}

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self.ordered())

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def get(self, key: str) -> Optional[FieldSpec]:
        return self._by_key.get(key)

    @property
    def required(self) -> List[FieldSpec]:
        return [f for f in self._fields if f.required]

    @property
    def optional(self) -> List[FieldSpec]:
        return [f for f in self._fields if not f.required]

    @property
    def keys(self) -> List[str]:
        return [f.key for f in self.ordered()]

    def ordered(self) -> List[FieldSpec]:
        """Required fields first, then optional ones."""
        return self.required + self.optional

    def missing(self, collected: Dict[str, str]) -> List[FieldSpec]:
        """Required fields with no non-empty value in ``collected``."""
        return [f for f in self.required if not collected.get(f.key)]

    def is_complete(self, collected: Dict[str, str]) -> bool:
        return not self.missing(collected)

    @classmethod
    def from_dicts(cls, items: Sequence[dict]) -> 'FieldSchema':
        return cls([FieldSpec(**item) for item in items])


DEFAULT_FIELDS: List[FieldSpec] = [
    FieldSpec(key="issue", label="问题描述 / Issue Description", short_label="问题描述",
              aliases=["问题", "issue", "problem", "description"]),
    FieldSpec(key="occur_time", label="发生时间 / Time of Occurrence", short_label="发生时间",
              aliases=["时间", "time", "when"]),
    FieldSpec(key="reproducible", label="是否必现 / Reproducible?", short_label="是否必现",
              aliases=["必现", "复现", "reproducible"]),
    FieldSpec(key="app_version", label="应用版本 / App Version", short_label="应用版本",
              aliases=["app版本", "app version", "版本", "version"]),
    FieldSpec(key="glasses_version", label="眼镜版本 / Glasses Firmware", short_label="眼镜版本",
              aliases=["眼镜固件", "glasses firmware", "glasses version"]),
    FieldSpec(key="glasses_sn", label="眼镜SN号 / Glasses SN", short_label="眼镜SN号",
              aliases=["眼镜sn", "glasses sn"]),
    FieldSpec(key="ring_version", label="戒指版本 / Ring Firmware", short_label="戒指版本",
              aliases=["戒指固件", "ring firmware", "ring version"]),
    FieldSpec(key="ring_sn", label="戒指SN号 / Ring SN", short_label="戒指SN号",
              aliases=["戒指sn", "ring sn"]),
    FieldSpec(key="phone_model", label="手机型号 / Phone Model", short_label="手机型号",
              aliases=["手机", "phone", "phone model", "device"]),
    FieldSpec(key="phone_os", label="手机系统版本 / Phone OS Version", short_label="手机系统版本",
              aliases=["系统版本", "系统", "os", "phone os"]),
    FieldSpec(key="vpn", label="是否使用VPN / Using VPN?", short_label="是否使用VPN",
              required=False, aliases=["vpn"]),
]

DEFAULT_SCHEMA = FieldSchema(DEFAULT_FIELDS)


__all__ = ['FieldSpec', 'FieldSchema', 'DEFAULT_FIELDS', 'DEFAULT_SCHEMA']

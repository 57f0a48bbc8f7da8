"""Pydantic schemas for Content Classifier output.

RawFinding is deliberately forgiving: models return "null" strings, labels
outside the vocabulary and scores as strings. Those are normalised here so one
sloppy field does not cost the whole finding.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import Field, field_validator

from .base import CamelModel
from .policy import Jurisdiction, PolicyType

_NULLISH = {"", "null", "none", "n/a", "unknown"}


def _blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in _NULLISH:
        return None
    return value


class RawFinding(CamelModel):
    title: str = Field(..., min_length=1)
    summary: str = ""
    relevance_score: float = 0.0
    suggested_type: Optional[PolicyType] = None
    suggested_jurisdiction: Optional[Jurisdiction] = None
    tags: List[str] = Field(default_factory=list)
    agencies: List[str] = Field(default_factory=list)
    key_dates: List[str] = Field(default_factory=list)
    related_topics: List[str] = Field(default_factory=list)
    is_new_policy: bool = True
    existing_policy_title: Optional[str] = None
    change_description: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("summary", mode="before")
    @classmethod
    def default_summary(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("relevance_score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> float:
        try:
            score = float(v)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, score))

    @field_validator("suggested_type", mode="before")
    @classmethod
    def known_type(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v in {t.value for t in PolicyType} else None
        return v

    @field_validator("suggested_jurisdiction", mode="before")
    @classmethod
    def known_jurisdiction(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v in {j.value for j in Jurisdiction} else None
        return v

    @field_validator("tags", "agencies", "key_dates", "related_topics", mode="before")
    @classmethod
    def string_list(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(item).strip() for item in v if item is not None and str(item).strip()]

    @field_validator("existing_policy_title", "change_description", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("is_new_policy", mode="before")
    @classmethod
    def default_new(cls, v: Any) -> Any:
        return True if v is None else v


class ClassifierOutput(CamelModel):
    findings: List[RawFinding] = Field(default_factory=list)

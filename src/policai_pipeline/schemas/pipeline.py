"""Pydantic schemas for pipeline records.

Defines PipelineRun, ResearchFinding and VerificationResult together with the
stage, status and outcome vocabularies they use.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import CamelModel
from .policy import Jurisdiction, PolicyType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineStage(str, Enum):
    RESEARCH = "research"
    RESEARCH_COMPLETE = "research_complete"
    VERIFICATION = "verification"
    VERIFICATION_COMPLETE = "verification_complete"
    HITL_REVIEW = "hitl_review"
    IMPLEMENTATION = "implementation"
    COMPLETE = "complete"
    FAILED = "failed"


# Forward order of the state machine; FAILED sits outside it.
STAGE_ORDER = [
    PipelineStage.RESEARCH,
    PipelineStage.RESEARCH_COMPLETE,
    PipelineStage.VERIFICATION,
    PipelineStage.VERIFICATION_COMPLETE,
    PipelineStage.HITL_REVIEW,
    PipelineStage.IMPLEMENTATION,
    PipelineStage.COMPLETE,
]


def stage_index(stage: PipelineStage) -> int:
    return STAGE_ORDER.index(stage)


class FindingStatus(str, Enum):
    DISCOVERED = "discovered"
    VERIFIED = "verified"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


class VerificationOutcome(str, Enum):
    CONFIRMED = "confirmed"
    PARTIALLY_CONFIRMED = "partially_confirmed"
    UNVERIFIABLE = "unverifiable"
    CONTRADICTED = "contradicted"


class PipelineRun(CamelModel):
    id: str
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    stage: PipelineStage = PipelineStage.RESEARCH
    sources_scanned: List[str] = Field(default_factory=list)
    findings_count: int = 0
    verified_count: int = 0
    rejected_count: int = 0
    implemented_count: int = 0
    hitl_required: bool = True
    hitl_approved_at: Optional[datetime] = None
    hitl_approved_by: Optional[str] = None
    hitl_notes: Optional[str] = None
    error: Optional[str] = None


class ResearchFinding(CamelModel):
    id: str
    pipeline_run_id: str
    title: str
    summary: str = ""
    source_url: str
    source_content: str = ""
    discovered_at: datetime = Field(default_factory=utcnow)
    relevance_score: float = Field(0.0, ge=0.0, le=1.0)
    suggested_type: Optional[PolicyType] = None
    suggested_jurisdiction: Optional[Jurisdiction] = None
    tags: List[str] = Field(default_factory=list)
    agencies: List[str] = Field(default_factory=list)
    key_dates: List[str] = Field(default_factory=list)
    related_topics: List[str] = Field(default_factory=list)
    is_new_policy: bool = True
    existing_policy_id: Optional[str] = None
    change_description: Optional[str] = None
    status: FindingStatus = FindingStatus.DISCOVERED


class VerificationResult(CamelModel):
    id: str
    finding_id: str
    pipeline_run_id: str
    verified_at: datetime = Field(default_factory=utcnow)
    outcome: VerificationOutcome
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    sources_cross_referenced: List[str] = Field(default_factory=list)
    verification_notes: str = ""
    factual_issues: List[str] = Field(default_factory=list)
    suggested_corrections: List[str] = Field(default_factory=list)

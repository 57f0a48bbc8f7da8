"""Pydantic schema for policy dataset entries.

Only the fields the implementation stage reads or writes are declared; anything
else the tracker stores on a policy is carried through untouched.
"""

from enum import Enum
from typing import List

from pydantic import ConfigDict, Field

from .base import CamelModel


class Jurisdiction(str, Enum):
    FEDERAL = "federal"
    NSW = "nsw"
    VIC = "vic"
    QLD = "qld"
    WA = "wa"
    SA = "sa"
    TAS = "tas"
    ACT = "act"
    NT = "nt"


class PolicyType(str, Enum):
    LEGISLATION = "legislation"
    REGULATION = "regulation"
    GUIDELINE = "guideline"
    FRAMEWORK = "framework"
    STANDARD = "standard"


class PolicyStatus(str, Enum):
    PROPOSED = "proposed"
    ACTIVE = "active"
    AMENDED = "amended"
    REPEALED = "repealed"
    TRASHED = "trashed"


class Policy(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    description: str = ""
    jurisdiction: Jurisdiction = Jurisdiction.FEDERAL
    type: PolicyType = PolicyType.GUIDELINE
    status: PolicyStatus = PolicyStatus.ACTIVE
    effective_date: str = ""
    agencies: List[str] = Field(default_factory=list)
    source_url: str = ""
    content: str = ""
    ai_summary: str = ""
    tags: List[str] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

"""Implementation stage: apply approved findings to the policy dataset.

Each finding becomes either an update of a matching policy or a new policy
built straight from the finding's fields. The dataset is written once, after
all findings are processed.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..log import get_logger
from ..schemas.pipeline import FindingStatus, ResearchFinding, VerificationResult
from ..schemas.policy import Jurisdiction, Policy, PolicyStatus, PolicyType
from ..store.repo import PipelineRepo, PolicyRepo
from .verify import JURISDICTION_CORRECTION, PARTIAL_THRESHOLD, TYPE_CORRECTION

logger = get_logger("implementation")

POLICY_ID_MAX_LENGTH = 60
POLICY_CONTENT_CHARS = 5000

_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class ImplementationResult:
    finding_id: str
    action: str  # "created", "updated", "skipped"
    policy_id: str = ""
    error: Optional[str] = None


@dataclass
class ImplementationSummary:
    results: List[ImplementationResult] = field(default_factory=list)
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    errors: List[str] = field(default_factory=list)

    def record(self, result: ImplementationResult):
        self.results.append(result)
        if result.action == "created":
            self.created_count += 1
        elif result.action == "updated":
            self.updated_count += 1
        else:
            self.skipped_count += 1


def generate_policy_id(title: str) -> str:
    slug = _SLUG_RE.sub("-", title.lower()).strip("-")
    return slug[:POLICY_ID_MAX_LENGTH].strip("-")


def _merge_unique(existing: List[str], extra: List[str]) -> List[str]:
    merged = list(existing)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return merged


def build_policy_entry(finding: ResearchFinding, verification: VerificationResult) -> Policy:
    """Candidate policy record from a finding. id and timestamps are filled by the caller."""
    corrections = verification.suggested_corrections
    jurisdiction = finding.suggested_jurisdiction
    if jurisdiction is None or JURISDICTION_CORRECTION in corrections:
        jurisdiction = Jurisdiction.FEDERAL
    policy_type = finding.suggested_type
    if policy_type is None or TYPE_CORRECTION in corrections:
        policy_type = PolicyType.GUIDELINE

    return Policy(
        id="",
        title=finding.title,
        description=finding.summary,
        jurisdiction=jurisdiction,
        type=policy_type,
        status=PolicyStatus.ACTIVE,
        effective_date=finding.key_dates[0] if finding.key_dates else "",
        agencies=list(finding.agencies),
        source_url=finding.source_url,
        content=finding.source_content[:POLICY_CONTENT_CHARS],
        ai_summary=finding.summary,
        tags=list(finding.tags),
    )


def find_existing_policy(finding: ResearchFinding, policies: List[Policy]) -> Optional[Policy]:
    title = finding.title.lower()
    for policy in policies:
        if policy.title.lower() == title or policy.source_url == finding.source_url:
            return policy
    return None


def run_implementation(
    findings: List[ResearchFinding],
    verifications: List[VerificationResult],
    repo: PipelineRepo,
    policy_repo: PolicyRepo,
) -> ImplementationSummary:
    summary = ImplementationSummary()
    policies = policy_repo.load_policies()
    verification_map: Dict[str, VerificationResult] = {v.finding_id: v for v in verifications}
    implemented: Dict[str, FindingStatus] = {}

    for finding in findings:
        if finding.status != FindingStatus.VERIFIED:
            continue
        try:
            verification = verification_map.get(finding.id)
            if verification is None or verification.confidence_score < PARTIAL_THRESHOLD:
                summary.record(ImplementationResult(
                    finding_id=finding.id,
                    action="skipped",
                    error="Insufficient verification confidence",
                ))
                continue

            logger.info(f"Processing: {finding.title}")
            entry = build_policy_entry(finding, verification)
            now = datetime.now(timezone.utc).isoformat()
            existing = find_existing_policy(finding, policies)

            if existing is not None and not finding.is_new_policy:
                updated = existing.model_copy(update={
                    "description": entry.description,
                    "ai_summary": entry.ai_summary,
                    "tags": _merge_unique(existing.tags, entry.tags),
                    "agencies": _merge_unique(existing.agencies, entry.agencies),
                    "updated_at": now,
                })
                policies[policies.index(existing)] = updated
                implemented[finding.id] = FindingStatus.IMPLEMENTED
                summary.record(ImplementationResult(finding_id=finding.id, action="updated", policy_id=existing.id))
                continue

            policy_id = generate_policy_id(entry.title)
            if not policy_id or any(p.id == policy_id for p in policies):
                summary.record(ImplementationResult(
                    finding_id=finding.id,
                    action="skipped",
                    policy_id=policy_id,
                    error="Policy with this ID already exists" if policy_id else "Cannot derive a policy ID from the title",
                ))
                continue

            created = entry.model_copy(update={"id": policy_id, "created_at": now, "updated_at": now})
            policies.append(created)
            implemented[finding.id] = FindingStatus.IMPLEMENTED
            summary.record(ImplementationResult(finding_id=finding.id, action="created", policy_id=policy_id))
        except Exception as e:
            msg = f"Failed to implement \"{finding.title}\": {e}"
            logger.error(msg)
            summary.errors.append(msg)
            summary.record(ImplementationResult(finding_id=finding.id, action="skipped", error=msg))

    policy_repo.save_policies(policies)
    # Findings only become implemented once the dataset write has succeeded.
    repo.update_finding_statuses(implemented)

    logger.info(
        f"Implementation complete. Created: {summary.created_count}, "
        f"Updated: {summary.updated_count}, Skipped: {summary.skipped_count}"
    )
    return summary

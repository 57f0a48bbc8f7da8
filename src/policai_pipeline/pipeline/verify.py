"""Verification stage: rule-based cross-checks of research findings.

No model or network calls. Given the same set of findings the stage always
produces the same confidence scores, outcomes and notes.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

from ..log import get_logger
from ..schemas.pipeline import (
    FindingStatus,
    ResearchFinding,
    VerificationOutcome,
    VerificationResult,
)
from ..store.repo import PipelineRepo

logger = get_logger("verifier")

GOVERNMENT_DOMAIN_SUFFIXES = (".gov.au", ".csiro.au", ".edu.au")

UNTRUSTED_SOURCE_PENALTY = 0.2
CORROBORATION_BONUS = 0.1
MAX_CORROBORATING = 3
SHORT_SUMMARY_PENALTY = 0.1
MISSING_FIELD_PENALTY = 0.05
MIN_SUMMARY_LENGTH = 20

CONFIRMED_THRESHOLD = 0.7
PARTIAL_THRESHOLD = 0.5

# Implementation reads these back to decide on fallback type/jurisdiction.
TYPE_CORRECTION = "Policy type could not be determined; defaulting to guideline"
JURISDICTION_CORRECTION = "Jurisdiction could not be determined; defaulting to federal"


@dataclass
class VerificationSummary:
    verifications: List[VerificationResult]
    confirmed_count: int = 0
    rejected_count: int = 0
    held_count: int = 0
    errors: List[str] = field(default_factory=list)


def is_government_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host.endswith(suffix) or host == suffix.lstrip(".") for suffix in GOVERNMENT_DOMAIN_SUFFIXES)


def find_corroborating(finding: ResearchFinding, all_findings: List[ResearchFinding]) -> List[ResearchFinding]:
    """
    Findings from a different source URL whose title contains this finding's
    leading three words, or that share at least one tag.
    """
    lead = " ".join(finding.title.lower().split()[:3])
    tags = {t.strip().lower() for t in finding.tags if t.strip()}
    matches = []
    for other in all_findings:
        if other.id == finding.id or other.source_url == finding.source_url:
            continue
        title_match = bool(lead) and lead in other.title.lower()
        tag_match = bool(tags & {t.strip().lower() for t in other.tags})
        if title_match or tag_match:
            matches.append(other)
    return matches


def classify_outcome(confidence: float, has_issues: bool) -> VerificationOutcome:
    if confidence >= CONFIRMED_THRESHOLD:
        return VerificationOutcome.CONFIRMED
    if confidence >= PARTIAL_THRESHOLD:
        return VerificationOutcome.PARTIALLY_CONFIRMED
    if has_issues:
        return VerificationOutcome.CONTRADICTED
    return VerificationOutcome.UNVERIFIABLE


def status_for(result: VerificationResult) -> Optional[FindingStatus]:
    """
    New finding status for a verification, or None when the finding stays
    `discovered` for a human to judge.
    """
    if result.outcome == VerificationOutcome.UNVERIFIABLE:
        return None
    if result.outcome in (VerificationOutcome.CONFIRMED, VerificationOutcome.PARTIALLY_CONFIRMED) \
            and result.confidence_score >= PARTIAL_THRESHOLD:
        return FindingStatus.VERIFIED
    return FindingStatus.REJECTED


def verify_finding(finding: ResearchFinding, all_findings: List[ResearchFinding]) -> VerificationResult:
    confidence = finding.relevance_score
    issues: List[str] = []
    corrections: List[str] = []

    host = urlparse(finding.source_url).hostname or finding.source_url
    if is_government_host(finding.source_url):
        domain_note = f"Source {host} is a recognised government domain"
    else:
        confidence -= UNTRUSTED_SOURCE_PENALTY
        domain_note = f"Source {host} is not a recognised government domain"
        issues.append("Source is not on a recognised Australian government domain")

    corroborating = find_corroborating(finding, all_findings)[:MAX_CORROBORATING]
    confidence += CORROBORATION_BONUS * len(corroborating)
    if corroborating:
        corroboration_note = f"Corroborated by {len(corroborating)} finding(s) from other sources"
    else:
        corroboration_note = "No corroborating findings from other sources"

    if len(finding.summary.strip()) < MIN_SUMMARY_LENGTH:
        confidence -= SHORT_SUMMARY_PENALTY
        issues.append(f"Summary is shorter than {MIN_SUMMARY_LENGTH} characters")
    if finding.suggested_type is None:
        confidence -= MISSING_FIELD_PENALTY
        corrections.append(TYPE_CORRECTION)
    if finding.suggested_jurisdiction is None:
        confidence -= MISSING_FIELD_PENALTY
        corrections.append(JURISDICTION_CORRECTION)

    confidence = round(max(0.0, min(1.0, confidence)), 4)
    outcome = classify_outcome(confidence, bool(issues))

    notes = [
        f"Relevance score {finding.relevance_score:.2f}",
        domain_note,
        corroboration_note,
        *issues,
    ]

    cross_referenced = [finding.source_url]
    for other in corroborating:
        if other.source_url not in cross_referenced:
            cross_referenced.append(other.source_url)

    return VerificationResult(
        id=f"verification-{finding.id}",
        finding_id=finding.id,
        pipeline_run_id=finding.pipeline_run_id,
        outcome=outcome,
        confidence_score=confidence,
        sources_cross_referenced=cross_referenced,
        verification_notes=". ".join(notes),
        factual_issues=issues,
        suggested_corrections=corrections,
    )


def run_verification(findings: List[ResearchFinding], repo: PipelineRepo) -> VerificationSummary:
    """
    Verifies every finding against the full set, persists the results and the
    resulting finding statuses, and returns the counts.
    """
    summary = VerificationSummary(verifications=[])
    statuses: Dict[str, FindingStatus] = {}

    for finding in findings:
        try:
            result = verify_finding(finding, findings)
        except Exception as e:
            msg = f"Failed to verify \"{finding.title}\": {e}"
            logger.error(msg)
            summary.errors.append(msg)
            continue

        summary.verifications.append(result)
        status = status_for(result)
        if status == FindingStatus.VERIFIED:
            summary.confirmed_count += 1
        elif status == FindingStatus.REJECTED:
            summary.rejected_count += 1
        else:
            summary.held_count += 1
        if status is not None:
            statuses[finding.id] = status
        logger.info(f"{finding.id}: {result.outcome.value} ({result.confidence_score:.2f})")

    repo.save_verifications(summary.verifications)
    repo.update_finding_statuses(statuses)

    logger.info(
        f"Verification complete. Confirmed: {summary.confirmed_count}, "
        f"Rejected: {summary.rejected_count}, Held for review: {summary.held_count}"
    )
    return summary

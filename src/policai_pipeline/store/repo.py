"""Repository layer over the JSON document store.

PipelineRepo owns pipeline runs, research findings and verification results.
PolicyRepo owns the policy dataset and is only written by the implementation stage.
"""

from typing import Dict, List, Optional

from .json_store import JsonStore
from ..schemas.pipeline import (
    FindingStatus,
    PipelineRun,
    ResearchFinding,
    VerificationResult,
)
from ..schemas.policy import Policy
from ..log import get_logger

logger = get_logger("store")

RUNS = "pipeline-runs"
FINDINGS = "research-findings"
VERIFICATIONS = "verification-results"
POLICIES = "policies"


class PipelineRepo:
    def __init__(self, store: JsonStore):
        self.store = store

    # Pipeline runs

    def get_runs(self) -> List[PipelineRun]:
        return [PipelineRun.model_validate(r) for r in self.store.read_all(RUNS)]

    def get_run(self, run_id: str) -> Optional[PipelineRun]:
        for run in self.get_runs():
            if run.id == run_id:
                return run
        return None

    def get_latest_run(self) -> Optional[PipelineRun]:
        runs = self.get_runs()
        if not runs:
            return None
        return max(runs, key=lambda r: r.started_at)

    def save_run(self, run: PipelineRun):
        self.store.upsert(RUNS, run.to_json_dict())

    # Research findings

    def get_findings(self, pipeline_run_id: Optional[str] = None) -> List[ResearchFinding]:
        findings = [ResearchFinding.model_validate(f) for f in self.store.read_all(FINDINGS)]
        if pipeline_run_id:
            return [f for f in findings if f.pipeline_run_id == pipeline_run_id]
        return findings

    def get_finding(self, finding_id: str) -> Optional[ResearchFinding]:
        for finding in self.get_findings():
            if finding.id == finding_id:
                return finding
        return None

    def save_findings(self, findings: List[ResearchFinding]):
        self.store.upsert_many(FINDINGS, [f.to_json_dict() for f in findings])

    def update_finding_status(self, finding_id: str, status: FindingStatus):
        self.update_finding_statuses({finding_id: status})

    def update_finding_statuses(self, statuses: Dict[str, FindingStatus]):
        """Apply several status changes with a single write. Unknown ids are ignored."""
        if not statuses:
            return
        records = self.store.read_all(FINDINGS)
        changed = False
        for record in records:
            status = statuses.get(record.get("id"))
            if status is not None:
                record["status"] = FindingStatus(status).value
                changed = True
        if changed:
            self.store.write_all(FINDINGS, records)

    # Verification results

    def get_verifications(self, pipeline_run_id: Optional[str] = None) -> List[VerificationResult]:
        results = [VerificationResult.model_validate(v) for v in self.store.read_all(VERIFICATIONS)]
        if pipeline_run_id:
            return [v for v in results if v.pipeline_run_id == pipeline_run_id]
        return results

    def save_verifications(self, results: List[VerificationResult]):
        self.store.upsert_many(VERIFICATIONS, [v.to_json_dict() for v in results])


class PolicyRepo:
    def __init__(self, store: JsonStore):
        self.store = store

    def load_policies(self) -> List[Policy]:
        return [Policy.model_validate(p) for p in self.store.read_all(POLICIES)]

    def save_policies(self, policies: List[Policy]):
        """Whole-dataset write; the implementation stage calls this once per batch."""
        self.store.write_all(POLICIES, [p.to_json_dict() for p in policies])
        logger.info(f"Saved {len(policies)} policies")

    def get_titles(self) -> List[str]:
        return [p.title for p in self.load_policies()]

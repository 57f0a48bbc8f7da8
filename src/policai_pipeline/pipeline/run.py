"""Pipeline run state machine.

research -> research_complete -> verification -> verification_complete
-> hitl_review (pause) -> implementation -> complete, with `failed` reachable
from any step. The run record is written after every transition, so the last
persisted stage is always the latest known state. A run interrupted mid-stage
is not resumed; the operator starts a fresh one.
"""

import secrets
import string
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..errors import InvalidStateError, NotFoundError, PipelineBusyError
from ..log import get_logger
from ..schemas.pipeline import (
    FindingStatus,
    PipelineRun,
    PipelineStage,
    ResearchFinding,
    VerificationResult,
    stage_index,
)
from ..store.repo import PipelineRepo, PolicyRepo
from .implement import run_implementation
from .research import ResearchStage
from .verify import run_verification

logger = get_logger("pipeline")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_run_id() -> str:
    date = datetime.now(timezone.utc).strftime("%Y%m%d")
    rand = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"run-{date}-{rand}"


class Pipeline:
    def __init__(self, research: ResearchStage, repo: PipelineRepo, policy_repo: PolicyRepo):
        self.research = research
        self.repo = repo
        self.policy_repo = policy_repo

    def _update_stage(self, run: PipelineRun, stage: PipelineStage):
        if stage != PipelineStage.FAILED:
            if run.stage == PipelineStage.FAILED or stage_index(stage) < stage_index(run.stage):
                raise InvalidStateError(f"Cannot move run {run.id} from {run.stage.value} to {stage.value}")
        run.stage = stage
        self.repo.save_run(run)
        logger.info(f"{run.id} -> {stage.value}")

    def _fail(self, run: PipelineRun, err: Exception):
        run.error = str(err) or err.__class__.__name__
        self._update_stage(run, PipelineStage.FAILED)
        logger.error(f"Run {run.id} failed: {run.error}")

    def _load_for_review(self, run_id: str) -> PipelineRun:
        run = self.repo.get_run(run_id)
        if run is None:
            raise NotFoundError(run_id)
        if run.stage != PipelineStage.HITL_REVIEW:
            raise InvalidStateError(
                f"Pipeline run {run_id} is not at HITL review stage (current: {run.stage.value})"
            )
        return run

    async def start(self, existing_policy_titles: List[str]) -> PipelineRun:
        """
        Runs research and verification, then pauses at hitl_review.
        Failures inside the run are recorded on the returned run, not raised.
        """
        latest = self.repo.get_latest_run()
        if latest is not None and latest.stage == PipelineStage.HITL_REVIEW:
            raise PipelineBusyError(latest.id)

        run = PipelineRun(id=generate_run_id())
        self.repo.save_run(run)
        logger.info(f"Started run: {run.id}")

        try:
            existing_ids = {p.title.strip().lower(): p.id for p in self.policy_repo.load_policies()}
            research = await self.research.run(run.id, existing_policy_titles, existing_ids)
            run.sources_scanned = research.sources_scanned
            run.findings_count = len(research.findings)
            self._update_stage(run, PipelineStage.RESEARCH_COMPLETE)
            for err in research.errors:
                logger.warning(f"[research] {err}")

            if not research.findings:
                logger.info("No findings discovered. Completing.")
                run.completed_at = datetime.now(timezone.utc)
                self._update_stage(run, PipelineStage.COMPLETE)
                return run

            self._update_stage(run, PipelineStage.VERIFICATION)
            verification = run_verification(self.repo.get_findings(run.id), self.repo)
            run.verified_count = verification.confirmed_count
            run.rejected_count = verification.rejected_count
            self._update_stage(run, PipelineStage.VERIFICATION_COMPLETE)

            # Hard stop: only approve() or reject() moves the run past here.
            self._update_stage(run, PipelineStage.HITL_REVIEW)
            logger.info(
                f"Run {run.id} paused at HITL review. Findings: {run.findings_count}, "
                f"Verified: {run.verified_count}, Rejected: {run.rejected_count}"
            )
            return run
        except Exception as e:
            logger.exception("Pipeline error")
            self._fail(run, e)
            return run

    async def approve(
        self,
        run_id: str,
        approved_by: str,
        notes: Optional[str] = None,
        approved_finding_ids: Optional[List[str]] = None,
    ) -> PipelineRun:
        """
        Applies verified findings of a run at hitl_review. When approved_finding_ids
        is non-empty only those verified findings are applied. Failures mark the
        run failed and are re-raised.
        """
        run = self._load_for_review(run_id)

        run.hitl_approved_at = datetime.now(timezone.utc)
        run.hitl_approved_by = approved_by
        run.hitl_notes = notes

        try:
            self._update_stage(run, PipelineStage.IMPLEMENTATION)

            findings = [f for f in self.repo.get_findings(run_id) if f.status == FindingStatus.VERIFIED]
            if approved_finding_ids:
                wanted = set(approved_finding_ids)
                findings = [f for f in findings if f.id in wanted]

            result = run_implementation(findings, self.repo.get_verifications(run_id), self.repo, self.policy_repo)
            for err in result.errors:
                logger.warning(f"[implementation] {err}")

            run.implemented_count = result.created_count + result.updated_count
            run.completed_at = datetime.now(timezone.utc)
            self._update_stage(run, PipelineStage.COMPLETE)
            logger.info(f"Run {run_id} completed. Implemented: {run.implemented_count}")
            return run
        except Exception as e:
            logger.exception("Implementation error")
            self._fail(run, e)
            raise

    async def reject(self, run_id: str, rejected_by: str, notes: Optional[str] = None) -> PipelineRun:
        """Closes a run at hitl_review without applying anything."""
        run = self._load_for_review(run_id)

        run.hitl_approved_by = rejected_by
        run.hitl_notes = notes or "Rejected by admin"
        run.implemented_count = 0
        run.completed_at = datetime.now(timezone.utc)
        self._update_stage(run, PipelineStage.COMPLETE)
        logger.info(f"Run {run_id} rejected by {rejected_by}.")
        return run

    # Queries

    def list_runs(self) -> List[PipelineRun]:
        return sorted(self.repo.get_runs(), key=lambda r: r.started_at, reverse=True)

    def get_run(self, run_id: str) -> PipelineRun:
        run = self.repo.get_run(run_id)
        if run is None:
            raise NotFoundError(run_id)
        return run

    def get_latest_run(self) -> Optional[PipelineRun]:
        return self.repo.get_latest_run()

    def get_findings(self, run_id: Optional[str] = None) -> List[ResearchFinding]:
        return self.repo.get_findings(run_id)

    def get_verifications(self, run_id: Optional[str] = None) -> List[VerificationResult]:
        return self.repo.get_verifications(run_id)

    def get_latest_overview(self) -> Optional[Dict]:
        latest = self.get_latest_run()
        if latest is None:
            return None
        return {
            "run": latest,
            "findings": self.get_findings(latest.id),
            "verifications": self.get_verifications(latest.id),
        }

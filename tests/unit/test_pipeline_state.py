import pytest
from policai_pipeline.errors import (
    InvalidStateError,
    NotFoundError,
    PipelineBusyError,
    StoreError,
)
from policai_pipeline.schemas.pipeline import FindingStatus, PipelineStage
from policai_pipeline.schemas.sources import Source

ROOT = "https://www.dta.gov.au/ai"
SOURCE = Source(id="dta", name="DTA AI Policy", url=ROOT)
ROOT_HTML = "<html><body><p>Australian Government guidance on artificial intelligence.</p></body></html>"


def item(title, score=0.9, **extra):
    data = {
        "title": title,
        "summary": f"{title} sets out how agencies adopt AI responsibly.",
        "relevanceScore": score,
        "suggestedType": "framework",
        "suggestedJurisdiction": "federal",
        "tags": [],
        "agencies": ["DTA"],
        "keyDates": [],
        "isNewPolicy": True,
    }
    data.update(extra)
    return data


@pytest.fixture
def pipeline_with(build_test_pipeline, make_fetcher, make_classifier):
    def _build(findings):
        fetcher = make_fetcher({ROOT: ROOT_HTML})
        classifier = make_classifier({ROOT: findings})
        return build_test_pipeline([SOURCE], fetcher, classifier)
    return _build


@pytest.fixture
def stage_log(pipeline_repo, monkeypatch):
    """Records the stage of every run write."""
    stages = []
    original = pipeline_repo.save_run

    def recording(run):
        stages.append(run.stage)
        return original(run)

    monkeypatch.setattr(pipeline_repo, "save_run", recording)
    return stages


@pytest.mark.asyncio
async def test_zero_findings_completes_without_verification(pipeline_with, stage_log, pipeline_repo):
    """
    WHY: A quiet day must not leave a run hanging at review with nothing to review.
    HOW: The classifier returns no findings for the only page.
    EXPECTED: research -> research_complete -> complete, verification never entered.
    """
    pipeline = pipeline_with([])

    run = await pipeline.start([])

    assert run.stage == PipelineStage.COMPLETE
    assert run.findings_count == 0
    assert run.completed_at is not None
    assert run.sources_scanned == ["dta"]
    assert stage_log == [
        PipelineStage.RESEARCH,
        PipelineStage.RESEARCH_COMPLETE,
        PipelineStage.COMPLETE,
    ]
    assert pipeline_repo.get_verifications(run.id) == []


@pytest.mark.asyncio
async def test_full_run_pauses_then_completes(pipeline_with, stage_log, pipeline_repo, policy_repo):
    pipeline = pipeline_with([item("Policy for Responsible AI"), item("AI Technical Standard")])

    run = await pipeline.start([])
    assert run.stage == PipelineStage.HITL_REVIEW
    assert run.findings_count == 2
    assert run.verified_count == 2
    assert run.rejected_count == 0
    assert run.hitl_required is True
    assert policy_repo.load_policies() == []

    done = await pipeline.approve(run.id, approved_by="reviewer@example.gov.au", notes="Looks right")
    assert done.stage == PipelineStage.COMPLETE
    assert done.implemented_count == 2
    assert done.hitl_approved_by == "reviewer@example.gov.au"
    assert done.hitl_notes == "Looks right"
    assert done.hitl_approved_at is not None

    assert stage_log == [
        PipelineStage.RESEARCH,
        PipelineStage.RESEARCH_COMPLETE,
        PipelineStage.VERIFICATION,
        PipelineStage.VERIFICATION_COMPLETE,
        PipelineStage.HITL_REVIEW,
        PipelineStage.IMPLEMENTATION,
        PipelineStage.COMPLETE,
    ]
    assert {p.id for p in policy_repo.load_policies()} == {"policy-for-responsible-ai", "ai-technical-standard"}
    assert all(f.status == FindingStatus.IMPLEMENTED for f in pipeline_repo.get_findings(run.id))


@pytest.mark.asyncio
async def test_approve_requires_hitl_stage(pipeline_with, pipeline_repo):
    """
    WHY: Approving twice or approving an unfinished run must not touch the dataset.
    HOW: Complete a zero-finding run, then try to approve it; also approve an unknown id.
    EXPECTED: InvalidStateError / NotFoundError, stored run unchanged.
    """
    pipeline = pipeline_with([])
    run = await pipeline.start([])
    before = pipeline_repo.get_run(run.id)

    with pytest.raises(InvalidStateError, match="not at HITL review stage"):
        await pipeline.approve(run.id, approved_by="admin")
    with pytest.raises(InvalidStateError):
        await pipeline.reject(run.id, rejected_by="admin")
    with pytest.raises(NotFoundError, match="run-missing not found"):
        await pipeline.approve("run-missing", approved_by="admin")

    assert pipeline_repo.get_run(run.id) == before


@pytest.mark.asyncio
async def test_reject_applies_nothing(pipeline_with, pipeline_repo, policy_repo):
    pipeline = pipeline_with([item("Policy for Responsible AI")])
    run = await pipeline.start([])

    rejected = await pipeline.reject(run.id, rejected_by="reviewer")

    assert rejected.stage == PipelineStage.COMPLETE
    assert rejected.implemented_count == 0
    assert rejected.hitl_approved_by == "reviewer"
    assert rejected.hitl_notes == "Rejected by admin"
    assert policy_repo.load_policies() == []
    assert [f.status for f in pipeline_repo.get_findings(run.id)] == [FindingStatus.VERIFIED]


@pytest.mark.asyncio
async def test_selective_approval(pipeline_with, pipeline_repo, policy_repo):
    """
    WHY: Reviewers often accept only part of a batch.
    HOW: Five verified findings, approve two by id.
    EXPECTED: Exactly two policies created, the other three findings stay verified.
    """
    titles = ["Alpha Framework", "Beta Standard", "Gamma Guideline", "Delta Policy", "Epsilon Strategy"]
    pipeline = pipeline_with([item(t) for t in titles])
    run = await pipeline.start([])
    findings = pipeline_repo.get_findings(run.id)
    assert len(findings) == 5
    chosen = [findings[1].id, findings[3].id]

    done = await pipeline.approve(run.id, approved_by="admin", approved_finding_ids=chosen)

    assert done.implemented_count == 2
    assert {p.id for p in policy_repo.load_policies()} == {"beta-standard", "delta-policy"}
    statuses = {f.id: f.status for f in pipeline_repo.get_findings(run.id)}
    assert [fid for fid, s in statuses.items() if s == FindingStatus.IMPLEMENTED] == chosen


@pytest.mark.asyncio
async def test_approve_failure_marks_run_failed_and_raises(pipeline_with, pipeline_repo, policy_repo, monkeypatch):
    pipeline = pipeline_with([item("Policy for Responsible AI")])
    run = await pipeline.start([])

    def broken(policies):
        raise StoreError("disk full")

    monkeypatch.setattr(policy_repo, "save_policies", broken)

    with pytest.raises(StoreError, match="disk full"):
        await pipeline.approve(run.id, approved_by="admin")

    stored = pipeline_repo.get_run(run.id)
    assert stored.stage == PipelineStage.FAILED
    assert stored.error == "disk full"
    assert [f.status for f in pipeline_repo.get_findings(run.id)] == [FindingStatus.VERIFIED]
    assert policy_repo.load_policies() == []


@pytest.mark.asyncio
async def test_start_failure_is_recorded_not_raised(pipeline_with, pipeline_repo, monkeypatch):
    pipeline = pipeline_with([item("Policy for Responsible AI")])

    def broken(findings):
        raise StoreError("read-only filesystem")

    monkeypatch.setattr(pipeline_repo, "save_findings", broken)

    run = await pipeline.start([])

    assert run.stage == PipelineStage.FAILED
    assert run.error == "read-only filesystem"
    assert pipeline_repo.get_run(run.id).stage == PipelineStage.FAILED


@pytest.mark.asyncio
async def test_failed_run_cannot_move_again(pipeline_with, pipeline_repo, monkeypatch):
    pipeline = pipeline_with([item("Policy for Responsible AI")])

    def broken(findings):
        raise StoreError("boom")

    monkeypatch.setattr(pipeline_repo, "save_findings", broken)
    run = await pipeline.start([])
    assert run.stage == PipelineStage.FAILED

    with pytest.raises(InvalidStateError):
        pipeline._update_stage(run, PipelineStage.COMPLETE)


@pytest.mark.asyncio
async def test_start_refused_while_review_pending(pipeline_with):
    pipeline = pipeline_with([item("Policy for Responsible AI")])
    run = await pipeline.start([])
    assert run.stage == PipelineStage.HITL_REVIEW

    with pytest.raises(PipelineBusyError) as exc:
        await pipeline.start([])
    assert exc.value.run_id == run.id
    assert len(pipeline.list_runs()) == 1

    await pipeline.reject(run.id, rejected_by="admin")
    second = await pipeline.start([])
    assert second.id != run.id
    assert pipeline.list_runs()[0].id == second.id


@pytest.mark.asyncio
async def test_overview_distinguishes_states(pipeline_with):
    """
    WHY: The admin screen shows "no runs", "awaiting review" and "finished" differently.
    HOW: Inspect the latest overview before any run, at review, and after reject.
    EXPECTED: None, then a hitl_review run with its findings, then a complete run.
    """
    pipeline = pipeline_with([item("Policy for Responsible AI")])
    assert pipeline.get_latest_overview() is None

    run = await pipeline.start([])
    overview = pipeline.get_latest_overview()
    assert overview["run"].stage == PipelineStage.HITL_REVIEW
    assert len(overview["findings"]) == 1
    assert len(overview["verifications"]) == 1

    await pipeline.reject(run.id, rejected_by="admin")
    assert pipeline.get_latest_overview()["run"].stage == PipelineStage.COMPLETE


def test_get_run_unknown_raises(pipeline_with):
    pipeline = pipeline_with([])
    with pytest.raises(NotFoundError):
        pipeline.get_run("run-nope")

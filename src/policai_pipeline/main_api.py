"""Admin HTTP endpoint for the pipeline.

GET  /api/admin/pipeline?action=runs|latest|findings|verifications[&runId=...]
POST /api/admin/pipeline  {"action": "start"|"approve"|"reject", "runId", "notes", "approvedFindingIds", "actor"}

Usage:
    uvicorn policai_pipeline.main_api:app
"""

from functools import lru_cache
from typing import Any, List, Optional

from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .errors import InvalidStateError, NotFoundError, PipelineError
from .log import setup_logging, get_logger
from .pipeline.factory import build_pipeline
from .pipeline.run import Pipeline
from .schemas.pipeline import PipelineStage

setup_logging()
logger = get_logger("api")

app = FastAPI(title="Policai pipeline")


class PipelineAction(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: str
    run_id: Optional[str] = None
    notes: Optional[str] = None
    approved_finding_ids: Optional[List[str]] = None
    actor: str = "admin"


@lru_cache()
def get_pipeline() -> Pipeline:
    return build_pipeline()


def _dump(value: Any) -> Any:
    return jsonable_encoder(value, by_alias=True, exclude_none=True)


def ok(data: Any, message: Optional[str] = None) -> JSONResponse:
    body = {"success": True, "data": _dump(data), "error": None}
    if message:
        body["message"] = message
    return JSONResponse(body)


def fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse({"success": False, "data": None, "error": error}, status_code=status_code)


def start_message(run) -> str:
    if run.stage == PipelineStage.HITL_REVIEW:
        return f"Pipeline paused for review. {run.findings_count} findings discovered, {run.verified_count} verified."
    if run.stage == PipelineStage.COMPLETE and run.findings_count == 0:
        return "Pipeline complete. No new findings discovered."
    if run.stage == PipelineStage.FAILED:
        return f"Pipeline failed: {run.error}"
    return f"Pipeline at stage: {run.stage.value}"


@app.get("/api/admin/pipeline")
async def get_pipeline_data(action: str = "latest", runId: Optional[str] = None,
                            pipeline: Pipeline = Depends(get_pipeline)):
    try:
        if action == "runs":
            return ok(pipeline.list_runs())
        if action == "latest":
            overview = pipeline.get_latest_overview()
            if overview is None:
                return ok(None, message="No pipeline runs found")
            return ok(overview)
        if action == "findings":
            return ok(pipeline.get_findings(runId))
        if action == "verifications":
            return ok(pipeline.get_verifications(runId))
        return fail(400, "Invalid action")
    except PipelineError as e:
        logger.error(f"Failed to fetch pipeline data: {e}")
        return fail(500, str(e))


@app.post("/api/admin/pipeline")
async def post_pipeline_action(body: PipelineAction, pipeline: Pipeline = Depends(get_pipeline)):
    try:
        if body.action == "start":
            titles = pipeline.policy_repo.get_titles()
            run = await pipeline.start(titles)
            return ok(run, message=start_message(run))

        if body.action in ("approve", "reject") and not body.run_id:
            return fail(400, "runId is required")

        if body.action == "approve":
            run = await pipeline.approve(body.run_id, body.actor, body.notes, body.approved_finding_ids)
            return ok(run, message=f"Pipeline approved and implemented. {run.implemented_count} policies created/updated.")

        if body.action == "reject":
            run = await pipeline.reject(body.run_id, body.actor, body.notes)
            return ok(run, message="Pipeline run rejected. No changes were made.")

        return fail(400, "Invalid action. Use: start, approve, reject")
    except NotFoundError as e:
        return fail(404, str(e))
    except InvalidStateError as e:
        return fail(409, str(e))
    except Exception as e:
        logger.exception("Pipeline operation failed")
        return fail(500, str(e) or "Pipeline operation failed")

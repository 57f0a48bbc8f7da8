"""Command line runner for the pipeline.

Usage:
    policai-pipeline run
    policai-pipeline status
    policai-pipeline approve RUN_ID --by NAME [--notes TEXT] [--finding ID ...]
    policai-pipeline reject RUN_ID --by NAME [--notes TEXT]

`run` is meant for a daily cron job: when the latest run is still waiting for
review it reports that and exits without starting a new one.
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone

from .errors import PipelineError
from .log import setup_logging, get_logger
from .pipeline.factory import build_pipeline
from .pipeline.run import Pipeline
from .schemas.pipeline import PipelineStage

logger = get_logger("cli")


def print_run(run):
    print(f"Run ID: {run.id}")
    print(f"Stage: {run.stage.value}")
    print(f"Sources scanned: {len(run.sources_scanned)}")
    print(f"Findings discovered: {run.findings_count}")
    print(f"Findings verified: {run.verified_count}")
    print(f"Findings rejected: {run.rejected_count}")
    if run.implemented_count:
        print(f"Policies created/updated: {run.implemented_count}")
    if run.error:
        print(f"Error: {run.error}")


async def cmd_run(pipeline: Pipeline) -> int:
    print("=" * 60)
    print("Daily AI Review Pipeline")
    print(f"Started at: {datetime.now(timezone.utc).isoformat()}")
    print("=" * 60)

    latest = pipeline.get_latest_run()
    if latest is not None and latest.stage == PipelineStage.HITL_REVIEW:
        print("A pipeline run is already awaiting human review.")
        print(f"Run ID: {latest.id}")
        print(f"Findings: {latest.findings_count}")
        print(f"Verified: {latest.verified_count}")
        print("Please approve or reject it before running a new pipeline.")
        return 0

    print("Scanning sources and verifying findings (this may take several minutes)...")
    run = await pipeline.start(pipeline.policy_repo.get_titles())
    print_run(run)

    if run.stage == PipelineStage.FAILED:
        print("\nPipeline failed.")
        return 1
    if run.stage == PipelineStage.HITL_REVIEW:
        print("\nPipeline paused for human review.")
    elif run.stage == PipelineStage.COMPLETE and run.findings_count == 0:
        print("\nNo new findings discovered. The policy database is up to date.")

    print("=" * 60)
    print(f"Completed at: {datetime.now(timezone.utc).isoformat()}")
    print("=" * 60)
    return 0


async def cmd_status(pipeline: Pipeline) -> int:
    latest = pipeline.get_latest_run()
    if latest is None:
        print("No pipeline runs found.")
        return 0
    print_run(latest)
    return 0


async def cmd_approve(pipeline: Pipeline, args) -> int:
    run = await pipeline.approve(args.run_id, args.by, args.notes, args.finding or None)
    print_run(run)
    return 0


async def cmd_reject(pipeline: Pipeline, args) -> int:
    run = await pipeline.reject(args.run_id, args.by, args.notes)
    print_run(run)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="policai-pipeline", description="AI policy discovery pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Start a pipeline run unless one awaits review")
    sub.add_parser("status", help="Show the latest run")

    approve = sub.add_parser("approve", help="Approve a run at HITL review and apply its findings")
    approve.add_argument("run_id")
    approve.add_argument("--by", required=True)
    approve.add_argument("--notes")
    approve.add_argument("--finding", action="append", default=[], help="Only apply this finding id (repeatable)")

    reject = sub.add_parser("reject", help="Reject a run at HITL review")
    reject.add_argument("run_id")
    reject.add_argument("--by", required=True)
    reject.add_argument("--notes")
    return parser


async def dispatch(pipeline: Pipeline, args) -> int:
    if args.command == "run":
        return await cmd_run(pipeline)
    if args.command == "status":
        return await cmd_status(pipeline)
    if args.command == "approve":
        return await cmd_approve(pipeline, args)
    return await cmd_reject(pipeline, args)


def main(argv=None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(dispatch(build_pipeline(), args))
    except PipelineError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

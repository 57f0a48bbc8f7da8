"""Exception taxonomy for pipeline operations.

Operator errors (unknown run, wrong stage) are raised before any state is touched.
Per-page and per-finding problems never reach here; stages collect them as strings.
"""


class PipelineError(Exception):
    """Base class for pipeline failures."""


class NotFoundError(PipelineError):
    def __init__(self, run_id: str):
        super().__init__(f"Pipeline run {run_id} not found")
        self.run_id = run_id


class InvalidStateError(PipelineError):
    """Raised when an operation is not allowed in the run's current stage."""


class PipelineBusyError(InvalidStateError):
    def __init__(self, run_id: str):
        super().__init__(
            f"Pipeline run {run_id} is awaiting human review; approve or reject it before starting a new run"
        )
        self.run_id = run_id


class StoreError(PipelineError):
    """A collection could not be read or written."""

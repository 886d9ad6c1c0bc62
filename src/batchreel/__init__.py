"""batchreel: batch orchestration for asynchronous media-generation jobs.

Submits a list of prompts to a generation backend in one call, then polls
every outstanding job together until each one completes, fails, or runs out
of polling budget. Failed jobs can be retried as a subset and any single
job can be regenerated without disturbing its siblings.
"""

__version__ = "0.3.0"

from batchreel.execution.orchestrator import BatchOrchestrator
from batchreel.models import JobHandle, JobRecord, JobSnapshot, JobStatus

__all__ = [
    "BatchOrchestrator",
    "JobHandle",
    "JobRecord",
    "JobSnapshot",
    "JobStatus",
    "__version__",
]

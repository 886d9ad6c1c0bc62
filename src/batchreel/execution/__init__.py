"""Run execution: submission, polling, reconciliation and orchestration."""

from batchreel.execution.orchestrator import BatchOrchestrator
from batchreel.execution.poller import PollCycle
from batchreel.execution.progress import BatchProgress, ProgressCallback
from batchreel.execution.run import BatchRun, PendingSet, RunKind
from batchreel.execution.submitter import BatchSubmitter

__all__ = [
    "BatchOrchestrator",
    "BatchProgress",
    "BatchRun",
    "BatchSubmitter",
    "PendingSet",
    "PollCycle",
    "ProgressCallback",
    "RunKind",
]

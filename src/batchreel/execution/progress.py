"""Progress reporting for batch runs.

A BatchProgress is an immutable snapshot handed to observers after every
submission and every poll tick. It carries copies of the job states, so an
observer can keep it around or render it later without seeing further
changes.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from batchreel.models import JobSnapshot
from batchreel.utils.time import format_duration, utc_now


@dataclass(frozen=True)
class BatchProgress:
    """Snapshot of a run at a point in time.

    Attributes:
        run_id: Identifier of the run being reported.
        kind: Run kind (run_all, retry_failed, regenerate).
        started_at: When the run started.
        total: Jobs in scope for the run.
        completed: Jobs in scope that completed.
        failed: Jobs in scope that failed.
        pending: Jobs in scope still awaiting a result.
        tick: Status queries issued so far.
        max_polls: Status query budget.
        jobs: Snapshots of every job in the batch, not only the run scope.
    """

    run_id: str
    kind: str
    started_at: datetime
    total: int
    completed: int
    failed: int
    pending: int
    tick: int
    max_polls: int
    jobs: tuple[JobSnapshot, ...] = field(default_factory=tuple)

    @property
    def resolved(self) -> int:
        return self.total - self.pending

    @property
    def fraction(self) -> float:
        """Resolved share of the run, 0.0 to 1.0."""
        if self.total == 0:
            return 1.0
        return self.resolved / self.total

    @property
    def percent(self) -> float:
        return self.fraction * 100.0

    @property
    def elapsed_seconds(self) -> float:
        return (utc_now() - self.started_at).total_seconds()

    @property
    def finished(self) -> bool:
        return self.pending == 0

    def format_status(self) -> str:
        """One-line status, e.g. "Poll 4/60: 2 pending, 3 done (60%), 12s elapsed"."""
        return (
            f"Poll {self.tick}/{self.max_polls}: {self.pending} pending, "
            f"{self.resolved} done ({self.percent:.0f}%), "
            f"{format_duration(self.elapsed_seconds)} elapsed"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "kind": self.kind,
            "started_at": self.started_at.isoformat(),
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "pending": self.pending,
            "tick": self.tick,
            "max_polls": self.max_polls,
            "percent": round(self.percent, 1),
        }


# Type alias for observer callbacks
ProgressCallback = Callable[[BatchProgress], None]

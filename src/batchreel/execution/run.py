"""Per-run state: the pending set and the batch run aggregate.

A BatchRun is created for every orchestration call (full batch, failed
subset retry, single regeneration) and discarded when that call returns.
Nothing here is shared between runs.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from batchreel.execution.progress import BatchProgress
from batchreel.models import JobHandle, JobRecord, JobSnapshot, JobStatus
from batchreel.utils.time import utc_now


class RunKind(str, Enum):
    """The three orchestration entry points."""

    RUN_ALL = "run_all"
    RETRY_FAILED = "retry_failed"
    REGENERATE = "regenerate"

    @property
    def failure_default(self) -> str:
        """Message for a backend failure that carries no error text."""
        return _FAILURE_DEFAULTS[self]

    @property
    def timeout_message(self) -> str:
        """Message assigned to jobs still pending when the budget runs out."""
        return _TIMEOUT_MESSAGES[self]

    @property
    def start_failure_message(self) -> str:
        """Message for a submission result that carries no handle and no error."""
        return _START_FAILURE_MESSAGES[self]


_START_FAILURE_MESSAGES = {
    RunKind.RUN_ALL: "Failed to start generation",
    RunKind.RETRY_FAILED: "Failed to start generation",
    RunKind.REGENERATE: "Failed to start regeneration",
}

_FAILURE_DEFAULTS = {
    RunKind.RUN_ALL: "Generation failed",
    RunKind.RETRY_FAILED: "Retry failed",
    RunKind.REGENERATE: "Regeneration failed",
}

_TIMEOUT_MESSAGES = {
    RunKind.RUN_ALL: "Generation timed out",
    RunKind.RETRY_FAILED: "Retry timed out",
    RunKind.REGENERATE: "Regeneration timed out",
}


class PendingSet:
    """Ordered map of operation token to the job awaiting it.

    A record is a member iff it is PROCESSING and holds a handle. Rotation
    rewrites the key in place, keeping the record's position in the order.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, JobRecord] = {}

    def __len__(self) -> int:
        return len(self._by_token)

    def __bool__(self) -> bool:
        return bool(self._by_token)

    def __iter__(self) -> Iterator[JobRecord]:
        return iter(list(self._by_token.values()))

    def __contains__(self, record: object) -> bool:
        if not isinstance(record, JobRecord) or record.handle is None:
            return False
        return self._by_token.get(record.handle.operation_token) is record

    def get(self, operation_token: str) -> JobRecord | None:
        return self._by_token.get(operation_token)

    def add(self, record: JobRecord) -> None:
        """Insert a freshly accepted record.

        Raises:
            ValueError: If the record has no live handle or the token is
                already held by another record.
        """
        if record.status is not JobStatus.PROCESSING or record.handle is None:
            raise ValueError(f"job {record.index} has no live handle")
        token = record.handle.operation_token
        holder = self._by_token.get(token)
        if holder is not None and holder is not record:
            raise ValueError(f"operation token already pending for job {holder.index}")
        self._by_token[token] = record

    def discard(self, record: JobRecord, operation_token: str) -> None:
        """Drop the record stored under operation_token, if it is still there."""
        if self._by_token.get(operation_token) is record:
            del self._by_token[operation_token]

    def rekey(self, record: JobRecord, old: JobHandle, new: JobHandle) -> None:
        """Move a record from its old handle to its rotated one.

        Raises:
            ValueError: If the new token is already held by another record.
        """
        holder = self._by_token.get(new.operation_token)
        if holder is not None and holder is not record:
            raise ValueError(f"operation token already pending for job {holder.index}")
        self._by_token = {
            (new.operation_token if token == old.operation_token else token): rec
            for token, rec in self._by_token.items()
        }
        record.rotate(new)

    def items(self) -> list[tuple[JobHandle, JobRecord]]:
        """Current (handle, record) pairs, in insertion order."""
        return [(rec.handle, rec) for rec in self._by_token.values() if rec.handle is not None]


@dataclass
class BatchRun:
    """Transient aggregate for one orchestration call.

    Attributes:
        kind: Which entry point created the run.
        records: Jobs in scope for this run, in batch order.
        pending: Jobs still awaiting a terminal status.
        ticks: Status queries issued so far.
        max_polls: Query budget for the run.
        cancel_event: Set to stop polling; remaining jobs fail as cancelled.
    """

    kind: RunKind
    records: list[JobRecord]
    max_polls: int
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    pending: PendingSet = field(default_factory=PendingSet)
    ticks: int = 0
    started_at: datetime = field(default_factory=utc_now)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def resolved(self) -> int:
        return self.total - len(self.pending)

    @property
    def progress(self) -> float:
        """Fraction of jobs no longer pending, 0.0 to 1.0."""
        if self.total == 0:
            return 1.0
        return self.resolved / self.total

    @property
    def elapsed_seconds(self) -> float:
        return (utc_now() - self.started_at).total_seconds()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def fail_pending(self, message: str) -> list[JobRecord]:
        """Force every pending job to FAILED and empty the pending set."""
        failed: list[JobRecord] = []
        for handle, record in self.pending.items():
            self.pending.discard(record, handle.operation_token)
            record.fail(message)
            failed.append(record)
        return failed

    def count(self, status: JobStatus) -> int:
        return sum(1 for r in self.records if r.status is status)

    def progress_report(self, jobs: list[JobSnapshot]) -> BatchProgress:
        """Build the observer payload for this run."""
        return BatchProgress(
            run_id=self.run_id,
            kind=self.kind.value,
            started_at=self.started_at,
            total=self.total,
            completed=self.count(JobStatus.COMPLETED),
            failed=self.count(JobStatus.FAILED),
            pending=len(self.pending),
            tick=self.ticks,
            max_polls=self.max_polls,
            jobs=tuple(jobs),
        )

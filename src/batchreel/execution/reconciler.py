"""Outcome reconciliation for poll responses.

Each status entry is first classified into a tagged outcome, then applied
to the job it belongs to:

- ``Resolved``: terminal success or failure; the job leaves the pending set.
- ``Rotated``: the backend reissued the job under a new handle (usually
  after cycling credentials); only the handle changes.
- ``StillPending``: anything else; nothing changes.

Entries are matched to jobs through the handle sent in the same tick, and a
job is only touched if it is still pending under exactly that handle. A job
that already reached a terminal state is never mutated again.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from batchreel.backends.base import PollResult
from batchreel.core.logging import get_logger
from batchreel.execution.run import PendingSet
from batchreel.models import JobHandle, JobRecord

_logger = get_logger("reconciler")


@dataclass(frozen=True)
class Resolved:
    result_url: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result_url is not None


@dataclass(frozen=True)
class Rotated:
    handle: JobHandle


@dataclass(frozen=True)
class StillPending:
    tag: str


PollOutcome = Resolved | Rotated | StillPending
"""Tagged result of classifying one status entry."""


def classify(result: PollResult, current: JobHandle, failure_default: str) -> PollOutcome:
    """Turn one status entry into a tagged outcome.

    Args:
        result: Status entry returned for ``current``.
        current: The handle the entry answers.
        failure_default: Message used when a failure carries no error text.
    """
    tag = result.tag
    if tag == "completed" and result.result_url:
        return Resolved(result_url=result.result_url)
    if tag == "retrying" and result.new_operation_token:
        return Rotated(
            current.rotated(
                result.new_operation_token,
                scene_id=result.new_scene_id,
                credential_id=result.credential_id,
            )
        )
    if tag == "failed" or result.error_message:
        return Resolved(error_message=result.error_message or failure_default)
    return StillPending(tag)


def apply_outcome(
    record: JobRecord,
    sent: JobHandle,
    outcome: PollOutcome,
    pending: PendingSet,
) -> bool:
    """Apply an outcome to the job that was polled with ``sent``.

    Returns:
        True if the job changed.
    """
    if record.is_terminal or record.handle != sent:
        return False

    if isinstance(outcome, Rotated):
        try:
            pending.rekey(record, sent, outcome.handle)
        except ValueError:
            _logger.warning("rotation_conflict", job_index=record.index)
            return False
        return True

    if isinstance(outcome, Resolved):
        pending.discard(record, sent.operation_token)
        if outcome.result_url is not None:
            record.complete(outcome.result_url)
        else:
            record.fail(outcome.error_message or "")
        return True

    return False


@dataclass
class TickSummary:
    """What one poll tick changed."""

    completed: int = 0
    failed: int = 0
    rotated: int = 0
    unchanged: int = 0


def reconcile_tick(
    requested: Sequence[tuple[JobHandle, JobRecord]],
    results: Sequence[PollResult],
    pending: PendingSet,
    failure_default: str,
) -> TickSummary:
    """Apply a whole status response to the jobs that were queried.

    ``results`` is aligned with ``requested``; surplus entries are ignored
    and missing ones leave their job pending.
    """
    summary = TickSummary()
    for position, (sent, record) in enumerate(requested):
        if position >= len(results):
            summary.unchanged += 1
            continue
        if pending.get(sent.operation_token) is not record:
            summary.unchanged += 1
            continue

        outcome = classify(results[position], sent, failure_default)
        if not apply_outcome(record, sent, outcome, pending):
            summary.unchanged += 1
            continue

        if isinstance(outcome, Rotated):
            summary.rotated += 1
            _logger.info("job_rotated", job_index=record.index)
        elif isinstance(outcome, Resolved) and outcome.succeeded:
            summary.completed += 1
            _logger.debug("job_completed", job_index=record.index)
        else:
            summary.failed += 1
            _logger.debug("job_failed", job_index=record.index, error=record.error_message)
    return summary

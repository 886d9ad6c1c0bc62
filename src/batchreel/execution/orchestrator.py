"""Batch orchestrator.

Owns the job list of one generation session and exposes the three ways of
running it:

- ``run_all``: submit a fresh list of prompts and poll them to completion.
- ``retry_failed``: resubmit only the jobs that are currently failed.
- ``regenerate``: resubmit one job by position.

Each call builds its own BatchRun (submission + poll cycle) scoped to the
jobs it selected, so jobs outside that scope are never touched. run_all and
retry_failed exclude each other; regenerations may run side by side on
different jobs while no batch run is active. Both rules are checked before
the first suspension point, which is all the single-threaded event loop
needs.

Observers receive a BatchProgress after submission, after every poll tick,
and when the run finishes. Its job list is a copy; writing to it has no
effect on the orchestrator.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence

from batchreel.backends.base import GenerationBackend
from batchreel.core.config import BatchConfig, GenerationConfig, PollConfig
from batchreel.core.constants import CANCELLED_MESSAGE, INTERRUPTED_MESSAGE
from batchreel.core.errors import RunInProgressError, SubmissionError
from batchreel.core.logging import RunContext, get_logger, with_context
from batchreel.execution.poller import PollCycle
from batchreel.execution.progress import ProgressCallback
from batchreel.execution.run import BatchRun, RunKind
from batchreel.execution.submitter import BatchSubmitter
from batchreel.models import JobRecord, JobSnapshot, JobStatus

_logger = get_logger("orchestrator")


class BatchOrchestrator:
    """Coordinates submission, polling and retries for one job list.

    Attributes:
        backend: Generation backend used for every run.
        generation: Parameters sent with each submission.
        poll: Interval and query budget applied to each run.
        batch_id: Identifier used to correlate log events.
        observer: Optional callback receiving progress snapshots.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        *,
        generation: GenerationConfig | None = None,
        poll: PollConfig | None = None,
        batch_id: str | None = None,
        observer: ProgressCallback | None = None,
    ) -> None:
        self.backend = backend
        self.generation = generation or GenerationConfig()
        self.poll = poll or PollConfig()
        self.batch_id = batch_id or uuid.uuid4().hex[:8]
        self.observer = observer
        self._records: list[JobRecord] = []
        self._batch_run: BatchRun | None = None
        self._regenerations: dict[int, BatchRun] = {}
        self._progress = 0.0
        self._submitter = BatchSubmitter(backend, self.generation)
        self._poller = PollCycle(backend, self.poll.interval_seconds)

    @classmethod
    def from_config(
        cls,
        config: BatchConfig,
        backend: GenerationBackend | None = None,
        observer: ProgressCallback | None = None,
    ) -> BatchOrchestrator:
        """Build an orchestrator, creating the HTTP backend if none is given."""
        if backend is None:
            from batchreel.backends.http import HttpGenerationBackend

            backend = HttpGenerationBackend.from_config(config.backend)
        return cls(
            backend,
            generation=config.generation,
            poll=config.poll,
            observer=observer,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def is_generating(self) -> bool:
        """True while run_all or retry_failed is active."""
        return self._batch_run is not None

    @property
    def is_busy(self) -> bool:
        return self._batch_run is not None or bool(self._regenerations)

    @property
    def progress(self) -> float:
        """Progress of the last full run, 0.0 to 1.0.

        Only run_all moves this value; retries and regenerations report
        their own progress to the observer.
        """
        return self._progress

    def __len__(self) -> int:
        return len(self._records)

    def snapshots(self) -> list[JobSnapshot]:
        return [record.snapshot() for record in self._records]

    def snapshot(self, index: int) -> JobSnapshot:
        return self._records[self._check_index(index)].snapshot()

    def counts(self) -> dict[JobStatus, int]:
        result = {status: 0 for status in JobStatus}
        for record in self._records:
            result[record.status] += 1
        return result

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def load(self, snapshots: Sequence[JobSnapshot]) -> None:
        """Replace the job list with previously saved snapshots.

        Snapshots must be indexed 0..n-1. Jobs saved while still processing
        have lost their handle and are restored as failed.

        Raises:
            RunInProgressError: If any run is active.
            ValueError: If indices are not contiguous from zero.
        """
        self._ensure_idle()
        ordered = sorted(snapshots, key=lambda s: s.index)
        if [s.index for s in ordered] != list(range(len(ordered))):
            raise ValueError("snapshot indices must be contiguous from 0")

        records: list[JobRecord] = []
        for snap in ordered:
            if snap.status is JobStatus.PROCESSING:
                snap = snap.model_copy(
                    update={
                        "status": JobStatus.FAILED,
                        "result_url": None,
                        "error_message": INTERRUPTED_MESSAGE,
                    }
                )
            records.append(JobRecord.from_snapshot(snap))
        self._records = records
        terminal = sum(1 for r in records if r.is_terminal)
        self._progress = terminal / len(records) if records else 0.0
        _logger.info("jobs_loaded", batch_id=self.batch_id, jobs=len(records))

    def cancel(self) -> None:
        """Ask every active run to stop; their pending jobs fail as cancelled."""
        runs = list(self._regenerations.values())
        if self._batch_run is not None:
            runs.append(self._batch_run)
        for run in runs:
            run.cancel()
        if runs:
            _logger.info("cancel_requested", batch_id=self.batch_id, runs=len(runs))

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_all(self, prompts: Sequence[str]) -> list[JobSnapshot]:
        """Generate every prompt as a fresh batch.

        Every job starts as processing. Prompts rejected at submission stay
        failed; the rest are polled until resolved or timed out.

        Returns:
            Snapshots of all jobs, aligned with ``prompts``.

        Raises:
            ValueError: If prompts is empty or contains a blank prompt.
            RunInProgressError: If any run is active.
            SubmissionError: If the submission call failed. The previous
                job list is kept and no new jobs are created.
        """
        self._ensure_idle()
        prompt_list = list(prompts)
        if not prompt_list:
            raise ValueError("at least one prompt is required")
        if any(not p.strip() for p in prompt_list):
            raise ValueError("prompts must be non-empty")

        records = [JobRecord(index=i, prompt=p) for i, p in enumerate(prompt_list)]
        for record in records:
            record.start()
        run = BatchRun(kind=RunKind.RUN_ALL, records=records, max_polls=self.poll.max_polls)

        self._batch_run = run
        try:
            with with_context(self._context(run)):
                _logger.info("run_started", jobs=len(records))
                await self._submit(run)
                self._records = records
                self._progress = run.progress
                self._notify(run)
                await self._drive(run)
                _logger.info(
                    "batch_complete",
                    processed=len(records),
                    completed=run.count(JobStatus.COMPLETED),
                    failed=run.count(JobStatus.FAILED),
                )
        finally:
            self._batch_run = None
        return self.snapshots()

    async def retry_failed(self) -> list[JobSnapshot]:
        """Resubmit every failed job, leaving all other jobs untouched.

        Returns:
            Snapshots of all jobs. Unchanged if nothing had failed.

        Raises:
            RunInProgressError: If any run is active.
            SubmissionError: If the submission call failed. The selected
                jobs are restored to their previous failed state.
        """
        self._ensure_idle()
        selected = [r for r in self._records if r.status is JobStatus.FAILED]
        if not selected:
            _logger.info("retry_skipped", batch_id=self.batch_id, reason="no_failed_jobs")
            return self.snapshots()

        previous = [r.snapshot() for r in selected]
        for record in selected:
            record.start()
        run = BatchRun(kind=RunKind.RETRY_FAILED, records=selected, max_polls=self.poll.max_polls)

        self._batch_run = run
        try:
            with with_context(self._context(run)):
                _logger.info("run_started", jobs=len(selected))
                try:
                    await self._submit(run)
                except BaseException:
                    for record, snap in zip(selected, previous, strict=True):
                        record.restore(snap)
                    raise
                self._notify(run)
                await self._drive(run)
        finally:
            self._batch_run = None
        return self.snapshots()

    async def regenerate(self, index: int) -> JobSnapshot:
        """Resubmit a single job by position.

        Any failure, including a failed submission call, is recorded on
        that job; other jobs and the batch progress are not touched.

        Raises:
            IndexError: If index is out of range.
            RunInProgressError: If a batch run is active or the job is
                already being regenerated.
        """
        index = self._check_index(index)
        if self._batch_run is not None:
            raise RunInProgressError("cannot regenerate while a batch run is active")
        if index in self._regenerations:
            raise RunInProgressError(f"job {index} is already being regenerated")

        record = self._records[index]
        record.start()
        run = BatchRun(kind=RunKind.REGENERATE, records=[record], max_polls=self.poll.max_polls)

        self._regenerations[index] = run
        try:
            with with_context(self._context(run).for_job(index)):
                _logger.info("run_started", jobs=1)
                try:
                    await self._submit(run)
                except SubmissionError as e:
                    record.fail(str(e) or run.kind.failure_default)
                    self._notify(run)
                    return record.snapshot()
                except asyncio.CancelledError:
                    record.fail(CANCELLED_MESSAGE)
                    raise
                except Exception as e:
                    record.fail(f"{run.kind.failure_default}: {e}")
                    raise
                self._notify(run)
                await self._drive(run)
        finally:
            del self._regenerations[index]
        return record.snapshot()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_index(self, index: int) -> int:
        if not 0 <= index < len(self._records):
            raise IndexError(f"job index {index} out of range (0..{len(self._records) - 1})")
        return index

    def _ensure_idle(self) -> None:
        if self._batch_run is not None:
            raise RunInProgressError(f"{self._batch_run.kind.value} is already running")
        if self._regenerations:
            raise RunInProgressError("a regeneration is still running")

    def _context(self, run: BatchRun) -> RunContext:
        return RunContext(batch_id=self.batch_id, run_id=run.run_id, kind=run.kind.value)

    def _notify(self, run: BatchRun) -> None:
        if run.kind is RunKind.RUN_ALL:
            self._progress = run.progress
        if self.observer is not None:
            self.observer(run.progress_report(self.snapshots()))

    async def _submit(self, run: BatchRun) -> None:
        try:
            await self._submitter.submit(run)
        except SubmissionError as e:
            _logger.error("submission_failed", jobs=run.total, status_code=e.status_code, error=str(e))
            raise

    async def _drive(self, run: BatchRun) -> None:
        """Poll the run to completion, never leaving a job processing."""
        try:
            await self._poller.run(run, on_tick=self._notify)
        except asyncio.CancelledError:
            run.fail_pending(CANCELLED_MESSAGE)
            raise
        except Exception as e:
            _logger.exception("poll_cycle_crashed", error=str(e))
            run.fail_pending(f"{run.kind.failure_default}: {e}")
            raise

        _logger.info(
            "run_finished",
            jobs=run.total,
            completed=run.count(JobStatus.COMPLETED),
            failed=run.count(JobStatus.FAILED),
            ticks=run.ticks,
            duration_seconds=round(run.elapsed_seconds, 2),
        )

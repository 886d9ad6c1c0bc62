"""Bounded poll cycle.

Waits one interval, queries every pending handle in a single call, applies
the response, and repeats until the pending set is empty, the query budget
is spent, or the run is cancelled. A failed status query skips the tick:
transport trouble never decides a job's outcome. Whatever is still pending
when the loop stops is failed with the run's timeout (or cancellation)
message, so no job outlives its run in PROCESSING.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from batchreel.backends.base import GenerationBackend
from batchreel.core.constants import CANCELLED_MESSAGE
from batchreel.core.errors import PollError
from batchreel.core.logging import get_logger
from batchreel.execution.reconciler import reconcile_tick
from batchreel.execution.run import BatchRun

_logger = get_logger("poller")

TickCallback = Callable[[BatchRun], None]


class PollCycle:
    """Drive one BatchRun's pending set to empty.

    Attributes:
        backend: Backend answering status queries.
        interval_seconds: Wait before each query.
    """

    def __init__(self, backend: GenerationBackend, interval_seconds: float) -> None:
        self.backend = backend
        self.interval_seconds = interval_seconds

    async def _wait_interval(self, run: BatchRun) -> bool:
        """Sleep one interval. Returns True if the run was cancelled."""
        if run.cancelled:
            return True
        try:
            await asyncio.wait_for(run.cancel_event.wait(), timeout=self.interval_seconds)
        except TimeoutError:
            return False
        return True

    async def poll_once(self, run: BatchRun) -> bool:
        """Issue one status query and apply it.

        Returns:
            False if the query failed and the tick was skipped.
        """
        run.ticks += 1
        requested = run.pending.items()
        try:
            results = await self.backend.poll([handle for handle, _ in requested])
        except PollError as e:
            _logger.warning(
                "poll_failed",
                tick=run.ticks,
                pending=len(requested),
                status_code=e.status_code,
                error=str(e),
            )
            return False

        if len(results) != len(requested):
            _logger.warning(
                "poll_misaligned",
                tick=run.ticks,
                requested=len(requested),
                returned=len(results),
            )

        summary = reconcile_tick(requested, results, run.pending, run.kind.failure_default)
        _logger.info(
            "poll_tick",
            tick=run.ticks,
            max_polls=run.max_polls,
            pending=len(run.pending),
            completed=summary.completed,
            failed=summary.failed,
            rotated=summary.rotated,
            progress=round(run.progress, 3),
        )
        return True

    async def run(self, run: BatchRun, on_tick: TickCallback | None = None) -> None:
        """Poll until the run's pending set is empty.

        Args:
            run: The run to drive. Its pending set is empty on return.
            on_tick: Called after every tick, skipped ticks included, and
                once more after leftover jobs are failed.
        """
        while run.pending and run.ticks < run.max_polls:
            if await self._wait_interval(run):
                break
            await self.poll_once(run)
            if on_tick is not None:
                on_tick(run)

        if not run.pending:
            return

        if run.cancelled:
            failed = run.fail_pending(CANCELLED_MESSAGE)
            _logger.warning("run_cancelled", tick=run.ticks, failed=len(failed))
        else:
            failed = run.fail_pending(run.kind.timeout_message)
            _logger.warning("run_timed_out", tick=run.ticks, failed=len(failed))
        if on_tick is not None:
            on_tick(run)

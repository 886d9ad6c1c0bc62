"""Batch submission.

Sends every prompt of a run in one call and sorts the per-prompt results:
accepted jobs get their handle and join the pending set, rejected jobs fail
immediately with the backend's message. If the call itself fails nothing is
touched and the SubmissionError propagates.
"""

from __future__ import annotations

from batchreel.backends.base import GenerationBackend, SubmitResponse
from batchreel.core.config import GenerationConfig
from batchreel.core.logging import get_logger
from batchreel.execution.run import BatchRun
from batchreel.models import JobStatus

_logger = get_logger("submitter")


class BatchSubmitter:
    """Submit a run's jobs and partition the immediate outcomes."""

    def __init__(self, backend: GenerationBackend, generation: GenerationConfig) -> None:
        self.backend = backend
        self.generation = generation

    async def submit(self, run: BatchRun) -> SubmitResponse:
        """Submit every job of ``run``.

        Jobs must be PROCESSING without a handle. Results are matched to
        jobs by position; a missing result or one carrying neither handle
        nor error counts as a rejection.

        Raises:
            ValueError: If the run has no jobs or a prompt is blank.
            SubmissionError: If the submission call failed. No job changes.
        """
        if not run.records:
            raise ValueError("cannot submit an empty batch")
        for record in run.records:
            if not record.prompt.strip():
                raise ValueError(f"job {record.index} has an empty prompt")
            if record.status is not JobStatus.PROCESSING or record.handle is not None:
                raise ValueError(f"job {record.index} is not ready for submission")

        prompts = [record.prompt for record in run.records]
        response = await self.backend.submit(
            self.generation.context_id,
            prompts,
            aspect_ratio=self.generation.aspect_ratio,
            lock_seed=self.generation.lock_seed,
        )

        if len(response.results) != len(prompts):
            _logger.warning(
                "submit_misaligned",
                submitted=len(prompts),
                returned=len(response.results),
            )

        accepted = 0
        for position, record in enumerate(run.records):
            result = response.results[position] if position < len(response.results) else None
            handle = result.handle if result is not None else None
            if handle is None:
                message = result.error_message if result is not None else None
                record.fail(message or run.kind.start_failure_message)
                continue
            record.accept(handle)
            try:
                run.pending.add(record)
            except ValueError:
                record.fail(run.kind.start_failure_message)
                continue
            accepted += 1

        _logger.info(
            "batch_submitted",
            submitted=len(prompts),
            accepted=accepted,
            rejected=len(prompts) - accepted,
            successful_starts=response.successful_starts,
        )
        return response

"""Exception hierarchy for batchreel.

All package exceptions inherit from BatchReelError, enabling callers to
catch broad (BatchReelError) or narrow (e.g., SubmissionError). Job-scoped
failures are never raised; they are recorded on the job itself.
"""

from __future__ import annotations


class BatchReelError(Exception):
    """Base exception for all batchreel errors."""


class ConfigError(BatchReelError):
    """Raised when a configuration file cannot be read or fails validation."""


class BackendError(BatchReelError):
    """Base for failures talking to the generation backend.

    Attributes:
        status_code: HTTP status code when the backend answered, else None.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SubmissionError(BackendError):
    """Raised when a batch submission call cannot be completed.

    Batch-fatal: no job records are created for the submission.
    """


class PollError(BackendError):
    """Raised when a status query cannot be completed.

    Transient: the poll cycle skips the tick and tries again next interval.
    """


class RunInProgressError(BatchReelError):
    """Raised when a run is started against jobs already owned by another run.

    Examples: run_all while retry_failed is active, or regenerating a job
    that is already being regenerated.
    """

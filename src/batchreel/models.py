"""Job data model.

A JobRecord is one generation request plus its mutable execution state.
Records are owned by the orchestrator; everything outside it sees
JobSnapshot copies, which never carry the backend handle.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class JobStatus(str, Enum):
    """Lifecycle status of a single generation job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class JobHandle:
    """Backend-issued reference used to poll a submitted job.

    Immutable: a rotation produces a new handle which replaces the old one
    on the record.
    """

    operation_token: str
    scene_id: str = ""
    credential_id: str = ""
    history_id: str = ""

    def rotated(
        self,
        operation_token: str,
        scene_id: str | None = None,
        credential_id: str | None = None,
    ) -> JobHandle:
        """Return the handle reissued by the backend.

        Scene and credential ids are kept when the backend omits them; the
        history id never changes.
        """
        return JobHandle(
            operation_token=operation_token,
            scene_id=scene_id or self.scene_id,
            credential_id=credential_id or self.credential_id,
            history_id=self.history_id,
        )


class JobSnapshot(BaseModel):
    """Read-only, serializable view of a job for observers and storage."""

    model_config = ConfigDict(frozen=True)

    index: int
    prompt: str
    status: JobStatus
    result_url: str | None = None
    error_message: str | None = None
    attempts: int = 0

    @model_validator(mode="after")
    def _check_outcome(self) -> JobSnapshot:
        """Completed jobs carry only a URL, failed jobs only a message."""
        if self.status is JobStatus.COMPLETED and (not self.result_url or self.error_message):
            raise ValueError(f"completed job {self.index} needs a result_url and no error_message")
        if self.status is JobStatus.FAILED and (not self.error_message or self.result_url):
            raise ValueError(f"failed job {self.index} needs an error_message and no result_url")
        return self


@dataclass
class JobRecord:
    """One prompt and its execution state.

    Invariants:
        - while PROCESSING, result_url and error_message are both None
        - once terminal, exactly one of them is set
        - handle is only replaced while PROCESSING
    """

    index: int
    prompt: str
    status: JobStatus = JobStatus.PENDING
    handle: JobHandle | None = None
    result_url: str | None = None
    error_message: str | None = None
    attempts: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def start(self) -> None:
        """Enter PROCESSING for a new submission, clearing any prior outcome."""
        self.status = JobStatus.PROCESSING
        self.handle = None
        self.result_url = None
        self.error_message = None
        self.attempts += 1

    def accept(self, handle: JobHandle) -> None:
        """Attach the handle issued at submission."""
        if self.status is not JobStatus.PROCESSING:
            raise ValueError(f"job {self.index} is {self.status.value}, not processing")
        self.handle = handle

    def rotate(self, handle: JobHandle) -> None:
        """Replace the handle after a backend-side reissue."""
        if self.status is not JobStatus.PROCESSING or self.handle is None:
            raise ValueError(f"job {self.index} has no live handle to rotate")
        self.handle = handle

    def complete(self, result_url: str) -> None:
        if self.status is not JobStatus.PROCESSING:
            raise ValueError(f"job {self.index} is {self.status.value}, not processing")
        self.status = JobStatus.COMPLETED
        self.result_url = result_url
        self.error_message = None
        self.handle = None

    def fail(self, error_message: str) -> None:
        if self.is_terminal:
            raise ValueError(f"job {self.index} is already {self.status.value}")
        self.status = JobStatus.FAILED
        self.error_message = error_message
        self.result_url = None
        self.handle = None

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            index=self.index,
            prompt=self.prompt,
            status=self.status,
            result_url=self.result_url,
            error_message=self.error_message,
            attempts=self.attempts,
        )

    def restore(self, snapshot: JobSnapshot) -> None:
        """Put the record back into a previously captured state."""
        self.status = snapshot.status
        self.result_url = snapshot.result_url
        self.error_message = snapshot.error_message
        self.attempts = snapshot.attempts
        self.handle = None

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> JobRecord:
        record = cls(index=snapshot.index, prompt=snapshot.prompt)
        record.restore(snapshot)
        return record

"""Abstract base for generation backends and their wire models.

The backend contract is two request/response calls:

- ``submit``: one call carrying every prompt of a batch, answered with one
  result per prompt (a handle, or an error when the prompt was rejected).
- ``poll``: one call carrying every outstanding handle, answered with one
  status entry per handle, in request order.

Wire field names follow the service's JSON (``operationName``,
``videoUrl``...); the models expose snake_case attributes and accept either.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from batchreel.models import JobHandle


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _text_or_none(value: Any) -> str | None:
    """Keep strings, render numbers, drop anything else (null, objects, lists)."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


class SubmitResult(_WireModel):
    """Outcome of one prompt within a batch submission."""

    prompt: str = ""
    operation_token: str | None = Field(default=None, alias="operationName")
    scene_id: str | None = Field(default=None, alias="sceneId")
    credential_id: str | None = Field(default=None, alias="tokenId")
    history_id: str | None = Field(default=None, alias="historyId")
    error_message: str | None = Field(default=None, alias="error")

    @field_validator("error_message", mode="before")
    @classmethod
    def _loose_error(cls, v: Any) -> str | None:
        return _text_or_none(v)

    @property
    def handle(self) -> JobHandle | None:
        """The issued handle, or None when the prompt was not accepted."""
        if not self.operation_token:
            return None
        return JobHandle(
            operation_token=self.operation_token,
            scene_id=self.scene_id or "",
            credential_id=self.credential_id or "",
            history_id=self.history_id or "",
        )


class SubmitResponse(_WireModel):
    """Body of a successful batch submission."""

    total_submitted: int = Field(default=0, alias="totalVideos")
    successful_starts: int = Field(default=0, alias="successfulStarts")
    results: list[SubmitResult] = Field(default_factory=list)


class PollResult(_WireModel):
    """Status of one handle in a batch status query."""

    status: str | None = None
    result_url: str | None = Field(default=None, alias="videoUrl")
    error_message: str | None = Field(default=None, alias="error")
    new_operation_token: str | None = Field(default=None, alias="newOperationName")
    new_scene_id: str | None = Field(default=None, alias="newSceneId")
    credential_id: str | None = Field(default=None, alias="tokenId")

    @field_validator(
        "status",
        "result_url",
        "error_message",
        "new_operation_token",
        "new_scene_id",
        "credential_id",
        mode="before",
    )
    @classmethod
    def _loose_text(cls, v: Any) -> str | None:
        """Non-text values read as missing."""
        return _text_or_none(v)

    @property
    def tag(self) -> str:
        """Normalized status tag."""
        return (self.status or "").strip().lower()


def handle_to_wire(handle: JobHandle) -> dict[str, Any]:
    """Encode a handle the way the status endpoint expects it."""
    return {
        "operationName": handle.operation_token,
        "sceneId": handle.scene_id,
        "tokenId": handle.credential_id,
        "historyId": handle.history_id,
    }


class GenerationBackend(ABC):
    """Abstract base class for generation backends.

    Implementations raise SubmissionError / PollError when a call cannot be
    completed; per-job problems are reported inside the response instead.
    """

    @abstractmethod
    async def submit(
        self,
        context_id: str,
        prompts: Sequence[str],
        *,
        aspect_ratio: str = "landscape",
        lock_seed: bool = False,
    ) -> SubmitResponse:
        """Submit a batch of prompts for generation.

        Args:
            context_id: Character/context the prompts belong to.
            prompts: Ordered, non-empty prompt strings.
            aspect_ratio: Output aspect ratio.
            lock_seed: Reuse one seed across the batch.

        Returns:
            SubmitResponse whose results align positionally with prompts.

        Raises:
            SubmissionError: If the call failed as a whole.
        """
        ...

    @abstractmethod
    async def poll(self, handles: Sequence[JobHandle]) -> list[PollResult]:
        """Query the status of several jobs in one call.

        Returns:
            One PollResult per handle, in request order.

        Raises:
            PollError: If the call failed as a whole.
        """
        ...

    async def close(self) -> None:
        """Release any connection resources. No-op by default."""
        return None

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name."""
        ...

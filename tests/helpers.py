"""Shared test helpers for batchreel tests."""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from typing import Any

from batchreel.backends.base import GenerationBackend, PollResult, SubmitResponse, SubmitResult
from batchreel.core.errors import PollError, SubmissionError
from batchreel.models import JobHandle


def completed(url: str) -> dict[str, Any]:
    return {"status": "completed", "videoUrl": url}


def failed(error: str | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {"status": "failed"}
    if error is not None:
        entry["error"] = error
    return entry


def pending(tag: str = "processing") -> dict[str, Any]:
    return {"status": tag}


def retrying(new_token: str | None = None, **extra: Any) -> dict[str, Any]:
    """A rotation entry. A fresh token is minted by the backend when omitted."""
    entry: dict[str, Any] = {"status": "retrying", **extra}
    if new_token is not None:
        entry["newOperationName"] = new_token
    return entry


class ScriptedBackend(GenerationBackend):
    """In-memory backend driven by per-prompt status scripts.

    ``scripts`` maps a prompt to the status entries returned on successive
    polls of a job submitted for it; the last entry repeats once the script
    runs out. Prompts without a script complete on their first poll. Each
    submission restarts the script, so tests can swap scripts between a run
    and its retry.
    """

    def __init__(
        self,
        scripts: dict[str, list[dict[str, Any]]] | None = None,
        *,
        reject: dict[str, str | None] | None = None,
        submit_error: Exception | None = None,
        poll_failures: int = 0,
    ) -> None:
        self.scripts = scripts if scripts is not None else {}
        self.reject = reject if reject is not None else {}
        self.submit_error = submit_error
        self.poll_failures = poll_failures
        self.submit_calls: list[dict[str, Any]] = []
        self.poll_calls: list[list[JobHandle]] = []
        self.closed = False
        self._ids = itertools.count(1)
        self._steps: dict[str, tuple[str, int]] = {}

    @property
    def name(self) -> str:
        return "scripted"

    def _mint(self) -> str:
        return f"op-{next(self._ids)}"

    async def submit(
        self,
        context_id: str,
        prompts: Sequence[str],
        *,
        aspect_ratio: str = "landscape",
        lock_seed: bool = False,
    ) -> SubmitResponse:
        self.submit_calls.append(
            {
                "context_id": context_id,
                "prompts": list(prompts),
                "aspect_ratio": aspect_ratio,
                "lock_seed": lock_seed,
            }
        )
        if self.submit_error is not None:
            raise self.submit_error

        results: list[SubmitResult] = []
        for prompt in prompts:
            if prompt in self.reject:
                results.append(SubmitResult(prompt=prompt, error_message=self.reject[prompt]))
                continue
            token = self._mint()
            self._steps[token] = (prompt, 0)
            results.append(
                SubmitResult(
                    prompt=prompt,
                    operation_token=token,
                    scene_id=f"scene-{token}",
                    credential_id="cred-1",
                    history_id=f"hist-{token}",
                )
            )
        return SubmitResponse(
            total_submitted=len(prompts),
            successful_starts=sum(1 for r in results if r.operation_token),
            results=results,
        )

    async def poll(self, handles: Sequence[JobHandle]) -> list[PollResult]:
        self.poll_calls.append(list(handles))
        if self.poll_failures:
            self.poll_failures -= 1
            raise PollError("status endpoint unavailable", status_code=503)

        results: list[PollResult] = []
        for handle in handles:
            prompt, step = self._steps.get(handle.operation_token, ("", 0))
            script = self.scripts.get(prompt) or [completed(f"https://cdn.test/{prompt}.mp4")]
            entry = dict(script[min(step, len(script) - 1)])
            self._steps[handle.operation_token] = (prompt, step + 1)
            if entry.get("status") == "retrying" and "newOperationName" not in entry:
                entry["newOperationName"] = self._mint()
            if entry.get("newOperationName"):
                self._steps[entry["newOperationName"]] = (prompt, step + 1)
            results.append(PollResult.model_validate(entry))
        return results

    async def close(self) -> None:
        self.closed = True


def transport_failure(message: str = "connection refused") -> SubmissionError:
    return SubmissionError(f"Request to /api/character-bulk-generate failed: {message}")

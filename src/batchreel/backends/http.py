"""HTTP generation backend.

Talks to the generation service's JSON endpoints with httpx.AsyncClient.
Credential rotation, uploads and model invocation all happen server-side;
this client only submits batches and polls their status.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from batchreel.backends.base import (
    GenerationBackend,
    PollResult,
    SubmitResponse,
    handle_to_wire,
)
from batchreel.core.config import BackendConfig
from batchreel.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from batchreel.core.errors import BackendError, PollError, SubmissionError
from batchreel.core.logging import get_logger
from batchreel.models import JobHandle

_logger = get_logger("backend.http")


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of an error response body."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    text = response.text or ""
    return text[:TRUNCATE_ERROR_MESSAGE_CHARS] or f"HTTP {response.status_code}"


class HttpGenerationBackend(GenerationBackend):
    """Generation backend over the service's HTTP API.

    Attributes:
        base_url: Service root, without trailing slash.
        submit_path: Batch submission endpoint.
        poll_path: Batch status endpoint.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        *,
        submit_path: str = "/api/character-bulk-generate",
        poll_path: str = "/api/check-videos-batch",
        timeout: float = 60.0,
        auth_token: str | None = None,
        cookie: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.submit_path = submit_path
        self.poll_path = poll_path
        self.timeout = timeout
        self._headers: dict[str, str] = {"Content-Type": "application/json"}
        if auth_token:
            self._headers["Authorization"] = f"Bearer {auth_token}"
        if cookie:
            self._headers["Cookie"] = cookie
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: BackendConfig) -> HttpGenerationBackend:
        return cls(
            config.base_url,
            submit_path=config.submit_path,
            poll_path=config.poll_path,
            timeout=config.timeout_seconds,
            auth_token=config.auth_token,
            cookie=config.cookie,
        )

    @property
    def name(self) -> str:
        return "http"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or lazily create the HTTP client inside the running loop."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=self._headers,
            )
        return self._client

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        error_cls: type[BackendError],
    ) -> Any:
        """POST JSON and return the decoded body.

        Raises:
            error_cls: On transport failure, non-2xx status or a body that
                is not JSON.
        """
        start_time = time.monotonic()
        _logger.debug("http_request", endpoint=f"{self.base_url}{path}", timeout=self.timeout)

        try:
            client = await self._get_client()
            response = await client.post(path, json=payload)
        except httpx.TimeoutException as e:
            _logger.warning(
                "request_timeout",
                endpoint=path,
                duration_seconds=time.monotonic() - start_time,
            )
            raise error_cls(f"Request to {path} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            _logger.warning("connection_error", endpoint=path, error_message=str(e))
            raise error_cls(f"Request to {path} failed: {e}") from e

        duration = time.monotonic() - start_time
        if not 200 <= response.status_code < 300:
            detail = _error_detail(response)
            _logger.error(
                "api_error_response",
                endpoint=path,
                status_code=response.status_code,
                duration_seconds=duration,
                detail=detail,
            )
            raise error_cls(
                f"HTTP {response.status_code} from {path}: {detail}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise error_cls(f"Malformed JSON from {path}", status_code=response.status_code) from e

        _logger.debug(
            "http_response",
            endpoint=path,
            status_code=response.status_code,
            duration_seconds=duration,
        )
        return data

    async def submit(
        self,
        context_id: str,
        prompts: Sequence[str],
        *,
        aspect_ratio: str = "landscape",
        lock_seed: bool = False,
    ) -> SubmitResponse:
        payload = {
            "characterId": context_id,
            "prompts": list(prompts),
            "aspectRatio": aspect_ratio,
            "lockSeed": lock_seed,
        }
        data = await self._post(self.submit_path, payload, SubmissionError)
        try:
            return SubmitResponse.model_validate(data)
        except ValidationError as e:
            raise SubmissionError(f"Unexpected submit response: {e}") from e

    async def poll(self, handles: Sequence[JobHandle]) -> list[PollResult]:
        payload = {"videos": [handle_to_wire(h) for h in handles]}
        data = await self._post(self.poll_path, payload, PollError)
        if not isinstance(data, dict):
            raise PollError("Unexpected poll response: body is not an object")
        items = data.get("results") or []
        if not isinstance(items, list):
            raise PollError("Unexpected poll response: results is not a list")
        results: list[PollResult] = []
        for position, item in enumerate(items):
            try:
                results.append(PollResult.model_validate(item))
            except ValidationError as e:
                # Unreadable entries stay pending; siblings are still reconciled.
                _logger.warning("poll_entry_invalid", position=position, error=str(e))
                results.append(PollResult())
        return results

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HttpGenerationBackend:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

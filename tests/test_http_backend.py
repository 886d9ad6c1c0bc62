"""Tests for batchreel.backends.http module.

Covers HttpGenerationBackend: initialization, submit() and poll() payloads
and parsing, the error mapping for transport failures, non-2xx responses
and malformed bodies, and close.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from batchreel.backends.http import HttpGenerationBackend
from batchreel.core.config import BackendConfig
from batchreel.core.errors import PollError, SubmissionError
from batchreel.models import JobHandle


def _response(status_code: int = 200, body: object = None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def _client(response: MagicMock | None = None, error: Exception | None = None) -> AsyncMock:
    client = AsyncMock()
    if error is not None:
        client.post.side_effect = error
    else:
        client.post.return_value = response
    return client


class TestInit:
    """Tests for HttpGenerationBackend initialization."""

    def test_default_values(self) -> None:
        backend = HttpGenerationBackend()
        assert backend.base_url == "http://localhost:5000"
        assert backend.submit_path == "/api/character-bulk-generate"
        assert backend.poll_path == "/api/check-videos-batch"
        assert backend.timeout == 60.0
        assert backend.name == "http"

    def test_trailing_slash_stripped(self) -> None:
        backend = HttpGenerationBackend("https://studio.example.com/")
        assert backend.base_url == "https://studio.example.com"

    def test_credentials_become_headers(self) -> None:
        backend = HttpGenerationBackend(auth_token="tok-123", cookie="session=abc")
        assert backend._headers["Authorization"] == "Bearer tok-123"
        assert backend._headers["Cookie"] == "session=abc"

    def test_no_credential_headers_by_default(self) -> None:
        backend = HttpGenerationBackend()
        assert "Authorization" not in backend._headers
        assert "Cookie" not in backend._headers

    def test_from_config(self) -> None:
        config = BackendConfig(
            base_url="https://studio.example.com",
            submit_path="bulk",
            poll_path="/status",
            timeout_seconds=15,
            auth_token="tok-123",
        )
        backend = HttpGenerationBackend.from_config(config)
        assert backend.base_url == "https://studio.example.com"
        assert backend.submit_path == "/bulk"
        assert backend.poll_path == "/status"
        assert backend.timeout == 15
        assert backend._headers["Authorization"] == "Bearer tok-123"


class TestSubmit:
    """Tests for submit() with mocked HTTP responses."""

    @pytest.fixture()
    def backend(self) -> HttpGenerationBackend:
        return HttpGenerationBackend("http://test:5000")

    async def test_payload_and_parsing(self, backend: HttpGenerationBackend) -> None:
        body = {
            "totalVideos": 2,
            "successfulStarts": 1,
            "results": [
                {
                    "prompt": "a cat",
                    "operationName": "op-1",
                    "sceneId": "scene-1",
                    "tokenId": "cred-1",
                    "historyId": "hist-1",
                },
                {"prompt": "a dog", "error": "content policy violation"},
            ],
        }
        client = _client(_response(200, body))

        with patch.object(backend, "_get_client", return_value=client):
            response = await backend.submit("char-1", ["a cat", "a dog"], aspect_ratio="landscape", lock_seed=True)

        client.post.assert_awaited_once_with(
            "/api/character-bulk-generate",
            json={
                "characterId": "char-1",
                "prompts": ["a cat", "a dog"],
                "aspectRatio": "landscape",
                "lockSeed": True,
            },
        )
        assert response.total_submitted == 2
        assert response.successful_starts == 1
        assert response.results[0].handle == JobHandle("op-1", "scene-1", "cred-1", "hist-1")
        assert response.results[1].handle is None
        assert response.results[1].error_message == "content policy violation"

    async def test_unknown_keys_are_ignored(self, backend: HttpGenerationBackend) -> None:
        body = {"results": [{"operationName": "op-1", "extra": {"nested": True}}], "debug": "x"}
        client = _client(_response(200, body))

        with patch.object(backend, "_get_client", return_value=client):
            response = await backend.submit("char-1", ["a cat"])

        assert response.results[0].operation_token == "op-1"

    async def test_connection_error(self, backend: HttpGenerationBackend) -> None:
        client = _client(error=httpx.ConnectError("Connection refused"))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(SubmissionError, match="Connection refused") as exc_info:
                await backend.submit("char-1", ["a cat"])

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.status_code is None

    async def test_timeout(self, backend: HttpGenerationBackend) -> None:
        client = _client(error=httpx.ReadTimeout("Timed out"))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(SubmissionError, match="timed out"):
                await backend.submit("char-1", ["a cat"])

    async def test_error_status_uses_body_message(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(429, {"error": "Too many requests"}))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(SubmissionError, match="Too many requests") as exc_info:
                await backend.submit("char-1", ["a cat"])

        assert exc_info.value.status_code == 429

    async def test_error_status_with_text_body(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(502, ValueError("not json"), text="Bad Gateway"))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(SubmissionError, match="HTTP 502.*Bad Gateway"):
                await backend.submit("char-1", ["a cat"])

    async def test_malformed_json(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(200, ValueError("Expecting value")))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(SubmissionError, match="Malformed JSON"):
                await backend.submit("char-1", ["a cat"])

    async def test_unexpected_shape(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(200, {"results": "not a list"}))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(SubmissionError, match="Unexpected submit response"):
                await backend.submit("char-1", ["a cat"])


class TestPoll:
    """Tests for poll() with mocked HTTP responses."""

    @pytest.fixture()
    def backend(self) -> HttpGenerationBackend:
        return HttpGenerationBackend("http://test:5000")

    async def test_payload_and_parsing(self, backend: HttpGenerationBackend) -> None:
        handles = [
            JobHandle("op-1", "scene-1", "cred-1", "hist-1"),
            JobHandle("op-2", "scene-2", "cred-1", "hist-2"),
        ]
        body = {
            "results": [
                {"status": "COMPLETED", "videoUrl": "https://cdn.test/1.mp4"},
                {"status": "retrying", "newOperationName": "op-3", "newSceneId": "scene-3", "tokenId": "cred-2"},
            ]
        }
        client = _client(_response(200, body))

        with patch.object(backend, "_get_client", return_value=client):
            results = await backend.poll(handles)

        client.post.assert_awaited_once_with(
            "/api/check-videos-batch",
            json={
                "videos": [
                    {"operationName": "op-1", "sceneId": "scene-1", "tokenId": "cred-1", "historyId": "hist-1"},
                    {"operationName": "op-2", "sceneId": "scene-2", "tokenId": "cred-1", "historyId": "hist-2"},
                ]
            },
        )
        assert results[0].tag == "completed"
        assert results[0].result_url == "https://cdn.test/1.mp4"
        assert results[1].new_operation_token == "op-3"
        assert results[1].new_scene_id == "scene-3"
        assert results[1].credential_id == "cred-2"

    async def test_malformed_entry_keeps_siblings(self, backend: HttpGenerationBackend) -> None:
        """A null status or an object error only affects its own entry."""
        body = {
            "results": [
                {"status": "completed", "videoUrl": "https://cdn.test/a.mp4"},
                {"status": None},
                {"status": "failed", "error": {"code": 429}},
                "garbage",
            ]
        }
        client = _client(_response(200, body))

        with patch.object(backend, "_get_client", return_value=client):
            results = await backend.poll([JobHandle(f"op-{i}") for i in range(4)])

        assert len(results) == 4
        assert results[0].tag == "completed"
        assert results[0].result_url == "https://cdn.test/a.mp4"
        assert results[1].tag == ""
        assert results[2].tag == "failed"
        assert results[2].error_message is None
        assert results[3].tag == ""

    async def test_results_not_a_list(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(200, {"results": {"status": "completed"}}))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(PollError, match="not a list"):
                await backend.poll([JobHandle("op-1")])

    async def test_missing_results_key(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(200, {}))

        with patch.object(backend, "_get_client", return_value=client):
            assert await backend.poll([JobHandle("op-1")]) == []

    async def test_non_object_body(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(200, ["unexpected"]))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(PollError, match="not an object"):
                await backend.poll([JobHandle("op-1")])

    async def test_server_error(self, backend: HttpGenerationBackend) -> None:
        client = _client(_response(500, {"message": "Internal error"}))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(PollError, match="Internal error") as exc_info:
                await backend.poll([JobHandle("op-1")])

        assert exc_info.value.status_code == 500

    async def test_connection_error_is_poll_error(self, backend: HttpGenerationBackend) -> None:
        client = _client(error=httpx.ConnectError("Connection refused"))

        with patch.object(backend, "_get_client", return_value=client):
            with pytest.raises(PollError):
                await backend.poll([JobHandle("op-1")])


class TestClose:
    async def test_close_without_client(self) -> None:
        backend = HttpGenerationBackend()
        await backend.close()
        assert backend._client is None

    async def test_close_releases_client(self) -> None:
        backend = HttpGenerationBackend()
        client = await backend._get_client()
        assert not client.is_closed

        await backend.close()

        assert client.is_closed
        assert backend._client is None

    async def test_context_manager_closes(self) -> None:
        async with HttpGenerationBackend() as backend:
            client = await backend._get_client()
        assert client.is_closed

    async def test_client_reused(self) -> None:
        backend = HttpGenerationBackend()
        try:
            assert await backend._get_client() is await backend._get_client()
        finally:
            await backend.close()

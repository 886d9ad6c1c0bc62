"""Pytest fixtures for batchreel tests."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from batchreel.core.config import GenerationConfig, PollConfig
from batchreel.execution.orchestrator import BatchOrchestrator

from tests.helpers import ScriptedBackend


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    from batchreel.cli import helpers as cli_helpers

    cli_helpers.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_logging_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def poll_config() -> PollConfig:
    """No waiting between polls and a short budget."""
    return PollConfig(interval_seconds=0, max_polls=5)


@pytest.fixture
def generation_config() -> GenerationConfig:
    return GenerationConfig(context_id="char-1", aspect_ratio="landscape", lock_seed=False)


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def orchestrator(
    backend: ScriptedBackend,
    poll_config: PollConfig,
    generation_config: GenerationConfig,
) -> BatchOrchestrator:
    return BatchOrchestrator(
        backend,
        generation=generation_config,
        poll=poll_config,
        batch_id="test-batch",
    )


@pytest.fixture
def sample_config_yaml() -> str:
    return """
backend:
  base_url: "https://studio.example.com/"
  timeout_seconds: 30
poll:
  interval_seconds: 0
  max_polls: 5
generation:
  context_id: "char_7f3a"
  aspect_ratio: portrait
  lock_seed: true
"""


@pytest.fixture
def config_file(tmp_path: Path, sample_config_yaml: str) -> Path:
    path = tmp_path / "batch.yaml"
    path.write_text(sample_config_yaml)
    return path

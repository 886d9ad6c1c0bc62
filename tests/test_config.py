"""Tests for batchreel.core.config models and YAML loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from batchreel.core.config import (
    BackendConfig,
    BatchConfig,
    GenerationConfig,
    LogConfig,
    PollConfig,
)
from batchreel.core.errors import ConfigError


class TestDefaults:
    def test_poll_defaults(self) -> None:
        """Three-second interval and sixty polls: a three minute budget."""
        config = PollConfig()
        assert config.interval_seconds == 3.0
        assert config.max_polls == 60

    def test_generation_defaults(self) -> None:
        config = GenerationConfig()
        assert config.aspect_ratio == "landscape"
        assert config.lock_seed is False
        assert config.context_id == ""

    def test_backend_defaults(self) -> None:
        config = BackendConfig()
        assert config.submit_path == "/api/character-bulk-generate"
        assert config.poll_path == "/api/check-videos-batch"
        assert config.auth_token is None

    def test_batch_config_defaults(self) -> None:
        config = BatchConfig()
        assert config.poll.max_polls == 60
        assert config.logging.level == "INFO"


class TestValidation:
    def test_max_polls_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PollConfig(max_polls=0)

    def test_interval_may_be_zero(self) -> None:
        assert PollConfig(interval_seconds=0).interval_seconds == 0

    def test_negative_interval_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PollConfig(interval_seconds=-1)

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            BackendConfig(timeout_seconds=0)

    def test_unknown_aspect_ratio_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GenerationConfig(aspect_ratio="ultrawide")

    def test_paths_get_leading_slash(self) -> None:
        config = BackendConfig(submit_path="api/bulk", poll_path="api/status")
        assert config.submit_path == "/api/bulk"
        assert config.poll_path == "/api/status"

    def test_log_both_requires_file(self) -> None:
        with pytest.raises(ValidationError, match="file_path is required"):
            LogConfig(format="both")

    def test_log_both_with_file(self, tmp_path: Path) -> None:
        config = LogConfig(format="both", file_path=tmp_path / "batch.log")
        assert config.file_path == tmp_path / "batch.log"


class TestYamlLoading:
    def test_from_yaml(self, config_file: Path) -> None:
        config = BatchConfig.from_yaml(config_file)
        assert config.backend.base_url == "https://studio.example.com"
        assert config.backend.timeout_seconds == 30
        assert config.poll.interval_seconds == 0
        assert config.poll.max_polls == 5
        assert config.generation.context_id == "char_7f3a"
        assert config.generation.aspect_ratio == "portrait"
        assert config.generation.lock_seed is True

    def test_empty_document_gives_defaults(self) -> None:
        assert BatchConfig.from_yaml_string("") == BatchConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read config"):
            BatchConfig.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            BatchConfig.from_yaml_string("poll: [unclosed")

    def test_non_mapping_root(self) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            BatchConfig.from_yaml_string("- just\n- a list\n")

    def test_schema_error_becomes_config_error(self) -> None:
        with pytest.raises(ConfigError, match="max_polls"):
            BatchConfig.from_yaml_string("poll:\n  max_polls: 0\n")

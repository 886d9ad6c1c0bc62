"""Configuration models for batchreel.

Pydantic models for loading and validating YAML batch configurations.

Example YAML:
    backend:
      base_url: "https://studio.example.com"
      timeout_seconds: 60
    poll:
      interval_seconds: 3
      max_polls: 60
    generation:
      context_id: "char_7f3a"
      aspect_ratio: landscape
      lock_seed: false
    logging:
      level: INFO
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from batchreel.core.constants import (
    DEFAULT_MAX_POLLS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_POLL_PATH,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_SUBMIT_PATH,
)
from batchreel.core.errors import ConfigError


class BackendConfig(BaseModel):
    """Connection settings for the generation backend HTTP API."""

    base_url: str = Field(
        default="http://localhost:5000",
        description="Base URL of the generation service",
    )
    submit_path: str = Field(
        default=DEFAULT_SUBMIT_PATH,
        description="Path of the batch submission endpoint",
    )
    poll_path: str = Field(
        default=DEFAULT_POLL_PATH,
        description="Path of the batch status endpoint",
    )
    timeout_seconds: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        gt=0,
        description="Request timeout in seconds for submit and poll calls",
    )
    auth_token: str | None = Field(
        default=None,
        description="Bearer token sent as the Authorization header",
    )
    cookie: str | None = Field(
        default=None,
        description="Raw Cookie header for session-gated deployments",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("submit_path", "poll_path")
    @classmethod
    def _require_leading_slash(cls, v: str) -> str:
        if not v.startswith("/"):
            return "/" + v
        return v


class PollConfig(BaseModel):
    """Polling cadence and budget for one run.

    The run times out after ``interval_seconds * max_polls`` seconds of
    waiting (3 minutes with the defaults).
    """

    interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        ge=0,
        description="Seconds between status queries",
    )
    max_polls: int = Field(
        default=DEFAULT_MAX_POLLS,
        ge=1,
        description="Status queries before pending jobs are timed out",
    )


class GenerationConfig(BaseModel):
    """Parameters sent with every batch submission."""

    context_id: str = Field(
        default="",
        description="Character/context identifier the prompts are generated for",
    )
    aspect_ratio: Literal["landscape", "portrait", "square"] = Field(
        default="landscape",
        description="Output aspect ratio",
    )
    lock_seed: bool = Field(
        default=False,
        description="Reuse the same seed across the batch",
    )


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable, "
        "both for console to stderr and JSON to file",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for log file output (required if format='both')",
    )

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        """Validate that file_path is set when format requires file output."""
        if self.format == "both" and self.file_path is None:
            raise ValueError(
                f"file_path is required when format='{self.format}'"
            )
        return self


class BatchConfig(BaseModel):
    """Top-level configuration for a batch generation session."""

    backend: BackendConfig = Field(default_factory=BackendConfig)
    poll: PollConfig = Field(default_factory=PollConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> BatchConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigError: If the file is unreadable, not YAML, or invalid.
        """
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> BatchConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

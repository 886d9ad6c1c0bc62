"""Core configuration, errors and logging."""

from batchreel.core.config import BackendConfig, BatchConfig, GenerationConfig, PollConfig
from batchreel.core.errors import (
    BackendError,
    BatchReelError,
    ConfigError,
    PollError,
    RunInProgressError,
    SubmissionError,
)

__all__ = [
    "BackendConfig",
    "BackendError",
    "BatchConfig",
    "BatchReelError",
    "ConfigError",
    "GenerationConfig",
    "PollConfig",
    "PollError",
    "RunInProgressError",
    "SubmissionError",
]

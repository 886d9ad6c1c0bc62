"""Generation backends."""

from batchreel.backends.base import (
    GenerationBackend,
    PollResult,
    SubmitResponse,
    SubmitResult,
)
from batchreel.backends.http import HttpGenerationBackend

__all__ = [
    "GenerationBackend",
    "HttpGenerationBackend",
    "PollResult",
    "SubmitResponse",
    "SubmitResult",
]

"""JSON results file.

Stores the job snapshots of a session so a later ``retry`` or
``regenerate`` invocation can pick up where ``run`` left off. Writes go
through a temp file and a rename, so a crash never leaves a half-written
results file behind.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from batchreel.core.errors import BatchReelError
from batchreel.core.logging import get_logger
from batchreel.models import JobSnapshot
from batchreel.utils.time import utc_now

_logger = get_logger("state")

RESULTS_VERSION = 1


class ResultsFileError(BatchReelError):
    """Raised when a results file is missing, unreadable or invalid."""


class ResultsDocument(BaseModel):
    """On-disk layout of a results file."""

    version: int = RESULTS_VERSION
    context_id: str = ""
    saved_at: datetime = Field(default_factory=utc_now)
    jobs: list[JobSnapshot] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_indices(self) -> ResultsDocument:
        """Job indices must be 0..n-1, each exactly once."""
        indices = sorted(job.index for job in self.jobs)
        if indices != list(range(len(indices))):
            raise ValueError(f"job indices must be contiguous from 0, got {indices}")
        return self


class JsonResultsStore:
    """Load and save job snapshots as a single JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> ResultsDocument:
        """Read the results file.

        Raises:
            ResultsFileError: If the file is missing or does not validate.
        """
        if not self.path.exists():
            raise ResultsFileError(f"Results file not found: {self.path}")
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return ResultsDocument.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ResultsFileError(f"Cannot read results from {self.path}: {e}") from e

    def save(self, jobs: list[JobSnapshot], context_id: str = "") -> ResultsDocument:
        """Write snapshots atomically and return the saved document."""
        document = ResultsDocument(context_id=context_id, jobs=jobs)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(document.model_dump(mode="json"), f, indent=2)
        temp_file.replace(self.path)
        _logger.debug("results_saved", path=str(self.path), jobs=len(jobs))
        return document

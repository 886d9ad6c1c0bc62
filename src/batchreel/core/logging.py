"""Structured logging for batchreel.

Wraps structlog with batchreel-specific context: every event logged while a
run is active carries the batch id, run id and run kind so that interleaved
runs (a batch retry next to a single regeneration) can be told apart.

Example usage:
    from batchreel.core.logging import RunContext, configure_logging, get_logger, with_context

    configure_logging(level="DEBUG", format="console")
    logger = get_logger("poller")

    with with_context(RunContext(batch_id="b-1", kind="run_all")):
        logger.info("poll_tick", tick=3, pending=2)
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Handles and backend credentials must never reach a log sink.
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "credential",
    "cookie",
    "auth",
    "bearer",
})

REDACTED = "[REDACTED]"


@dataclass(frozen=True)
class RunContext:
    """Correlation fields for one orchestration run.

    Attributes:
        batch_id: Identifier of the orchestrator owning the run.
        run_id: Unique id of this run (UUID).
        kind: Run kind: run_all, retry_failed or regenerate.
        job_index: Position of the job for single-job runs.
    """

    batch_id: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    kind: str = "unknown"
    job_index: int | None = None

    def for_job(self, job_index: int) -> RunContext:
        """Return a copy scoped to a single job position."""
        return replace(self, job_index=job_index)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dict for log injection, skipping unset fields."""
        result: dict[str, Any] = {
            "batch_id": self.batch_id,
            "run_id": self.run_id,
            "run_kind": self.kind,
        }
        if self.job_index is not None:
            result["job_index"] = self.job_index
        return result


# ContextVar keeps concurrent asyncio tasks isolated from one another.
_current_context: ContextVar[RunContext | None] = ContextVar(
    "batchreel_run_context", default=None
)


def get_current_context() -> RunContext | None:
    """Return the RunContext of the current task, if any."""
    return _current_context.get()


@contextmanager
def with_context(ctx: RunContext) -> Iterator[RunContext]:
    """Set the RunContext for the duration of a block.

    Example:
        with with_context(RunContext(batch_id="b-1", kind="retry_failed")):
            logger.info("run_started")  # includes batch_id, run_id, run_kind
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return REDACTED when the key looks like it holds a secret."""
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return REDACTED
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor redacting sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor injecting the active RunContext.

    Explicitly bound keys take precedence over context values.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class BatchReelLogger:
    """Component logger wrapping structlog.

    The underlying structlog logger is fetched on every call so loggers
    created at import time still honour a later configure_logging().
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> BatchReelLogger:
        """Return a new logger with additional bound context."""
        new_logger = BatchReelLogger.__new__(BatchReelLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an error with traceback; call from inside an except block."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 20,
    backup_count: int = 3,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure structured logging. Call once at startup.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for
            JSON lines (to file_path when given, else stdout), "both" for
            console on stderr plus JSON to file_path.
        file_path: Log file path. Required when format="both".
        max_file_size_mb: File size before rotation.
        backup_count: Rotated files to keep.
        include_timestamps: Add ISO-8601 UTC timestamps.
        include_context: Add RunContext fields when a run is active.

    Raises:
        ValueError: If format="both" without file_path.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        handlers.append(logging.StreamHandler(sys.stderr))

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    file_path,
                    maxBytes=max_file_size_mb * 1024 * 1024,
                    backupCount=backup_count,
                    encoding="utf-8",
                )
            )
        else:
            handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False so import-time loggers see this config
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> BatchReelLogger:
    """Get a logger bound to a component name."""
    return BatchReelLogger(component, **initial_context)


__all__ = [
    "REDACTED",
    "SENSITIVE_PATTERNS",
    "BatchReelLogger",
    "RunContext",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_context",
]

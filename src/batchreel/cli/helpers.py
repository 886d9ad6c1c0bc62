"""Shared utilities for batchreel CLI commands.

Output level and logging state set by the global options, config loading,
and the glue that runs an orchestrator call under a progress bar.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Literal, TypeVar

import typer
from rich.console import Console

from batchreel.core.config import BatchConfig
from batchreel.core.errors import BatchReelError
from batchreel.core.logging import configure_logging, get_logger
from batchreel.execution.orchestrator import BatchOrchestrator
from batchreel.execution.progress import BatchProgress

from .output import console, create_progress_bar

_logger = get_logger("cli")

T = TypeVar("T")


class OutputLevel(str, Enum):
    """Output verbosity level."""

    QUIET = "quiet"
    NORMAL = "normal"
    VERBOSE = "verbose"


_output_level: OutputLevel = OutputLevel.NORMAL


def set_output_level(level: OutputLevel) -> None:
    global _output_level
    _output_level = level


def is_verbose() -> bool:
    return _output_level == OutputLevel.VERBOSE


def is_quiet() -> bool:
    return _output_level == OutputLevel.QUIET


@dataclass
class CliLoggingConfig:
    """Logging options collected from the global CLI flags."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    configured: bool = False
    explicit: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    _log_config.explicit = True
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    _log_config.explicit = True
    _log_config.file = path


def set_log_format(fmt: str) -> None:
    _log_config.explicit = True
    _log_config.format = fmt  # type: ignore[assignment]


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global options, once per process.

    Raises:
        typer.Exit: If the options are inconsistent.
    """
    if _log_config.configured:
        return
    fmt = _log_config.format
    if _log_config.file is not None and fmt == "console":
        fmt = "both"
    try:
        configure_logging(
            level=_log_config.level,
            format=fmt,
            file_path=_log_config.file,
        )
    except (ValueError, AttributeError) as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None
    _log_config.configured = True


def reset_logging_state() -> None:
    """Reset logging and output state (used by tests)."""
    global _output_level
    _output_level = OutputLevel.NORMAL
    _log_config.level = "WARNING"
    _log_config.file = None
    _log_config.format = "console"
    _log_config.configured = False
    _log_config.explicit = False


def load_config(config_file: Path | None, *, json_output: bool = False) -> BatchConfig:
    """Load a config file, or defaults when none is given.

    Raises:
        typer.Exit: If the file does not load.
    """
    if config_file is None:
        return BatchConfig()
    try:
        return BatchConfig.from_yaml(config_file)
    except BatchReelError as e:
        print_error("Error loading config", e, json_output=json_output)
        raise typer.Exit(1) from None


def print_error(title: str, error: BaseException, *, json_output: bool = False) -> None:
    if json_output:
        print_json({"error": str(error)})
    else:
        console.print(f"[red]{title}:[/red] {error}")


def print_json(payload: Any) -> None:
    """Print a JSON document without markup, highlighting or line wrapping."""
    console.print(
        json.dumps(payload, indent=2, default=str),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def apply_config_logging(config: BatchConfig) -> None:
    """Reconfigure logging from the config file's ``logging`` section.

    Only used when no logging option was given on the command line, so
    flags and environment variables always win over the file.
    """
    if _log_config.explicit or "logging" not in config.model_fields_set:
        return
    log = config.logging
    configure_logging(level=log.level, format=log.format, file_path=log.file_path)


def build_orchestrator(config: BatchConfig, *, auth_token: str | None = None) -> BatchOrchestrator:
    """Create an orchestrator backed by the HTTP client.

    ``auth_token`` (from ``--auth-token`` or BATCHREEL_AUTH_TOKEN) replaces
    the token in the config file.
    """
    if auth_token:
        backend_config = config.backend.model_copy(update={"auth_token": auth_token})
        config = config.model_copy(update={"backend": backend_config})
    return BatchOrchestrator.from_config(config)


def run_with_progress(
    orchestrator: BatchOrchestrator,
    description: str,
    call: Callable[[], Awaitable[T]],
    *,
    show: bool = True,
) -> bool:
    """Run an orchestrator coroutine to completion, rendering its progress.

    The orchestrator's observer is swapped for a progress-bar updater for
    the duration of the call. Errors raised by ``call`` propagate.

    Returns:
        False if the run was interrupted with Ctrl-C. The orchestrator has
        already failed every unfinished job as cancelled by then, so its
        snapshots are safe to save.
    """

    async def _runner() -> T:
        if not show:
            return await call()

        with create_progress_bar() as progress:
            task_id = progress.add_task(description, total=None, detail="submitting")

            def _observe(update: BatchProgress) -> None:
                progress.update(
                    task_id,
                    total=update.total,
                    completed=update.resolved,
                    detail=f"poll {update.tick}/{update.max_polls}",
                )
                if is_verbose():
                    console.print(f"[dim]{update.format_status()}[/dim]")

            previous = orchestrator.observer
            orchestrator.observer = _observe
            try:
                return await call()
            finally:
                orchestrator.observer = previous

    async def _guarded() -> T:
        try:
            return await _runner()
        finally:
            await orchestrator.backend.close()

    try:
        asyncio.run(_guarded())
    except KeyboardInterrupt:
        orchestrator.cancel()
        _logger.warning("cli_interrupted", batch_id=orchestrator.batch_id)
        console.print("[yellow]Interrupted; unfinished jobs were marked failed.[/yellow]")
        return False
    return True

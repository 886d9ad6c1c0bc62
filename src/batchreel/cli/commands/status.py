"""Read-only commands: ``status`` and ``validate``."""

from __future__ import annotations

from pathlib import Path

import typer

from batchreel.core.config import BatchConfig
from batchreel.core.errors import BatchReelError
from batchreel.models import JobStatus
from batchreel.state import JsonResultsStore

from ..helpers import configure_global_logging, print_error, print_json
from ..output import console, render_jobs_table, summary_panel


def status(
    results_file: Path = typer.Argument(
        ...,
        help="Results file written by 'batchreel run'",
        exists=True,
        readable=True,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output status as JSON",
    ),
    failed_only: bool = typer.Option(
        False,
        "--failed",
        "-f",
        help="Only list failed jobs",
    ),
) -> None:
    """Show the jobs stored in a results file."""
    configure_global_logging(console)
    try:
        document = JsonResultsStore(results_file).load()
    except BatchReelError as e:
        print_error("Error loading results", e, json_output=json_output)
        raise typer.Exit(1) from None

    jobs = document.jobs
    shown = [j for j in jobs if j.status is JobStatus.FAILED] if failed_only else jobs

    if json_output:
        print_json(
            {
                "context_id": document.context_id,
                "saved_at": document.saved_at.isoformat(),
                "total": len(jobs),
                "counts": {s.value: sum(1 for j in jobs if j.status is s) for s in JobStatus},
                "jobs": [j.model_dump(mode="json") for j in shown],
            }
        )
        return

    header = f"[bold]{results_file}[/bold]"
    if document.context_id:
        header += f"  context [cyan]{document.context_id}[/cyan]"
    console.print(header)
    console.print(f"[dim]Saved {document.saved_at:%Y-%m-%d %H:%M:%S} UTC[/dim]")
    console.print(render_jobs_table(shown, title=None))
    console.print(summary_panel(jobs, title="Summary"))


def validate(
    config_file: Path = typer.Argument(
        ...,
        help="Path to YAML batch configuration",
        exists=True,
        readable=True,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output validation result as JSON",
    ),
) -> None:
    """Validate a batch configuration file.

    Exit codes:
      0: valid
      1: invalid (unreadable, not YAML, or fails schema validation)
    """
    configure_global_logging(console)
    try:
        config = BatchConfig.from_yaml(config_file)
    except BatchReelError as e:
        if json_output:
            print_json({"valid": False, "error": str(e)})
        else:
            console.print(f"[red]✗[/red] {config_file}: {e}")
        raise typer.Exit(1) from None

    if json_output:
        # Credentials stay out of the echoed config.
        redacted = config.model_dump(mode="json", exclude={"backend": {"auth_token", "cookie"}})
        print_json({"valid": True, "config": redacted})
        return

    console.print(f"[green]✓[/green] Configuration valid: {config_file}")
    console.print(f"  Backend: {config.backend.base_url}")
    console.print(
        f"  Polling: every {config.poll.interval_seconds:g}s, "
        f"up to {config.poll.max_polls} polls"
    )
    console.print(
        f"  Generation: context={config.generation.context_id or '(none)'}, "
        f"aspect={config.generation.aspect_ratio}, lock_seed={config.generation.lock_seed}"
    )

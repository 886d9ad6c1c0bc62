"""Rich output formatting for the batchreel CLI.

Centralizes colors, tables and the progress bar so every command renders
job lists the same way.
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from batchreel.models import JobSnapshot, JobStatus

# Commands should print through this console; quiet and JSON modes are
# handled by guards in each command.
console = Console()


class StatusColors:
    """Color mappings for job status values."""

    JOB_STATUS: dict[JobStatus, str] = {
        JobStatus.PENDING: "yellow",
        JobStatus.PROCESSING: "blue",
        JobStatus.COMPLETED: "green",
        JobStatus.FAILED: "red",
    }

    @classmethod
    def get_job_color(cls, status: JobStatus) -> str:
        return cls.JOB_STATUS.get(status, "white")


def format_status(status: JobStatus) -> str:
    """Return the status value wrapped in its Rich color markup."""
    color = StatusColors.get_job_color(status)
    return f"[{color}]{status.value}[/{color}]"


def create_jobs_table(title: str | None = "Jobs") -> Table:
    """Create a styled table for job listings."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="cyan", width=4)
    table.add_column("Status", width=11)
    table.add_column("Tries", justify="right", width=5)
    table.add_column("Prompt", no_wrap=False, ratio=2)
    table.add_column("Result / Error", no_wrap=False, ratio=3)
    return table


def render_jobs_table(jobs: Sequence[JobSnapshot], title: str | None = "Jobs") -> Table:
    """Build a populated jobs table. Positions are shown 1-based."""
    table = create_jobs_table(title)
    for job in jobs:
        if job.status is JobStatus.COMPLETED:
            outcome = job.result_url or ""
        elif job.status is JobStatus.FAILED:
            outcome = f"[red]{job.error_message or ''}[/red]"
        else:
            outcome = "[dim]...[/dim]"
        table.add_row(
            str(job.index + 1),
            format_status(job.status),
            str(job.attempts),
            job.prompt,
            outcome,
        )
    return table


def create_progress_bar() -> Progress:
    """Progress bar used while a run is polling."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("{task.fields[detail]}", style="dim"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def summary_panel(jobs: Sequence[JobSnapshot], title: str) -> Panel:
    """Panel with completed/failed counts for a finished run."""
    completed = sum(1 for j in jobs if j.status is JobStatus.COMPLETED)
    failed = sum(1 for j in jobs if j.status is JobStatus.FAILED)
    lines = [
        f"[green]{completed}[/green] completed, [red]{failed}[/red] failed "
        f"of {len(jobs)} jobs",
    ]
    if failed:
        lines.append("[dim]Use 'batchreel retry' to resubmit the failed jobs.[/dim]")
    return Panel("\n".join(lines), title=title)

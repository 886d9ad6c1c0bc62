"""Generation commands for the batchreel CLI.

``run`` submits a prompt file as a fresh batch; ``retry`` and
``regenerate`` reopen a saved results file, resubmit part of it, and write
it back. Every command saves the results file even when interrupted, since
interrupted jobs are recorded as failed and can be retried later.

Exit codes:
  0: every job completed
  1: a job failed, or the command could not run
  130: interrupted with Ctrl-C
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated

import typer

from batchreel.core.config import BatchConfig
from batchreel.core.errors import BatchReelError
from batchreel.execution.orchestrator import BatchOrchestrator
from batchreel.models import JobSnapshot, JobStatus
from batchreel.prompts import read_prompts_file
from batchreel.state import JsonResultsStore, ResultsDocument

from ..helpers import (
    apply_config_logging,
    build_orchestrator,
    configure_global_logging,
    is_quiet,
    load_config,
    print_error,
    print_json,
    run_with_progress,
)
from ..output import console, render_jobs_table, summary_panel

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to YAML batch configuration",
        exists=True,
        readable=True,
    ),
]
AuthTokenOption = Annotated[
    str | None,
    typer.Option(
        "--auth-token",
        help="Bearer token for the generation service (overrides the config)",
        envvar="BATCHREEL_AUTH_TOKEN",
        show_default=False,
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output results as JSON"),
]


def run(
    prompts_file: Path = typer.Argument(
        ...,
        help="Text file with one prompt per line",
        exists=True,
        readable=True,
    ),
    config_file: ConfigOption = None,
    output: Path = typer.Option(
        Path("results.json"),
        "--output",
        "-o",
        help="Where to write the results file",
    ),
    auth_token: AuthTokenOption = None,
    json_output: JsonOption = False,
) -> None:
    """Generate every prompt in PROMPTS_FILE as one batch."""
    configure_global_logging(console)
    config = load_config(config_file, json_output=json_output)
    apply_config_logging(config)

    try:
        prompts = read_prompts_file(prompts_file)
    except (OSError, UnicodeDecodeError) as e:
        print_error("Cannot read prompts", e, json_output=json_output)
        raise typer.Exit(1) from None
    if not prompts:
        print_error("No prompts", ValueError(f"{prompts_file} has no prompts"), json_output=json_output)
        raise typer.Exit(1)

    orchestrator = build_orchestrator(config, auth_token=auth_token)
    if not (json_output or is_quiet()):
        console.print(f"Submitting [bold]{len(prompts)}[/bold] prompts")

    finished = _execute(
        orchestrator,
        "Generating",
        lambda: orchestrator.run_all(prompts),
        json_output=json_output,
    )
    _save_and_report(
        orchestrator,
        JsonResultsStore(output),
        config.generation.context_id,
        title="Batch results",
        json_output=json_output,
        finished=finished,
    )


def retry(
    results_file: Path = typer.Argument(
        ...,
        help="Results file written by 'batchreel run'",
        exists=True,
        readable=True,
    ),
    config_file: ConfigOption = None,
    auth_token: AuthTokenOption = None,
    json_output: JsonOption = False,
) -> None:
    """Resubmit every failed job in RESULTS_FILE and write it back."""
    configure_global_logging(console)
    config = load_config(config_file, json_output=json_output)
    apply_config_logging(config)
    store = JsonResultsStore(results_file)
    document = _load_results(store, json_output=json_output)
    config = _with_saved_context(config, document)

    orchestrator = build_orchestrator(config, auth_token=auth_token)
    orchestrator.load(document.jobs)
    failed = orchestrator.counts()[JobStatus.FAILED]
    if not failed:
        if json_output:
            print_json(_payload(document.jobs))
        elif not is_quiet():
            console.print("[green]No failed jobs to retry.[/green]")
        return
    if not (json_output or is_quiet()):
        console.print(f"Retrying [bold]{failed}[/bold] failed jobs")

    finished = _execute(
        orchestrator,
        "Retrying",
        orchestrator.retry_failed,
        json_output=json_output,
    )
    _save_and_report(
        orchestrator,
        store,
        config.generation.context_id,
        title="Retry results",
        json_output=json_output,
        finished=finished,
    )


def regenerate(
    results_file: Path = typer.Argument(
        ...,
        help="Results file written by 'batchreel run'",
        exists=True,
        readable=True,
    ),
    index: int = typer.Argument(
        ...,
        min=1,
        help="Position of the job to regenerate (1-based, as shown by 'status')",
    ),
    config_file: ConfigOption = None,
    auth_token: AuthTokenOption = None,
    json_output: JsonOption = False,
) -> None:
    """Resubmit the job at INDEX in RESULTS_FILE, leaving the others as they are."""
    configure_global_logging(console)
    config = load_config(config_file, json_output=json_output)
    apply_config_logging(config)
    store = JsonResultsStore(results_file)
    document = _load_results(store, json_output=json_output)
    config = _with_saved_context(config, document)

    if index > len(document.jobs):
        print_error(
            "Invalid index",
            IndexError(f"{index} is out of range (1..{len(document.jobs)})"),
            json_output=json_output,
        )
        raise typer.Exit(1)

    orchestrator = build_orchestrator(config, auth_token=auth_token)
    orchestrator.load(document.jobs)
    if not (json_output or is_quiet()):
        console.print(f"Regenerating job [bold]{index}[/bold]")

    finished = _execute(
        orchestrator,
        f"Regenerating #{index}",
        lambda: orchestrator.regenerate(index - 1),
        json_output=json_output,
    )
    job = orchestrator.snapshot(index - 1)
    store.save(orchestrator.snapshots(), config.generation.context_id)

    if json_output:
        print_json(job.model_dump(mode="json"))
    elif job.status is JobStatus.COMPLETED:
        if not is_quiet():
            console.print(f"[green]Job {index} completed:[/green] {job.result_url}")
    else:
        console.print(f"[red]Job {index} failed:[/red] {job.error_message}")

    if not finished:
        raise typer.Exit(130)
    if job.status is not JobStatus.COMPLETED:
        raise typer.Exit(1)


# =============================================================================
# Shared steps
# =============================================================================


def _execute(
    orchestrator: BatchOrchestrator,
    description: str,
    call: Callable[[], Awaitable[object]],
    *,
    json_output: bool,
) -> bool:
    """Run an orchestrator call; exit 1 on errors that left nothing to save."""
    try:
        return run_with_progress(
            orchestrator,
            description,
            call,
            show=not (json_output or is_quiet()),
        )
    except (BatchReelError, ValueError) as e:
        print_error("Generation error", e, json_output=json_output)
        raise typer.Exit(1) from None


def _load_results(store: JsonResultsStore, *, json_output: bool) -> ResultsDocument:
    try:
        return store.load()
    except BatchReelError as e:
        print_error("Error loading results", e, json_output=json_output)
        raise typer.Exit(1) from None


def _with_saved_context(config: BatchConfig, document: ResultsDocument) -> BatchConfig:
    """Fall back to the context id stored with the results."""
    if config.generation.context_id or not document.context_id:
        return config
    generation = config.generation.model_copy(update={"context_id": document.context_id})
    return config.model_copy(update={"generation": generation})


def _payload(jobs: list[JobSnapshot]) -> dict:
    return {
        "total": len(jobs),
        "completed": sum(1 for j in jobs if j.status is JobStatus.COMPLETED),
        "failed": sum(1 for j in jobs if j.status is JobStatus.FAILED),
        "jobs": [j.model_dump(mode="json") for j in jobs],
    }


def _save_and_report(
    orchestrator: BatchOrchestrator,
    store: JsonResultsStore,
    context_id: str,
    *,
    title: str,
    json_output: bool,
    finished: bool,
) -> None:
    jobs = orchestrator.snapshots()
    store.save(jobs, context_id)

    if json_output:
        print_json(_payload(jobs))
    elif not is_quiet():
        console.print(render_jobs_table(jobs, title=title))
        console.print(summary_panel(jobs, title=title))
        console.print(f"[dim]Results saved to {store.path}[/dim]")

    if not finished:
        raise typer.Exit(130)
    if any(job.status is not JobStatus.COMPLETED for job in jobs):
        raise typer.Exit(1)

"""Rich output formatters for the CLI."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from cimatrix.matrix.job_spec import JobSpec
from cimatrix.pipeline import Pipeline
from cimatrix.results import JobResult, JobStatus, RunResult

console = Console()
err_console = Console(stderr=True)

STATUS_STYLE = {
    JobStatus.PASSED: "green",
    JobStatus.FAILED: "red",
    JobStatus.SKIPPED: "dim",
    JobStatus.RUNNING: "yellow",
    JobStatus.PENDING: "white",
}


def _styled(status: JobStatus) -> str:
    style = STATUS_STYLE.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def print_progress(event: str, job: JobResult) -> None:
    """Live progress line, used as the run controller's progress callback."""
    if event == "job_start":
        console.print(f"  [bold]▶[/] {job.name}")
    elif event == "job_passed":
        console.print(f"  [green]✓[/] {job.name} ({job.duration_seconds:.1f}s)")
    elif event == "job_failed":
        console.print(f"  [red]✗[/] {job.name}: step '{job.failing_step}' failed ({job.error})")
    elif event == "job_skipped":
        console.print(f"  [dim]- {job.name} (skipped: {job.skip_reason})[/]")


def print_run_result(result: RunResult, dimensions: tuple[str, ...]) -> None:
    """Pretty-print a RunResult: one row per job, in generation order."""
    table = Table(title=f"{result.pipeline} · run {result.run_id}")
    for name in dimensions:
        table.add_column(name, style="bold cyan")
    if not dimensions:
        table.add_column("Job", style="bold cyan")
    table.add_column("Status")
    table.add_column("Failing step")
    table.add_column("Time")

    for job in result.jobs:
        cells = [job.matrix.get(name, "") for name in dimensions] or [job.name]
        table.add_row(
            *cells,
            _styled(job.status),
            job.failing_step or "-",
            f"{job.duration_seconds:.1f}s" if job.status != JobStatus.SKIPPED else "-",
        )

    console.print(table)
    style = "green" if result.success else "red"
    console.print(f"[{style} bold]{result.summary}[/]")


def print_jobs(pipeline: Pipeline, jobs: list[JobSpec]) -> None:
    table = Table(title=f"{pipeline.name}: {len(jobs)} jobs")
    table.add_column("#", justify="right")
    for name in pipeline.registry.names:
        table.add_column(name, style="bold cyan")
    if not pipeline.registry.names:
        table.add_column("Job", style="bold cyan")
    for index, job in enumerate(jobs, start=1):
        cells = [v for _, v in job.items()] or [pipeline.name]
        table.add_row(str(index), *cells)
    console.print(table)
    if pipeline.exclusions.rules:
        rules = "; ".join(
            ", ".join(f"{k}={v}" for k, v in rule.items()) for rule in pipeline.exclusions.rules
        )
        console.print(f"[dim]excluded: {rules}[/]")


def print_plan(pipeline: Pipeline) -> None:
    for job, steps in pipeline.plan():
        console.print(f"[bold]{job.name or pipeline.name}[/]")
        for step, runs in steps:
            if runs:
                console.print(f"  [green]run [/] {step.label}")
            else:
                console.print(f"  [dim]skip {step.label}  (if {step.describe_condition()})[/]")

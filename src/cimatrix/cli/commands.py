"""
CLI: pipeline commands (``run``, ``expand``, ``plan``, ``presets``).

Usage::

    cimatrix run checks                        # built-in matrix
    cimatrix run authors                       # hygiene checks, separate exit code
    cimatrix run ci/checks.yaml --max-parallel 2 --fail-fast
    cimatrix expand checks --json              # list jobs only
    cimatrix plan checks                       # which steps each job would run

PIPELINE is a path to a YAML file or the name of a built-in preset.

Exit codes:
    0  every job passed or was skipped
    1  at least one job failed
    2  configuration error (nothing was run)
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.table import Table

from cimatrix.cli.render import (
    console,
    err_console,
    print_jobs,
    print_plan,
    print_progress,
    print_run_result,
)
from cimatrix.config import load_pipeline
from cimatrix.core.errors import ConfigurationError
from cimatrix.core.logging import get_logger
from cimatrix.log_collector import LogCollector
from cimatrix.pipeline import Pipeline
from cimatrix.presets import DESCRIPTIONS, PRESETS, get_preset
from cimatrix.runner.controller import RunPolicy

logger = get_logger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def resolve_pipeline(ref: str) -> Pipeline:
    """Load ``ref`` as a YAML path, or as a preset name when no such file exists."""
    path = Path(ref)
    if path.suffix in (".yaml", ".yml") or path.exists():
        return load_pipeline(path)
    return get_preset(ref)


def _load_or_exit(ref: str) -> Pipeline:
    try:
        return resolve_pipeline(ref)
    except ConfigurationError as e:
        logger.error("config.invalid", **e.to_dict())
        err_console.print(f"[red]Configuration error:[/] {e.message}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e


def run(
    pipeline_ref: str = typer.Argument(..., metavar="PIPELINE", help="YAML file or preset name."),
    fail_fast: bool | None = typer.Option(
        None, "--fail-fast/--no-fail-fast", help="Override the pipeline's fail-fast policy."
    ),
    max_parallel: int | None = typer.Option(
        None, "--max-parallel", "-j", min=1, help="Maximum concurrent jobs."
    ),
    output_dir: Path | None = typer.Option(
        None, "--output", "-o", help="Write summary.json and step logs under this directory."
    ),
    json_out: bool = typer.Option(False, "--json", help="Output the run result as JSON."),
) -> None:
    """Expand the matrix and run every job."""
    pipeline = _load_or_exit(pipeline_ref)

    try:
        policy = RunPolicy.from_env(
            base=pipeline.policy, fail_fast=fail_fast, max_parallel=max_parallel
        )
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/] {e.message}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e

    if not json_out:
        console.print(
            f"[bold]cimatrix[/] {pipeline.name}: {len(pipeline.jobs())} jobs, "
            f"fail_fast={policy.fail_fast}, max_parallel={policy.max_parallel or 'all'}"
        )

    result = pipeline.run(policy=policy, progress=None if json_out else print_progress)

    if output_dir is not None:
        run_dir = LogCollector(output_dir, result.run_id).collect(result)
        if not json_out:
            console.print(f"[dim]results written to {run_dir}[/]")

    if json_out:
        typer.echo(result.model_dump_json(indent=2))
    else:
        print_run_result(result, pipeline.registry.names)

    if not result.success:
        raise typer.Exit(code=EXIT_FAILURE)


def expand(
    pipeline_ref: str = typer.Argument(..., metavar="PIPELINE", help="YAML file or preset name."),
    json_out: bool = typer.Option(False, "--json", help="Output jobs as JSON."),
) -> None:
    """List the jobs the matrix expands to, in execution order."""
    pipeline = _load_or_exit(pipeline_ref)
    jobs = pipeline.jobs()
    if json_out:
        typer.echo(json.dumps([job.as_dict() for job in jobs], indent=2))
        return
    print_jobs(pipeline, jobs)


def plan(
    pipeline_ref: str = typer.Argument(..., metavar="PIPELINE", help="YAML file or preset name."),
    json_out: bool = typer.Option(False, "--json", help="Output the plan as JSON."),
) -> None:
    """Dry run: show which steps each job would execute. Nothing is run."""
    pipeline = _load_or_exit(pipeline_ref)
    if json_out:
        out = [
            {
                "job": job.as_dict(),
                "steps": [{"name": step.label, "runs": runs} for step, runs in steps],
            }
            for job, steps in pipeline.plan()
        ]
        typer.echo(json.dumps(out, indent=2))
        return
    print_plan(pipeline)


def presets(
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List built-in pipelines."""
    if json_out:
        typer.echo(json.dumps(DESCRIPTIONS, indent=2))
        return

    table = Table(title="Built-in pipelines")
    table.add_column("Name", style="bold cyan")
    table.add_column("Jobs", justify="right")
    table.add_column("Description")
    for name, factory in PRESETS.items():
        table.add_row(name, str(len(factory().jobs())), DESCRIPTIONS[name])
    console.print(table)

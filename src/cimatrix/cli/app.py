"""
Root Typer application for the cimatrix CLI.

Global options (``--log-level``, ``--log-json``) configure structlog once
before any command runs. Logs go to stderr so that ``--json`` output on
stdout stays machine-readable.
"""

from __future__ import annotations

import typer
from typer import Typer

from cimatrix.cli import commands
from cimatrix.cli.render import err_console
from cimatrix.core.errors import ConfigurationError
from cimatrix.core.logging import configure_logging

app = Typer(
    name="cimatrix",
    help="cimatrix: expand a build matrix and run every job's steps.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("cimatrix")
        except PackageNotFoundError:
            from cimatrix import __version__ as v
        typer.echo(f"cimatrix {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", envvar="CIMATRIX_LOG_LEVEL", help="Log level for stderr logs."
    ),
    log_json: bool = typer.Option(
        False, "--log-json", envvar="CIMATRIX_LOG_JSON", help="Emit logs as JSON lines."
    ),
) -> None:
    """cimatrix CLI: run, expand and plan matrix pipelines."""
    try:
        configure_logging(level=log_level, json_format=log_json)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/] {e.message}")
        raise typer.Exit(code=commands.EXIT_CONFIG_ERROR) from e


# ── Command registration ────────────────────────────────────────────────

app.command("run")(commands.run)
app.command("expand")(commands.expand)
app.command("plan")(commands.plan)
app.command("presets")(commands.presets)


if __name__ == "__main__":
    app()

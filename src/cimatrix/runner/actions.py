"""Step actions: the opaque commands a step runs.

The engine never interprets what a command does; it only needs an exit
status. Two kinds of action exist:

- :class:`ShellAction` runs a command line through the shell with
  ``subprocess``. ``${{ matrix.<name> }}`` tokens are replaced with the
  job's dimension values first.
- :class:`CallableAction` wraps a Python callable ``fn(job_spec)`` that
  returns an exit code, a bool, or ``None`` for success.

Both expose ``run(spec, timeout=None) -> ActionResult``. A failed action
either returns a non-zero exit code or raises
:class:`~cimatrix.core.errors.StepFailure`; the job runner treats both the
same way.
"""

from __future__ import annotations

import os
import re
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from cimatrix.core.errors import ConfigurationError, ErrorCategory, StepFailure
from cimatrix.core.logging import get_logger
from cimatrix.matrix.job_spec import JobSpec

logger = get_logger(__name__)

MATRIX_TOKEN = re.compile(r"\$\{\{\s*matrix\.([A-Za-z_][A-Za-z0-9_-]*)\s*\}\}")


@dataclass
class ActionResult:
    """What an action reports back: exit code plus captured output."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@runtime_checkable
class Action(Protocol):
    def run(self, spec: JobSpec, timeout: float | None = None) -> ActionResult: ...


def render_command(command: str, spec: JobSpec) -> str:
    """Substitute ``${{ matrix.<name> }}`` tokens with values from ``spec``.

    Raises
    ------
    StepFailure
        If the command references a dimension the job does not have.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        value = spec.get(name)
        if value is None:
            raise StepFailure(
                f"Command references unknown matrix value '{name}'",
                context={"command": command, "job": spec.name},
            )
        return value

    return MATRIX_TOKEN.sub(_replace, command)


def referenced_dimensions(command: str) -> list[str]:
    return MATRIX_TOKEN.findall(command)


@dataclass(frozen=True)
class ShellAction:
    """Run ``command`` through the shell.

    Parameters
    ----------
    command
        Command line, may contain ``${{ matrix.<name> }}`` tokens.
    env
        Extra environment variables, merged over ``os.environ``.
    cwd
        Working directory (default: current directory).
    """

    command: str
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: str | None = None

    def check_matrix_references(self, dimension_names: tuple[str, ...]) -> None:
        """Reject tokens naming dimensions that do not exist."""
        for name in referenced_dimensions(self.command):
            if name not in dimension_names:
                raise ConfigurationError(
                    f"Command references unknown dimension '{name}'",
                    context={"command": self.command, "dimension": name},
                )

    def run(self, spec: JobSpec, timeout: float | None = None) -> ActionResult:
        command = render_command(self.command, spec)
        full_env = {**os.environ, **{k: str(v) for k, v in self.env.items()}}
        logger.debug("action.shell", command=command, cwd=self.cwd, timeout=timeout)

        try:
            proc = subprocess.run(  # noqa: S602
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=self.cwd,
                env=full_env,
            )
        except subprocess.TimeoutExpired as e:
            raise StepFailure(
                f"Command timed out after {timeout}s",
                category=ErrorCategory.TIMEOUT,
                context={"command": command},
                cause=e,
            ) from e
        except OSError as e:
            raise StepFailure(
                f"Command could not be started: {e}",
                context={"command": command},
                cause=e,
            ) from e

        return ActionResult(exit_code=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)

    def describe(self) -> str:
        return self.command


@dataclass(frozen=True)
class CallableAction:
    """Wrap ``fn(job_spec)`` as an action.

    ``fn`` may return an ``int`` exit code, a ``bool`` (True = success) or
    ``None`` (success). Timeouts are not enforced for in-process callables.
    """

    fn: Callable[[JobSpec], Any]
    name: str = ""

    def run(self, spec: JobSpec, timeout: float | None = None) -> ActionResult:
        outcome = self.fn(spec)
        if isinstance(outcome, ActionResult):
            return outcome
        if outcome is None or outcome is True:
            return ActionResult(exit_code=0)
        if outcome is False:
            return ActionResult(exit_code=1)
        if isinstance(outcome, int):
            return ActionResult(exit_code=outcome)
        raise TypeError(
            f"Action {self.describe()} returned {type(outcome).__name__}; "
            "expected int, bool, None or ActionResult"
        )

    def describe(self) -> str:
        return self.name or getattr(self.fn, "__name__", repr(self.fn))


def as_action(action: Action | Callable[[JobSpec], Any] | str) -> Action:
    """Coerce a command string or plain callable into an :class:`Action`."""
    if isinstance(action, str):
        return ShellAction(action)
    if isinstance(action, Action):
        return action
    if callable(action):
        return CallableAction(action)
    raise TypeError(f"Cannot use {action!r} as a step action")

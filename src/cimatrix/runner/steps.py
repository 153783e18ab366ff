"""Steps and step predicates.

A step is ``{label, predicate, action}``. The predicate is a function over
the job's :class:`~cimatrix.matrix.job_spec.JobSpec`; when it returns
``False`` the job runner skips the step. Conditions such as "only for
clippy with all features" are therefore plain Python values, not strings
matched against configuration flags::

    Step("Clippy with all features",
         "cargo clippy --all-features",
         predicate=when(check="clippy", features="all"))

``when()`` builds a :class:`MatrixCondition`, which can be validated against
a dimension registry and rendered for ``cimatrix plan``. Any other callable
taking a JobSpec works as a predicate too.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cimatrix.matrix.dimensions import DimensionRegistry, validate_assignment
from cimatrix.matrix.job_spec import JobSpec
from cimatrix.runner.actions import Action, ShellAction, as_action

Predicate = Callable[[JobSpec], bool]


def always(spec: JobSpec) -> bool:
    """Predicate of unconditional steps."""
    return True


@dataclass(frozen=True)
class MatrixCondition:
    """All listed dimensions must take one of the accepted values."""

    conditions: tuple[tuple[str, tuple[str, ...]], ...]

    def __call__(self, spec: JobSpec) -> bool:
        return all(spec.get(name) in accepted for name, accepted in self.conditions)

    def validate(self, registry: DimensionRegistry, what: str) -> None:
        validate_assignment(registry, dict(self.conditions), what=what)

    def describe(self) -> str:
        parts = []
        for name, accepted in self.conditions:
            if len(accepted) == 1:
                parts.append(f"{name} == {accepted[0]}")
            else:
                parts.append(f"{name} in ({', '.join(accepted)})")
        return " and ".join(parts)


def when(**conditions: str | Iterable[str]) -> MatrixCondition:
    """Predicate that holds when every named dimension has an accepted value.

    ``when(check="clippy", features="all")`` or
    ``when(check=["clippy", "test"])``.
    """
    return condition_from_mapping(conditions)


def condition_from_mapping(mapping: Mapping[str, Any]) -> MatrixCondition:
    normalized = []
    for name, raw in mapping.items():
        if isinstance(raw, (str, int, float, bool)):
            accepted: tuple[str, ...] = (str(raw),)
        else:
            accepted = tuple(str(v) for v in raw)
        normalized.append((str(name), accepted))
    return MatrixCondition(tuple(normalized))


@dataclass(frozen=True)
class Step:
    """One ordered step of every job.

    Parameters
    ----------
    label
        Name shown in reports and used as ``failing_step``.
    action
        An :class:`~cimatrix.runner.actions.Action`, a command string, or a
        callable ``fn(job_spec)``.
    predicate
        Gate evaluated against the job before the step runs.
    timeout_seconds
        Optional per-step time bound (shell actions only).
    """

    label: str
    action: Action = field(compare=False)
    predicate: Predicate = always
    timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", as_action(self.action))

    @property
    def unconditional(self) -> bool:
        return self.predicate is always

    def applies_to(self, spec: JobSpec) -> bool:
        return bool(self.predicate(spec))

    def validate(self, registry: DimensionRegistry) -> None:
        """Check predicate and command tokens against ``registry``."""
        if isinstance(self.predicate, MatrixCondition):
            self.predicate.validate(registry, what=f"Step '{self.label}' condition")
        if isinstance(self.action, ShellAction):
            self.action.check_matrix_references(registry.names)

    def describe_condition(self) -> str:
        if self.unconditional:
            return "always"
        if isinstance(self.predicate, MatrixCondition):
            return self.predicate.describe()
        return getattr(self.predicate, "__name__", "custom")

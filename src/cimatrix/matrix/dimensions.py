"""Dimension registry for the job matrix.

A dimension is a named axis of variation (``check``, ``features``) with an
ordered list of values. The registry holds the dimensions in their declared
order; that order drives job enumeration in
:func:`cimatrix.matrix.expander.expand` and therefore every report.

Key Concepts:
    Dimension: Frozen dataclass, ``name`` plus a non-empty tuple of unique
        values.
    DimensionRegistry: Frozen, ordered collection of dimensions with unique
        names. Built once from configuration and never mutated.

Architecture Decisions:
    - Frozen dataclasses: the registry is a value object, so two registries
      built from the same configuration compare equal and can be shared
      between threads without locking.
    - Validation in ``__post_init__``: an invalid dimension can never exist,
      so downstream code does not re-check.

Tags:
    matrix, dimensions, registry, configuration
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from cimatrix.core.errors import ConfigurationError


@dataclass(frozen=True)
class Dimension:
    """A named axis of the job matrix."""

    name: str
    """Dimension name (e.g., 'features')."""

    values: tuple[str, ...]
    """Possible values, in declared order."""

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("Dimension name must not be empty")
        if isinstance(self.values, str):
            raise ConfigurationError(
                f"Dimension '{self.name}' values must be a list, got the string {self.values!r}",
                context={"dimension": self.name},
            )
        # Accept any sequence from callers, store a tuple
        object.__setattr__(self, "values", tuple(str(v) for v in self.values))
        if not self.values:
            raise ConfigurationError(
                f"Dimension '{self.name}' has no values",
                context={"dimension": self.name},
            )
        seen: set[str] = set()
        for value in self.values:
            if value in seen:
                raise ConfigurationError(
                    f"Dimension '{self.name}' lists value '{value}' more than once",
                    context={"dimension": self.name, "value": value},
                )
            seen.add(value)

    def __contains__(self, value: object) -> bool:
        return value in self.values

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class DimensionRegistry:
    """Ordered, immutable set of dimensions.

    Example::

        registry = DimensionRegistry.from_mapping({
            "check": ["format", "clippy", "test"],
            "features": ["all", "default"],
        })
        registry.names  # ('check', 'features')
    """

    dimensions: tuple[Dimension, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dimensions", tuple(self.dimensions))
        names: set[str] = set()
        for dim in self.dimensions:
            if dim.name in names:
                raise ConfigurationError(
                    f"Dimension '{dim.name}' is declared more than once",
                    context={"dimension": dim.name},
                )
            names.add(dim.name)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Sequence[str]]) -> DimensionRegistry:
        """Build a registry from ``{name: [values...]}``, keeping mapping order."""
        return cls(tuple(Dimension(name, values) for name, values in mapping.items()))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self.dimensions)

    def get(self, name: str) -> Dimension:
        """Look up a dimension by name.

        Raises
        ------
        ConfigurationError
            If no dimension has that name.
        """
        for dim in self.dimensions:
            if dim.name == name:
                return dim
        available = ", ".join(self.names) or "(none)"
        raise ConfigurationError(
            f"Unknown dimension '{name}'. Available: {available}",
            context={"dimension": name},
        )

    def has_value(self, name: str, value: str) -> bool:
        """True when ``name`` is a declared dimension and ``value`` one of its values."""
        return any(d.name == name and value in d for d in self.dimensions)

    def size(self) -> int:
        """Number of combinations before exclusions (1 for an empty registry)."""
        total = 1
        for dim in self.dimensions:
            total *= len(dim)
        return total

    def to_dict(self) -> dict[str, list[str]]:
        return {d.name: list(d.values) for d in self.dimensions}

    def __iter__(self) -> Iterator[Dimension]:
        return iter(self.dimensions)

    def __len__(self) -> int:
        return len(self.dimensions)


def validate_assignment(
    registry: DimensionRegistry,
    assignment: Mapping[str, str | Iterable[str]],
    *,
    what: str,
) -> None:
    """Check that every ``name -> value(s)`` pair refers to the registry.

    Used for exclusion rules and step predicates. ``what`` names the
    offending construct in the error message.

    Raises
    ------
    ConfigurationError
        On the first unknown dimension or value.
    """
    for name, raw in assignment.items():
        values = [raw] if isinstance(raw, str) else list(raw)
        if name not in registry.names:
            raise ConfigurationError(
                f"{what} references unknown dimension '{name}'",
                context={"dimension": name, "assignment": dict(assignment)},
            )
        for value in values:
            if not registry.has_value(name, value):
                allowed = ", ".join(registry.get(name).values)
                raise ConfigurationError(
                    f"{what} references unknown value '{value}' for dimension "
                    f"'{name}' (allowed: {allowed})",
                    context={"dimension": name, "value": value},
                )

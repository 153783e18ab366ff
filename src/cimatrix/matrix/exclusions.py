"""Exclusion rules and the exclusion filter.

An exclusion rule is a *partial* assignment: ``{check: format, features: all}``
removes exactly the job where both hold, ``{check: format}`` would remove
every ``format`` job. Rules are validated against the dimension registry
when the filter is built, so an invalid rule is reported before a single
job is generated.

Example::

    registry = DimensionRegistry.from_mapping({
        "check": ["format", "clippy", "test"],
        "features": ["all", "default"],
    })
    exclusions = ExclusionFilter(registry, [{"check": "format", "features": "all"}])
    exclusions.excludes(JobSpec.of(check="format", features="all"))  # True
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from cimatrix.core.errors import ConfigurationError
from cimatrix.matrix.dimensions import DimensionRegistry, validate_assignment
from cimatrix.matrix.job_spec import JobSpec

ExclusionRule = Mapping[str, str]


def matches(rule: ExclusionRule, spec: JobSpec) -> bool:
    """True iff every ``(name, value)`` pair of ``rule`` equals the entry in ``spec``."""
    return all(spec.get(name) == value for name, value in rule.items())


def is_valid(rule: ExclusionRule, registry: DimensionRegistry) -> bool:
    """True iff every name in ``rule`` is a dimension and every value one of its values."""
    if not rule:
        return False
    return all(registry.has_value(name, value) for name, value in rule.items())


@dataclass(frozen=True)
class ExclusionFilter:
    """Validated, immutable set of exclusion rules bound to one registry.

    Raises
    ------
    ConfigurationError
        At construction, for an empty rule or one that references an
        undeclared dimension or value.
    """

    registry: DimensionRegistry
    rules: tuple[ExclusionRule, ...] = field(default_factory=tuple)

    def __init__(
        self,
        registry: DimensionRegistry,
        rules: Iterable[Mapping[str, str]] = (),
    ) -> None:
        frozen: list[ExclusionRule] = []
        for index, rule in enumerate(rules):
            normalized = {str(k): str(v) for k, v in rule.items()}
            if not normalized:
                raise ConfigurationError(
                    f"Exclusion rule #{index + 1} is empty and would exclude every job",
                    context={"rule_index": index},
                )
            if not is_valid(normalized, registry):
                # validate_assignment raises with the precise dimension/value
                validate_assignment(
                    registry, normalized, what=f"Exclusion rule #{index + 1} {normalized}"
                )
            frozen.append(MappingProxyType(normalized))
        object.__setattr__(self, "registry", registry)
        object.__setattr__(self, "rules", tuple(frozen))

    def excludes(self, spec: JobSpec) -> bool:
        """True when at least one rule matches ``spec``."""
        return any(matches(rule, spec) for rule in self.rules)

    def to_list(self) -> list[dict[str, str]]:
        return [dict(rule) for rule in self.rules]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExclusionFilter):
            return NotImplemented
        return self.registry == other.registry and self.to_list() == other.to_list()

    def __hash__(self) -> int:
        return hash((self.registry, tuple(tuple(r.items()) for r in self.rules)))

    def __len__(self) -> int:
        return len(self.rules)

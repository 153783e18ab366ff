"""Matrix expansion: dimensions x exclusions -> ordered JobSpecs.

The expander computes the Cartesian product of the registry's dimensions in
declared order (the first dimension varies slowest, like nested loops) and
drops every candidate matched by at least one exclusion rule. Given the
same registry and filter, the result is identical in content and order on
every call; run reports and tests rely on that order.

Example::

    >>> registry = DimensionRegistry.from_mapping(
    ...     {"check": ["format", "clippy", "test"], "features": ["all", "default"]}
    ... )
    >>> exclusions = ExclusionFilter(registry, [{"check": "format", "features": "all"}])
    >>> jobs = expand(registry, exclusions)
    >>> len(jobs)
    5
    >>> jobs[0].name
    'check=format, features=default'
"""

from __future__ import annotations

import itertools

from cimatrix.core.errors import ConfigurationError
from cimatrix.core.logging import get_logger
from cimatrix.matrix.dimensions import DimensionRegistry
from cimatrix.matrix.exclusions import ExclusionFilter
from cimatrix.matrix.job_spec import JobSpec

logger = get_logger(__name__)


def candidates(registry: DimensionRegistry) -> list[JobSpec]:
    """Every combination of dimension values, before exclusions."""
    names = registry.names
    product = itertools.product(*(dim.values for dim in registry.dimensions))
    return [JobSpec(tuple(zip(names, combo))) for combo in product]


def expand(
    registry: DimensionRegistry,
    exclusions: ExclusionFilter | None = None,
) -> list[JobSpec]:
    """Compute the ordered job set for ``registry`` minus ``exclusions``.

    Parameters
    ----------
    registry
        Dimensions in declared order. An empty registry yields one empty job.
    exclusions
        Filter built against the same registry. ``None`` means no exclusions.

    Returns
    -------
    list[JobSpec]
        Jobs in Cartesian-product order.

    Raises
    ------
    ConfigurationError
        If ``exclusions`` was validated against a different registry.
    """
    if exclusions is not None and exclusions.registry != registry:
        raise ConfigurationError(
            "Exclusion filter was built for a different dimension registry",
            context={
                "registry": registry.to_dict(),
                "filter_registry": exclusions.registry.to_dict(),
            },
        )

    jobs: list[JobSpec] = []
    dropped = 0
    for spec in candidates(registry):
        if exclusions is not None and exclusions.excludes(spec):
            dropped += 1
            continue
        jobs.append(spec)

    logger.debug(
        "matrix.expanded",
        dimensions=list(registry.names),
        candidates=len(jobs) + dropped,
        excluded=dropped,
        jobs=len(jobs),
    )
    return jobs

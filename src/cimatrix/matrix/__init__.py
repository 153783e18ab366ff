"""Job matrix: dimension registry, exclusion filter and expander."""

from cimatrix.matrix.dimensions import Dimension, DimensionRegistry
from cimatrix.matrix.exclusions import ExclusionFilter, ExclusionRule, is_valid, matches
from cimatrix.matrix.expander import candidates, expand
from cimatrix.matrix.job_spec import JobSpec

__all__ = [
    "Dimension",
    "DimensionRegistry",
    "ExclusionFilter",
    "ExclusionRule",
    "JobSpec",
    "candidates",
    "expand",
    "is_valid",
    "matches",
]

"""
cimatrix - matrix expansion and job execution for CI pipelines.

Expands named dimensions into the cross-product of jobs, drops the
combinations matched by exclusion rules, and runs each job's ordered,
matrix-predicated steps with a concurrency limit and an optional
fail-fast policy.

Quick start::

    from cimatrix import Pipeline, get_preset

    pipeline = get_preset("checks")
    for job in pipeline.jobs():
        print(job)
    result = pipeline.run()
    print(result.summary)
"""

__version__ = "0.1.0"

from cimatrix.config import PipelineSpec, load_pipeline
from cimatrix.core.errors import CimatrixError, ConfigurationError, StepFailure
from cimatrix.matrix import DimensionRegistry, ExclusionFilter, JobSpec, expand
from cimatrix.pipeline import Pipeline
from cimatrix.presets import get_preset
from cimatrix.results import JobResult, JobStatus, RunResult, RunStatus
from cimatrix.runner import JobRunner, RunController, RunPolicy, Step, when

__all__ = [
    "CimatrixError",
    "ConfigurationError",
    "DimensionRegistry",
    "ExclusionFilter",
    "JobResult",
    "JobRunner",
    "JobSpec",
    "JobStatus",
    "Pipeline",
    "PipelineSpec",
    "RunController",
    "RunPolicy",
    "RunResult",
    "RunStatus",
    "Step",
    "StepFailure",
    "__version__",
    "expand",
    "get_preset",
    "load_pipeline",
    "when",
]

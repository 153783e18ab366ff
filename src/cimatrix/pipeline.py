"""Pipeline: the immutable, validated unit the CLI runs.

A pipeline bundles the dimension registry, the exclusion filter, the
ordered steps and the default run policy. It is built once, from YAML
(:mod:`cimatrix.config`) or from a preset (:mod:`cimatrix.presets`), and
never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cimatrix.matrix.dimensions import DimensionRegistry
from cimatrix.matrix.exclusions import ExclusionFilter
from cimatrix.matrix.expander import expand
from cimatrix.matrix.job_spec import JobSpec
from cimatrix.results import RunResult
from cimatrix.runner.controller import ProgressCallback, RunController, RunPolicy
from cimatrix.runner.steps import Step


@dataclass(frozen=True)
class Pipeline:
    name: str
    registry: DimensionRegistry
    exclusions: ExclusionFilter
    steps: tuple[Step, ...]
    policy: RunPolicy = field(default_factory=RunPolicy)
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        for step in self.steps:
            step.validate(self.registry)

    def jobs(self) -> list[JobSpec]:
        return expand(self.registry, self.exclusions)

    def plan(self) -> list[tuple[JobSpec, list[tuple[Step, bool]]]]:
        """Dry run: for each job, every step and whether it would execute."""
        return [(job, [(step, step.applies_to(job)) for step in self.steps]) for job in self.jobs()]

    def run(
        self,
        policy: RunPolicy | None = None,
        progress: ProgressCallback | None = None,
        run_id: str | None = None,
    ) -> RunResult:
        controller = RunController(progress=progress, run_id=run_id, pipeline=self.name)
        return controller.run_all(self.jobs(), self.steps, policy or self.policy)

"""Result models for cimatrix runs.

Pydantic v2 models that capture structured outcomes of a matrix run. The
models form a composition hierarchy: step results roll up into job results,
which roll up into the run result.

Key Concepts:
    JobStatus: PENDING, RUNNING, PASSED, FAILED, SKIPPED. Transitions are
        enforced by ``JOB_VALID_TRANSITIONS``; terminal states never change.
    StepResult: Outcome of one step (passed, failed or skipped by its
        predicate) with exit code, captured output and duration.
    JobResult: Outcome of one job: its matrix assignment, status, the label
        of the failing step and the step results.
    RunResult: Job results in generation order plus the overall status.
        ``mark_complete()`` finalises timestamps, counts and the summary.

Architecture Decisions:
    - Pydantic v2 BaseModel: ``model_dump_json(indent=2)`` for the summary
      artifact, ``model_validate()`` for reading it back.
    - ``mark_complete()`` pattern: the controller calls it once, after the
      last job reached a terminal state.
    - Overall status is SUCCESS iff no job FAILED. Skipped jobs never turn a
      run into a failure on their own.

Tags:
    results, models, pydantic, status, reporting
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from cimatrix.core.errors import InvalidTransitionError
from cimatrix.matrix.job_spec import JobSpec

# ---------------------------------------------------------------------------
# Status enums
# ---------------------------------------------------------------------------


class JobStatus(str, Enum):
    """Per-job state machine.

    Valid transition graph::

        PENDING → RUNNING | SKIPPED
        RUNNING → PASSED | FAILED
        PASSED, FAILED, SKIPPED → (terminal)
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.PASSED, JobStatus.FAILED, JobStatus.SKIPPED)


JOB_VALID_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.SKIPPED}),
    JobStatus.RUNNING: frozenset({JobStatus.PASSED, JobStatus.FAILED}),
    JobStatus.PASSED: frozenset(),  # terminal
    JobStatus.FAILED: frozenset(),  # terminal
    JobStatus.SKIPPED: frozenset(),  # terminal
}


def validate_job_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise :class:`InvalidTransitionError` if ``current -> target`` is illegal."""
    if target not in JOB_VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value, "JobStatus")


class StepStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"  # predicate evaluated false


class RunStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


SKIP_REASON_FAIL_FAST = "fail-fast"


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _elapsed(started_at: str | None, completed_at: str | None) -> float:
    if not started_at or not completed_at:
        return 0.0
    start = datetime.fromisoformat(started_at)
    end = datetime.fromisoformat(completed_at)
    return (end - start).total_seconds()


# ---------------------------------------------------------------------------
# Step / Job results
# ---------------------------------------------------------------------------


class StepResult(BaseModel):
    """Outcome of a single step of a job."""

    label: str
    status: StepStatus
    exit_code: int | None = None
    duration_seconds: float = 0.0
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def executed(self) -> bool:
        return self.status != StepStatus.SKIPPED


class JobResult(BaseModel):
    """Outcome of one job of the matrix."""

    name: str
    matrix: dict[str, str] = Field(default_factory=dict)
    status: JobStatus = JobStatus.PENDING
    failing_step: str | None = None
    steps: list[StepResult] = Field(default_factory=list)
    skip_reason: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    duration_seconds: float = 0.0
    error: str | None = None

    @classmethod
    def pending(cls, spec: JobSpec, name: str | None = None) -> JobResult:
        return cls(name=name or spec.name, matrix=spec.as_dict())

    @property
    def spec(self) -> JobSpec:
        return JobSpec(tuple(self.matrix.items()))

    def transition_to(self, target: JobStatus) -> None:
        """Move to ``target``, enforcing ``JOB_VALID_TRANSITIONS``."""
        validate_job_transition(self.status, target)
        self.status = target
        if target == JobStatus.RUNNING:
            self.started_at = _now()
        elif target.is_terminal:
            self.completed_at = _now()
            self.duration_seconds = _elapsed(self.started_at, self.completed_at)

    def mark_skipped(self, reason: str = SKIP_REASON_FAIL_FAST) -> None:
        self.transition_to(JobStatus.SKIPPED)
        self.skip_reason = reason

    @property
    def executed_steps(self) -> list[str]:
        return [s.label for s in self.steps if s.executed]


# ---------------------------------------------------------------------------
# Run result
# ---------------------------------------------------------------------------


class RunResult(BaseModel):
    """Result of one invocation: every job, in generation order."""

    run_id: str
    pipeline: str = ""
    started_at: str = Field(default_factory=_now)
    completed_at: str | None = None
    duration_seconds: float = 0.0
    jobs: list[JobResult] = Field(default_factory=list)
    status: RunStatus = RunStatus.PENDING
    fail_fast: bool = False
    max_parallel: int = 1
    stopped_early: bool = False
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    summary: str = ""

    @property
    def success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def failures(self) -> list[JobResult]:
        return [j for j in self.jobs if j.status == JobStatus.FAILED]

    def mark_complete(self) -> None:
        """Finalize run: compute duration, counts, status and summary."""
        self.completed_at = _now()
        self.duration_seconds = _elapsed(self.started_at, self.completed_at)

        self.passed = sum(1 for j in self.jobs if j.status == JobStatus.PASSED)
        self.failed = sum(1 for j in self.jobs if j.status == JobStatus.FAILED)
        self.skipped = sum(1 for j in self.jobs if j.status == JobStatus.SKIPPED)
        self.stopped_early = any(j.skip_reason == SKIP_REASON_FAIL_FAST for j in self.jobs)

        self.status = RunStatus.FAILURE if self.failed else RunStatus.SUCCESS

        details = f"{self.passed} passed, {self.failed} failed, {self.skipped} skipped"
        self.summary = (
            f"{self.pipeline or 'run'}: {self.status.value} "
            f"({details} of {len(self.jobs)} jobs) in {self.duration_seconds:.1f}s"
        )

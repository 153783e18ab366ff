"""Job Runner: executes one job as an ordered sequence of steps.

Contract::

    JobRunner().run(job_spec, steps) -> JobResult

Rules:
    - Steps run strictly in declared order, on the calling thread.
    - A step whose predicate is false is recorded as skipped and never
      counts as a failure.
    - The first executed step that fails stops the job. The result is
      FAILED with ``failing_step`` set to that step's label; later steps
      never run and are not recorded.
    - If every step passed or was skipped, the job PASSED.
    - No step is ever retried.

A step fails when its action returns a non-zero exit code, raises
:class:`~cimatrix.core.errors.StepFailure` (timeouts included) or raises
any other exception. Unexpected exceptions are logged with their traceback
and recorded on the step; they never propagate to the run controller.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from cimatrix.core.errors import StepFailure
from cimatrix.core.logging import LogContext, get_logger
from cimatrix.matrix.job_spec import JobSpec
from cimatrix.results import JobResult, JobStatus, StepResult, StepStatus
from cimatrix.runner.steps import Step

logger = get_logger(__name__)


class JobRunner:
    """Runs the steps of a single job.

    Parameters
    ----------
    run_id
        Bound into the logging context of every step.
    """

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id

    def run(
        self,
        job_spec: JobSpec,
        steps: Sequence[Step],
        result: JobResult | None = None,
    ) -> JobResult:
        """Execute ``steps`` for ``job_spec``.

        ``result`` lets the run controller pass in the PENDING record it
        tracks; a fresh one is created otherwise.
        """
        if result is None:
            result = JobResult.pending(job_spec)
        result.transition_to(JobStatus.RUNNING)

        with LogContext(run_id=self.run_id, job=result.name):
            logger.info("job.started", steps=len(steps))

            for step in steps:
                try:
                    applies = step.applies_to(job_spec)
                except Exception as e:
                    logger.exception("step.predicate_crashed", step=step.label)
                    step_result = StepResult(
                        label=step.label,
                        status=StepStatus.FAILED,
                        error=f"predicate raised {type(e).__name__}: {e}",
                    )
                else:
                    if not applies:
                        result.steps.append(StepResult(label=step.label, status=StepStatus.SKIPPED))
                        logger.debug(
                            "step.skipped", step=step.label, condition=step.describe_condition()
                        )
                        continue
                    step_result = self._run_step(step, job_spec)

                result.steps.append(step_result)

                if step_result.status == StepStatus.FAILED:
                    result.failing_step = step.label
                    result.error = step_result.error
                    result.transition_to(JobStatus.FAILED)
                    logger.warning(
                        "job.failed",
                        failing_step=step.label,
                        exit_code=step_result.exit_code,
                        error=step_result.error,
                    )
                    return result

            result.transition_to(JobStatus.PASSED)
            logger.info("job.passed", duration_seconds=round(result.duration_seconds, 3))
        return result

    def _run_step(self, step: Step, job_spec: JobSpec) -> StepResult:
        logger.info("step.started", step=step.label)
        start = time.monotonic()

        try:
            outcome = step.action.run(job_spec, timeout=step.timeout_seconds)
        except StepFailure as e:
            return StepResult(
                label=step.label,
                status=StepStatus.FAILED,
                exit_code=e.exit_code,
                duration_seconds=time.monotonic() - start,
                error=e.message,
            )
        except Exception as e:
            logger.exception("step.crashed", step=step.label)
            return StepResult(
                label=step.label,
                status=StepStatus.FAILED,
                duration_seconds=time.monotonic() - start,
                error=f"{type(e).__name__}: {e}",
            )

        duration = time.monotonic() - start
        if outcome.ok:
            logger.info("step.passed", step=step.label, duration_seconds=round(duration, 3))
            status = StepStatus.PASSED
            error = None
        else:
            status = StepStatus.FAILED
            error = f"exit code {outcome.exit_code}"

        return StepResult(
            label=step.label,
            status=status,
            exit_code=outcome.exit_code,
            duration_seconds=duration,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            error=error,
        )

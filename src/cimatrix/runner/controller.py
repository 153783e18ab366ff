"""Run Controller: dispatches the job set under a concurrency and fail-fast policy.

Contract::

    RunController().run_all(job_specs, steps, policy) -> RunResult

Scheduling model:
    ``min(max_parallel, len(jobs))`` worker threads each pull the next
    undispatched job from a shared, ordered queue. Steps of one job run
    sequentially on the worker that owns it.

Shared state:
    The dispatch queue and the stop-dispatch flag are the only data shared
    between workers. Both are read and written under a single lock, so
    "dequeue if not stopped" and "stop on failure" are atomic with respect
    to each other: once a failure has been recorded under fail-fast, no
    worker can dispatch another job.

Fail-fast:
    In-flight jobs are never cancelled. Jobs still in the queue when the
    flag is set end up SKIPPED. Without fail-fast every job runs.

Ordering:
    Results are stored by generation index, so ``RunResult.jobs`` follows
    the expander's order whatever the completion order was.
"""

from __future__ import annotations

import os
import threading
import uuid
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from cimatrix.core.errors import ConfigurationError
from cimatrix.core.logging import get_logger
from cimatrix.matrix.job_spec import JobSpec
from cimatrix.results import JobResult, JobStatus, RunResult
from cimatrix.runner.job_runner import JobRunner
from cimatrix.runner.steps import Step

logger = get_logger(__name__)

ProgressCallback = Callable[[str, JobResult], Any]


@dataclass(frozen=True)
class RunPolicy:
    """Concurrency and failure policy of a run.

    ``max_parallel=None`` means one worker per job.
    """

    fail_fast: bool = True
    max_parallel: int | None = None

    def __post_init__(self) -> None:
        if self.max_parallel is not None and self.max_parallel < 1:
            raise ConfigurationError(
                f"max_parallel must be >= 1, got {self.max_parallel}",
                context={"max_parallel": self.max_parallel},
            )

    def workers_for(self, job_count: int) -> int:
        if job_count == 0:
            return 0
        if self.max_parallel is None:
            return job_count
        return min(self.max_parallel, job_count)

    @classmethod
    def from_env(cls, base: RunPolicy | None = None, **overrides: Any) -> RunPolicy:
        """Build a policy from CIMATRIX_* environment variables.

        Precedence: keyword overrides > environment > ``base`` > defaults.
        ``None`` overrides are ignored.
        """
        values: dict[str, Any] = {}
        if base is not None:
            values.update(fail_fast=base.fail_fast, max_parallel=base.max_parallel)

        env_fail_fast = os.environ.get("CIMATRIX_FAIL_FAST")
        if env_fail_fast is not None:
            values["fail_fast"] = env_fail_fast.lower() in ("true", "1", "yes")
        env_max_parallel = os.environ.get("CIMATRIX_MAX_PARALLEL")
        if env_max_parallel is not None:
            try:
                values["max_parallel"] = int(env_max_parallel)
            except ValueError as e:
                raise ConfigurationError(
                    f"CIMATRIX_MAX_PARALLEL must be an integer, got {env_max_parallel!r}",
                    cause=e,
                ) from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class RunController:
    """Orchestrates a full matrix run.

    Parameters
    ----------
    job_runner
        Runner used for every job (default: a fresh :class:`JobRunner`).
    progress
        Optional callback receiving ``(event, job_result)`` for
        ``job_start``, ``job_passed``, ``job_failed`` and ``job_skipped``.
        Called from worker threads.

    Example::

        controller = RunController()
        result = controller.run_all(expand(registry, exclusions), steps,
                                    RunPolicy(fail_fast=False, max_parallel=2))
        print(result.summary)
    """

    def __init__(
        self,
        job_runner: JobRunner | None = None,
        progress: ProgressCallback | None = None,
        run_id: str | None = None,
        pipeline: str = "",
    ) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.pipeline = pipeline
        self.job_runner = job_runner or JobRunner(run_id=self.run_id)
        self.progress = progress

    def run_all(
        self,
        job_specs: Sequence[JobSpec],
        steps: Sequence[Step],
        policy: RunPolicy | None = None,
    ) -> RunResult:
        policy = policy or RunPolicy()
        run = RunResult(
            run_id=self.run_id,
            pipeline=self.pipeline,
            fail_fast=policy.fail_fast,
            max_parallel=policy.workers_for(len(job_specs)),
        )
        run.jobs = [
            JobResult.pending(spec, name=spec.name or self.pipeline or "job")
            for spec in job_specs
        ]

        queue: deque[int] = deque(range(len(job_specs)))
        lock = threading.Lock()
        stop_dispatch = False

        def next_job() -> int | None:
            with lock:
                if stop_dispatch or not queue:
                    return None
                return queue.popleft()

        def record_outcome(job: JobResult) -> None:
            nonlocal stop_dispatch
            with lock:
                if job.status == JobStatus.FAILED and policy.fail_fast and not stop_dispatch:
                    stop_dispatch = True
                    logger.warning("run.fail_fast", failed_job=job.name, undispatched=len(queue))

        def worker() -> None:
            while (index := next_job()) is not None:
                job = run.jobs[index]
                self._emit("job_start", job)
                self.job_runner.run(job_specs[index], steps, result=job)
                record_outcome(job)
                self._emit("job_passed" if job.status == JobStatus.PASSED else "job_failed", job)

        workers = policy.workers_for(len(job_specs))
        logger.info(
            "run.started",
            run_id=self.run_id,
            pipeline=self.pipeline,
            jobs=len(job_specs),
            workers=workers,
            fail_fast=policy.fail_fast,
        )

        if workers:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cimatrix") as pool:
                futures = [pool.submit(worker) for _ in range(workers)]
            for future in futures:
                # Worker bodies only raise on bugs in the engine itself
                future.result()

        for job in run.jobs:
            if job.status == JobStatus.PENDING:
                job.mark_skipped()
                self._emit("job_skipped", job)

        run.mark_complete()
        logger.info(
            "run.complete",
            run_id=self.run_id,
            status=run.status.value,
            passed=run.passed,
            failed=run.failed,
            skipped=run.skipped,
        )
        return run

    def _emit(self, event: str, job: JobResult) -> None:
        if self.progress is None:
            return
        try:
            self.progress(event, job)
        except Exception:
            # progress reporting never affects dispatch or results
            logger.exception("run.progress_failed", event=event, job=job.name)

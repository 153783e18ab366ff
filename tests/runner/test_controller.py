"""Tests for the run controller: concurrency limit, fail-fast, ordering.

Concurrency tests coordinate workers with ``threading.Event`` instead of
sleeps; every wait has a timeout so a scheduling bug fails instead of
hanging the suite.
"""

from __future__ import annotations

import os
import threading
from unittest.mock import patch

import pytest

from cimatrix.core.errors import ConfigurationError
from cimatrix.matrix.job_spec import JobSpec
from cimatrix.results import SKIP_REASON_FAIL_FAST, JobStatus, RunStatus
from cimatrix.runner.controller import RunController, RunPolicy
from cimatrix.runner.steps import Step

WAIT = 5.0

JOBS = [JobSpec.of(n=str(i)) for i in range(1, 5)]


def _failing_on(*numbers: str):
    def action(spec):
        return 1 if spec["n"] in numbers else 0

    return action


# ===========================================================================
# RunPolicy
# ===========================================================================


class TestRunPolicy:
    def test_defaults(self):
        policy = RunPolicy()
        assert policy.fail_fast is True
        assert policy.max_parallel is None

    def test_workers_for(self):
        assert RunPolicy().workers_for(5) == 5
        assert RunPolicy(max_parallel=2).workers_for(5) == 2
        assert RunPolicy(max_parallel=8).workers_for(3) == 3
        assert RunPolicy(max_parallel=2).workers_for(0) == 0

    def test_max_parallel_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="max_parallel must be >= 1"):
            RunPolicy(max_parallel=0)

    @patch.dict(os.environ, {"CIMATRIX_FAIL_FAST": "false", "CIMATRIX_MAX_PARALLEL": "3"})
    def test_from_env(self):
        policy = RunPolicy.from_env()
        assert policy.fail_fast is False
        assert policy.max_parallel == 3

    @patch.dict(os.environ, {"CIMATRIX_MAX_PARALLEL": "3"})
    def test_overrides_beat_env_and_env_beats_base(self):
        base = RunPolicy(fail_fast=False, max_parallel=1)
        policy = RunPolicy.from_env(base=base, max_parallel=None, fail_fast=True)
        assert policy.max_parallel == 3
        assert policy.fail_fast is True

    @patch.dict(os.environ, {"CIMATRIX_MAX_PARALLEL": "lots"})
    def test_invalid_env(self):
        with pytest.raises(ConfigurationError, match="must be an integer"):
            RunPolicy.from_env()


# ===========================================================================
# RunController
# ===========================================================================


class TestFailFast:
    def test_sequential_fail_fast_skips_remaining(self):
        steps = [Step("check", _failing_on("2"))]

        result = RunController().run_all(JOBS, steps, RunPolicy(fail_fast=True, max_parallel=1))

        assert [j.status for j in result.jobs] == [
            JobStatus.PASSED,
            JobStatus.FAILED,
            JobStatus.SKIPPED,
            JobStatus.SKIPPED,
        ]
        assert result.jobs[1].failing_step == "check"
        assert result.jobs[2].skip_reason == SKIP_REASON_FAIL_FAST
        assert result.jobs[2].steps == []
        assert result.status == RunStatus.FAILURE
        assert result.stopped_early
        assert (result.passed, result.failed, result.skipped) == (1, 1, 2)

    def test_in_flight_jobs_finish(self):
        second_started = threading.Event()
        release = threading.Event()

        def action(spec):
            if spec["n"] == "1":
                assert second_started.wait(WAIT)
                return 1
            if spec["n"] == "2":
                second_started.set()
                assert release.wait(WAIT)
            return 0

        def progress(event, job):
            if event == "job_failed":
                release.set()

        controller = RunController(progress=progress)
        result = controller.run_all(JOBS, [Step("work", action)], RunPolicy(max_parallel=2))

        assert [j.status for j in result.jobs] == [
            JobStatus.FAILED,
            JobStatus.PASSED,
            JobStatus.SKIPPED,
            JobStatus.SKIPPED,
        ]

    def test_no_fail_fast_runs_everything(self):
        steps = [Step("check", _failing_on("2", "4"))]

        result = RunController().run_all(JOBS, steps, RunPolicy(fail_fast=False, max_parallel=2))

        assert [j.status for j in result.jobs] == [
            JobStatus.PASSED,
            JobStatus.FAILED,
            JobStatus.PASSED,
            JobStatus.FAILED,
        ]
        assert [j.name for j in result.failures] == ["n=2", "n=4"]
        assert result.status == RunStatus.FAILURE
        assert not result.stopped_early
        assert result.skipped == 0


class TestConcurrency:
    def test_results_keep_generation_order(self):
        # job 1 cannot finish before job 3 has finished
        third_done = threading.Event()

        def action(spec):
            if spec["n"] == "1":
                assert third_done.wait(WAIT)
            return 0

        finished = []

        def progress(event, job):
            if event == "job_passed":
                finished.append(job.name)
                if job.name == "n=3":
                    third_done.set()

        controller = RunController(progress=progress)
        result = controller.run_all(JOBS[:3], [Step("work", action)], RunPolicy(max_parallel=3))

        assert [j.name for j in result.jobs] == ["n=1", "n=2", "n=3"]
        assert finished.index("n=3") < finished.index("n=1")
        assert result.success

    def test_max_parallel_bounds_concurrency(self):
        lock = threading.Lock()
        running = 0
        peak = 0

        def action(spec):
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            threading.Event().wait(0.01)
            with lock:
                running -= 1
            return 0

        jobs = [JobSpec.of(n=str(i)) for i in range(20)]
        result = RunController().run_all(jobs, [Step("work", action)], RunPolicy(max_parallel=3))

        assert result.passed == 20
        assert result.max_parallel == 3
        assert peak <= 3

    def test_no_jobs(self):
        result = RunController(pipeline="empty").run_all([], [Step("x", "true")])
        assert result.jobs == []
        assert result.success


class TestProgressAndNaming:
    def test_events(self):
        events = []
        steps = [Step("check", _failing_on("2"))]

        RunController(progress=lambda e, j: events.append((e, j.name))).run_all(
            JOBS[:3], steps, RunPolicy(max_parallel=1)
        )

        assert events == [
            ("job_start", "n=1"),
            ("job_passed", "n=1"),
            ("job_start", "n=2"),
            ("job_failed", "n=2"),
            ("job_skipped", "n=3"),
        ]

    def test_job_without_dimensions_takes_pipeline_name(self):
        result = RunController(pipeline="authors").run_all([JobSpec()], [Step("x", lambda s: 0)])
        assert result.jobs[0].name == "authors"
        assert result.pipeline == "authors"

    def test_run_id(self):
        assert len(RunController().run_id) == 12
        assert RunController(run_id="abc").run_id == "abc"

    def test_raising_progress_callback_does_not_stop_run(self):
        def progress(event, job):
            if event == "job_passed" and job.name == "n=1":
                raise RuntimeError("render broke")

        controller = RunController(progress=progress)
        result = controller.run_all(JOBS, [Step("check", _failing_on())], RunPolicy(max_parallel=1))

        assert [j.status for j in result.jobs] == [JobStatus.PASSED] * 4
        assert result.success

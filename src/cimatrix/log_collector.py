"""Structured output collection for cimatrix runs.

Persists a :class:`~cimatrix.results.RunResult` into a per-run directory so
that CI systems can archive it as an artifact.

Output structure::

    {output_dir}/{run_id}/
    ├── summary.json
    ├── check-clippy_features-all/
    │   ├── 01-checkout.log
    │   └── 04-clippy-with-all-features.log
    └── check-test_features-default/
        └── ...

Only executed steps get a log file; skipped steps have no output.
"""

from __future__ import annotations

import re
from pathlib import Path

from cimatrix.core.logging import get_logger
from cimatrix.results import JobResult, RunResult, StepResult

logger = get_logger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _slug(text: str) -> str:
    return _UNSAFE.sub("-", text.lower()).strip("-") or "job"


def job_dir_name(job: JobResult) -> str:
    """Filesystem-safe directory name for a job (``check-clippy_features-all``)."""
    if not job.matrix:
        return _slug(job.name)
    return "_".join(f"{_slug(k)}-{_slug(v)}" for k, v in job.matrix.items())


class LogCollector:
    """Writes run summaries and step output under ``output_dir/run_id``.

    Parameters
    ----------
    output_dir
        Base directory for output.
    run_id
        Unique run identifier.
    """

    def __init__(self, output_dir: Path, run_id: str) -> None:
        self.run_dir = Path(output_dir) / run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id

    def job_dir(self, job: JobResult) -> Path:
        """Get or create the directory for a job."""
        d = self.run_dir / job_dir_name(job)
        d.mkdir(parents=True, exist_ok=True)
        return d

    def save_step_output(self, job: JobResult, position: int, step: StepResult) -> Path:
        path = self.job_dir(job) / f"{position:02d}-{_slug(step.label)}.log"
        sections = [f"$ {step.label}  (status={step.status.value}, exit_code={step.exit_code})"]
        if step.stdout:
            sections.append(step.stdout.rstrip("\n"))
        if step.stderr:
            sections.append("--- stderr ---")
            sections.append(step.stderr.rstrip("\n"))
        if step.error:
            sections.append(f"--- error ---\n{step.error}")
        path.write_text("\n".join(sections) + "\n", encoding="utf-8")
        return path

    def write_summary(self, result: RunResult) -> Path:
        """Write machine-readable summary JSON."""
        path = self.run_dir / "summary.json"
        path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        logger.info("summary.written", path=str(path))
        return path

    def collect(self, result: RunResult) -> Path:
        """Write every executed step's output plus the summary; returns the run directory."""
        for job in result.jobs:
            for position, step in enumerate(job.steps, start=1):
                if step.executed:
                    self.save_step_output(job, position, step)
        self.write_summary(result)
        return self.run_dir

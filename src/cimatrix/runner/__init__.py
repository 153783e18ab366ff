"""Job execution: steps, actions, the job runner and the run controller."""

from cimatrix.runner.actions import ActionResult, CallableAction, ShellAction, render_command
from cimatrix.runner.controller import RunController, RunPolicy
from cimatrix.runner.job_runner import JobRunner
from cimatrix.runner.steps import MatrixCondition, Step, always, when

__all__ = [
    "ActionResult",
    "CallableAction",
    "JobRunner",
    "MatrixCondition",
    "RunController",
    "RunPolicy",
    "ShellAction",
    "Step",
    "always",
    "render_command",
    "when",
]

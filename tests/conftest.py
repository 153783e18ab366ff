"""
Shared pytest fixtures for cimatrix tests.

This module provides:
- The ``check x features`` registry and exclusion filter used throughout
- A recording action that captures which steps ran for which job
- Environment isolation for CIMATRIX_* variables
"""

import logging
import sys
import threading
from pathlib import Path

import pytest
import structlog

# Ensure cimatrix package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cimatrix.matrix import DimensionRegistry, ExclusionFilter, JobSpec
from cimatrix.runner.actions import ActionResult


class RecordingAction:
    """Action that records ``(label, job name)`` calls and returns a fixed exit code.

    ``fail_for`` lists job names for which the action returns ``exit_code``
    instead of 0.
    """

    def __init__(self, label: str, calls: list, exit_code: int = 1, fail_for=()):
        self.label = label
        self.calls = calls
        self.exit_code = exit_code
        self.fail_for = set(fail_for)
        self._lock = threading.Lock()

    def run(self, spec: JobSpec, timeout=None) -> ActionResult:
        with self._lock:
            self.calls.append((self.label, spec.name))
        if spec.name in self.fail_for:
            return ActionResult(exit_code=self.exit_code, stderr=f"{self.label} failed")
        return ActionResult(exit_code=0, stdout=f"{self.label} ok")


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep host CIMATRIX_* settings out of tests."""
    for var in (
        "CIMATRIX_FAIL_FAST",
        "CIMATRIX_MAX_PARALLEL",
        "CIMATRIX_LOG_LEVEL",
        "CIMATRIX_LOG_JSON",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers bound to captured streams once a test has finished."""
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def checks_registry() -> DimensionRegistry:
    return DimensionRegistry.from_mapping(
        {"check": ["format", "clippy", "test"], "features": ["all", "default"]}
    )


@pytest.fixture
def checks_exclusions(checks_registry) -> ExclusionFilter:
    return ExclusionFilter(checks_registry, [{"check": "format", "features": "all"}])


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def recording_action(calls):
    def factory(label: str, **kwargs) -> RecordingAction:
        return RecordingAction(label, calls, **kwargs)

    return factory

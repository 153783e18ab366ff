"""Tests for cimatrix.core.errors."""

from __future__ import annotations

import pytest

from cimatrix.core.errors import (
    CimatrixError,
    ConfigurationError,
    ErrorCategory,
    InvalidTransitionError,
    StepFailure,
)


class TestCimatrixError:
    def test_defaults(self):
        err = CimatrixError("boom")
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.context == {}

    def test_category_override(self):
        err = StepFailure("slow", category=ErrorCategory.TIMEOUT)
        assert err.category == ErrorCategory.TIMEOUT

    def test_cause_chained(self):
        cause = ValueError("root")
        err = ConfigurationError("wrapped", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "root"

    def test_with_context(self):
        err = ConfigurationError("bad rule").with_context(rule={"os": "mac"})
        assert err.context == {"rule": {"os": "mac"}}

    def test_to_dict(self):
        err = ConfigurationError("unknown dimension", context={"dimension": "os"})
        assert err.to_dict() == {
            "error_type": "ConfigurationError",
            "message": "unknown dimension",
            "category": "CONFIG",
            "context": {"dimension": "os"},
        }

    def test_repr(self):
        assert repr(ConfigurationError("x")) == "ConfigurationError('x', category=CONFIG)"


class TestSubclasses:
    def test_configuration_error(self):
        assert ConfigurationError("x").category == ErrorCategory.CONFIG
        assert isinstance(ConfigurationError("x"), CimatrixError)

    def test_step_failure_fields(self):
        err = StepFailure("failed", step="clippy", exit_code=101)
        assert err.category == ErrorCategory.PIPELINE
        assert err.step == "clippy"
        assert err.exit_code == 101

    def test_invalid_transition(self):
        err = InvalidTransitionError("PASSED", "RUNNING")
        assert err.message == "Invalid JobStatus transition: PASSED -> RUNNING"
        assert err.category == ErrorCategory.INTERNAL

    def test_catchable_as_base(self):
        with pytest.raises(CimatrixError):
            raise StepFailure("x")

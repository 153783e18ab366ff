"""
Structured error types for cimatrix.

Every error raised by the matrix engine extends :class:`CimatrixError`, which
carries a category and an optional context mapping so that the CLI and the
structured logger can report failures without parsing messages.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                     CimatrixError                         │
        │                 (category, context)                       │
        ├──────────────────────────────────────────────────────────┤
        │  ConfigurationError    StepFailure    InvalidTransition   │
        │  (CONFIG)              (PIPELINE)     (INTERNAL)          │
        └──────────────────────────────────────────────────────────┘

    ``ConfigurationError`` is fatal and raised before any job is generated.
    ``StepFailure`` is local to one job: the job runner converts it into a
    ``FAILED`` job result and the run controller keeps going. A job that is
    never dispatched because of fail-fast is a policy outcome, not an error,
    and is represented by ``JobStatus.SKIPPED``.

Examples:
    >>> err = ConfigurationError("unknown dimension 'os'", context={"rule": {"os": "linux"}})
    >>> err.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> err.to_dict()["error_type"]
    'ConfigurationError'

Tags:
    errors, exceptions, configuration, step-failure, cimatrix
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    CONFIG = "CONFIG"  # Invalid dimensions, rules, predicates, pipeline files
    PIPELINE = "PIPELINE"  # A step's action failed
    TIMEOUT = "TIMEOUT"  # A step exceeded its timeout
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


class CimatrixError(Exception):
    """
    Base exception for all cimatrix errors.

    Subclasses set ``default_category``; callers may override it per
    instance. ``context`` holds free-form metadata (rule, dimension, job
    name) that ends up in structured logs via :meth:`to_dict`.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CimatrixError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ConfigurationError("bad rule").with_context(rule={"os": "mac"})
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.context:
            result["context"] = self.context
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(CimatrixError):
    """
    Invalid pipeline configuration.

    Raised while building the dimension registry, the exclusion filter, the
    step predicates or the run policy. Never raised once jobs are running.
    """

    default_category = ErrorCategory.CONFIG


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class StepFailure(CimatrixError):
    """
    A step's action failed.

    Actions may raise this directly; the job runner also uses it internally
    to describe non-zero exit codes and timeouts.
    """

    default_category = ErrorCategory.PIPELINE

    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        exit_code: int | None = None,
        **kwargs: Any,
    ):
        self.step = step
        self.exit_code = exit_code
        super().__init__(message, **kwargs)


class InvalidTransitionError(CimatrixError):
    """Raised when a job is moved out of a state that does not allow it.

    Transition validation is strict. A terminal state (PASSED, FAILED,
    SKIPPED) never changes again.
    """

    default_category = ErrorCategory.INTERNAL

    def __init__(self, current: str, target: str, enum_name: str = "JobStatus") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current} -> {target}")


__all__ = [
    "CimatrixError",
    "ConfigurationError",
    "ErrorCategory",
    "InvalidTransitionError",
    "StepFailure",
]

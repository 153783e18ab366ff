"""Core primitives shared by every cimatrix module: errors and logging."""

from cimatrix.core.errors import (
    CimatrixError,
    ConfigurationError,
    ErrorCategory,
    InvalidTransitionError,
    StepFailure,
)
from cimatrix.core.logging import LogContext, configure_logging, get_logger

__all__ = [
    "CimatrixError",
    "ConfigurationError",
    "ErrorCategory",
    "InvalidTransitionError",
    "LogContext",
    "StepFailure",
    "configure_logging",
    "get_logger",
]

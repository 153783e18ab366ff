"""Built-in pipelines.

Two pipelines ship with cimatrix, both expressed as plain configuration
data and built through :class:`~cimatrix.config.PipelineSpec` so they follow
exactly the same validation path as user YAML:

``checks``
    Build verification matrix over ``check`` x ``features``. The
    ``format x all`` combination is excluded because formatting does not
    depend on feature flags. Fail-fast is off: every combination reports
    independently.

``authors``
    Repository hygiene (author list, copyright headers, merge-conflict
    markers) delegated to ``./ci/pull_request_checks.sh``. It has no
    dimensions, so it expands to a single job, and it runs as its own
    invocation with its own exit code.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from cimatrix.config import PipelineSpec
from cimatrix.core.errors import ConfigurationError
from cimatrix.pipeline import Pipeline

CHECKOUT = {"name": "Checkout", "run": "git submodule update --init --recursive"}

CHECKS: dict[str, Any] = {
    "name": "checks",
    "description": "Formatting, lint and tests over feature-flag sets",
    "env": {"CARGO_TERM_COLOR": "always", "RUST_BACKTRACE": "1"},
    "matrix": {
        "dimensions": {
            "check": ["format", "clippy", "test"],
            "features": ["all", "default"],
        },
        # format+all is the same job as format+default
        "exclude": [{"check": "format", "features": "all"}],
    },
    "policy": {"fail_fast": False},
    "steps": [
        CHECKOUT,
        {
            "name": "Install latest rust toolchain",
            "run": "rustup toolchain install stable --profile minimal --component clippy,rustfmt",
        },
        {
            "name": "Rust cache",
            "run": "cargo fetch",
        },
        {
            "name": "Cargo fmt (check)",
            "if": {"check": "format"},
            "run": "cargo fmt --all -- --check",
        },
        {
            "name": "Clippy with all features",
            "if": {"check": "clippy", "features": "all"},
            "run": "cargo clippy --release --all-targets --all-features --tests --all -- -D warnings",
        },
        {
            "name": "Clippy with default features",
            "if": {"check": "clippy", "features": "default"},
            "run": "cargo clippy --release --all-targets --tests --all -- -D warnings",
        },
        {
            "name": "Tests with all features",
            "if": {"check": "test", "features": "all"},
            "run": "cargo test --release --all --no-fail-fast --all-features",
        },
        {
            "name": "Tests with default features",
            "if": {"check": "test", "features": "default"},
            "run": "cargo test --release --all --no-fail-fast",
        },
    ],
}

AUTHORS: dict[str, Any] = {
    "name": "authors",
    "description": "Author list, copyright notice and merge-conflict checks",
    "steps": [
        # no submodules: the hygiene script only reads top-level files
        {"name": "Checkout the source", "run": "git checkout --no-recurse-submodules HEAD"},
        {"name": "Check AUTHORS file", "run": "./ci/pull_request_checks.sh"},
    ],
}


def pull_request_checks() -> Pipeline:
    return PipelineSpec.from_dict(CHECKS).build()


def authors_check() -> Pipeline:
    return PipelineSpec.from_dict(AUTHORS).build()


PRESETS: dict[str, Callable[[], Pipeline]] = {
    "checks": pull_request_checks,
    "authors": authors_check,
}

DESCRIPTIONS: dict[str, str] = {
    "checks": CHECKS["description"],
    "authors": AUTHORS["description"],
}


def get_preset(name: str) -> Pipeline:
    """Build a built-in pipeline by name.

    Raises
    ------
    ConfigurationError
        If no preset has that name.
    """
    try:
        factory = PRESETS[name]
    except KeyError:
        available = ", ".join(sorted(PRESETS))
        raise ConfigurationError(
            f"Unknown preset '{name}'. Available: {available}",
            context={"preset": name},
        ) from None
    return factory()

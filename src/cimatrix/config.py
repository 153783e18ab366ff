"""Pydantic models for pipeline YAML definitions.

Parses and validates declarative pipeline files into
:class:`~cimatrix.pipeline.Pipeline` value objects.

Usage::

    from cimatrix.config import PipelineSpec

    spec = PipelineSpec.from_yaml_file("ci/checks.yaml")
    pipeline = spec.build()

Example YAML::

    name: checks
    env:
      RUST_BACKTRACE: "1"
    matrix:
      dimensions:
        check: [format, clippy, test]
        features: [all, default]
      exclude:
        - check: format
          features: all
    policy:
      fail_fast: false
      max_parallel: 4
    steps:
      - name: Checkout
        run: git submodule update --init --recursive
      - name: Clippy with all features
        if: {check: clippy, features: all}
        run: cargo clippy --all-features -- -D warnings

Validation happens in two layers: pydantic checks the document shape
(unknown keys are rejected), then :meth:`PipelineSpec.build` checks every
exclusion rule, step condition and ``${{ matrix.* }}`` token against the
declared dimensions. Both layers report :class:`ConfigurationError`.

Tags:
    config, yaml, pydantic, pipeline, declarative
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cimatrix.core.errors import ConfigurationError
from cimatrix.matrix.dimensions import DimensionRegistry
from cimatrix.matrix.exclusions import ExclusionFilter
from cimatrix.pipeline import Pipeline
from cimatrix.runner.actions import ShellAction
from cimatrix.runner.controller import RunPolicy
from cimatrix.runner.steps import Step, always, condition_from_mapping

_MODEL_CONFIG = ConfigDict(extra="forbid", populate_by_name=True, coerce_numbers_to_str=True)


class MatrixSpec(BaseModel):
    """``matrix:`` section: ordered dimensions plus exclusion rules."""

    model_config = _MODEL_CONFIG

    dimensions: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Dimension name -> ordered values; declaration order drives job order",
    )
    exclude: list[dict[str, str]] = Field(
        default_factory=list,
        description="Partial assignments removed from the product",
    )


class PolicySpec(BaseModel):
    """``policy:`` section."""

    model_config = _MODEL_CONFIG

    fail_fast: bool = Field(default=True, description="Stop dispatching after the first failure")
    max_parallel: int | None = Field(
        default=None, ge=1, description="Concurrent jobs (default: all at once)"
    )


class StepSpec(BaseModel):
    """One entry of ``steps:``."""

    model_config = _MODEL_CONFIG

    name: str = Field(..., min_length=1)
    run: str = Field(..., min_length=1, description="Shell command line")
    if_: dict[str, str | list[str]] | None = Field(
        default=None,
        alias="if",
        description="Dimension -> accepted value(s); all must hold",
    )
    env: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: float | None = Field(default=None, gt=0)
    working_directory: str | None = None


class PipelineSpec(BaseModel):
    """A complete pipeline document."""

    model_config = _MODEL_CONFIG

    name: str = Field(..., min_length=1)
    description: str = ""
    env: dict[str, str] = Field(default_factory=dict)
    working_directory: str | None = None
    matrix: MatrixSpec = Field(default_factory=MatrixSpec)
    policy: PolicySpec = Field(default_factory=PolicySpec)
    steps: list[StepSpec] = Field(..., min_length=1)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Any) -> PipelineSpec:
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Pipeline definition must be a mapping, got {type(data).__name__}"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid pipeline definition: {e}",
                context={"errors": e.errors(include_url=False)},
                cause=e,
            ) from e

    @classmethod
    def from_yaml(cls, yaml_content: str) -> PipelineSpec:
        """Parse and validate YAML content.

        Raises
        ------
        ConfigurationError
            If YAML is invalid or doesn't match the schema.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", cause=e) from e
        return cls.from_dict(data)

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> PipelineSpec:
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read pipeline file {path}: {e}", context={"path": str(path)}, cause=e
            ) from e
        return cls.from_yaml(content)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def build(self) -> Pipeline:
        """Validate against the declared dimensions and build the pipeline."""
        registry = DimensionRegistry.from_mapping(self.matrix.dimensions)
        exclusions = ExclusionFilter(registry, self.matrix.exclude)

        steps = []
        for step in self.steps:
            action = ShellAction(
                command=step.run,
                env={**self.env, **step.env},
                cwd=step.working_directory or self.working_directory,
            )
            predicate = condition_from_mapping(step.if_) if step.if_ else always
            steps.append(
                Step(
                    label=step.name,
                    action=action,
                    predicate=predicate,
                    timeout_seconds=step.timeout_seconds,
                )
            )

        return Pipeline(
            name=self.name,
            description=self.description,
            registry=registry,
            exclusions=exclusions,
            steps=tuple(steps),
            policy=RunPolicy(
                fail_fast=self.policy.fail_fast,
                max_parallel=self.policy.max_parallel,
            ),
        )


def load_pipeline(path: str | Path) -> Pipeline:
    """Load, validate and build a pipeline from a YAML file."""
    return PipelineSpec.from_yaml_file(path).build()

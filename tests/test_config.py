"""Tests for YAML pipeline definitions."""

from __future__ import annotations

import pytest

from cimatrix.config import PipelineSpec, load_pipeline
from cimatrix.core.errors import ConfigurationError
from cimatrix.matrix.job_spec import JobSpec
from cimatrix.runner.actions import ShellAction
from cimatrix.runner.steps import when

PIPELINE_YAML = """\
name: checks
description: PR checks
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
  max_parallel: 2
steps:
  - name: Checkout
    run: git submodule update --init --recursive
  - name: Clippy with all features
    if: {check: clippy, features: all}
    run: cargo clippy --all-features
    env:
      CARGO_TERM_COLOR: always
    timeout_seconds: 600
  - name: Tests
    if:
      check: test
      features: [all, default]
    run: cargo test --features=${{ matrix.features }}
"""


class TestPipelineSpecParsing:
    def test_from_yaml(self):
        spec = PipelineSpec.from_yaml(PIPELINE_YAML)
        assert spec.name == "checks"
        assert spec.matrix.dimensions == {
            "check": ["format", "clippy", "test"],
            "features": ["all", "default"],
        }
        assert spec.matrix.exclude == [{"check": "format", "features": "all"}]
        assert spec.policy.max_parallel == 2
        assert spec.steps[1].if_ == {"check": "clippy", "features": "all"}

    def test_numeric_values_become_strings(self):
        spec = PipelineSpec.from_yaml(
            "name: py\n"
            "matrix:\n  dimensions:\n    python: [3.11, 3.12]\n"
            "steps:\n  - {name: t, run: 'true'}\n"
        )
        assert spec.matrix.dimensions["python"] == ["3.11", "3.12"]

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="Invalid pipeline definition"):
            PipelineSpec.from_yaml("name: x\nstep: []\nsteps:\n  - {name: a, run: b}\n")

    def test_steps_required(self):
        with pytest.raises(ConfigurationError):
            PipelineSpec.from_yaml("name: x\nsteps: []\n")

    def test_invalid_yaml(self):
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            PipelineSpec.from_yaml("name: [unclosed\n")

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            PipelineSpec.from_yaml("- a\n- b\n")

    def test_max_parallel_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            PipelineSpec.from_yaml(
                "name: x\npolicy: {max_parallel: 0}\nsteps:\n  - {name: a, run: b}\n"
            )

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read pipeline file"):
            PipelineSpec.from_yaml_file(tmp_path / "missing.yaml")


class TestPipelineSpecBuild:
    def test_build(self):
        pipeline = PipelineSpec.from_yaml(PIPELINE_YAML).build()

        assert pipeline.name == "checks"
        assert pipeline.registry.names == ("check", "features")
        assert len(pipeline.jobs()) == 5
        assert pipeline.policy.fail_fast is False
        assert pipeline.policy.max_parallel == 2

    def test_steps_carry_conditions_env_and_timeout(self):
        pipeline = PipelineSpec.from_yaml(PIPELINE_YAML).build()
        checkout, clippy, tests = pipeline.steps

        assert checkout.unconditional
        assert clippy.predicate == when(check="clippy", features="all")
        assert clippy.timeout_seconds == 600
        assert clippy.action == ShellAction(
            "cargo clippy --all-features",
            env={"RUST_BACKTRACE": "1", "CARGO_TERM_COLOR": "always"},
        )
        assert tests.applies_to(JobSpec.of(check="test", features="default"))

    def test_invalid_exclusion_rejected(self):
        spec = PipelineSpec.from_dict(
            {
                "name": "x",
                "matrix": {"dimensions": {"check": ["test"]}, "exclude": [{"os": "mac"}]},
                "steps": [{"name": "a", "run": "true"}],
            }
        )
        with pytest.raises(ConfigurationError, match="unknown dimension 'os'"):
            spec.build()

    def test_invalid_condition_rejected(self):
        spec = PipelineSpec.from_dict(
            {
                "name": "x",
                "matrix": {"dimensions": {"check": ["test"]}},
                "steps": [{"name": "a", "if": {"check": "bench"}, "run": "true"}],
            }
        )
        with pytest.raises(ConfigurationError, match="Step 'a' condition"):
            spec.build()

    def test_unknown_matrix_token_rejected(self):
        spec = PipelineSpec.from_dict(
            {"name": "x", "steps": [{"name": "a", "run": "echo ${{ matrix.os }}"}]}
        )
        with pytest.raises(ConfigurationError, match="unknown dimension 'os'"):
            spec.build()

    def test_no_matrix_is_single_job(self):
        spec = PipelineSpec.from_dict({"name": "authors", "steps": [{"name": "a", "run": "true"}]})
        pipeline = spec.build()
        assert pipeline.jobs() == [JobSpec()]

    def test_load_pipeline(self, tmp_path):
        path = tmp_path / "checks.yaml"
        path.write_text(PIPELINE_YAML)
        assert load_pipeline(path).name == "checks"

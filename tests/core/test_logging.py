"""Tests for cimatrix.core.logging."""

from __future__ import annotations

import json

import pytest
import structlog

from cimatrix.core.errors import ConfigurationError

from cimatrix.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestConfigureLogging:
    def test_json_output_uses_ecs_fields(self, capsys):
        configure_logging(level="INFO", json_format=True, service="cimatrix-test")
        structlog.get_logger("cimatrix.test").info("job.started", job="check=test")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "job.started"
        assert record["job"] == "check=test"
        assert record["log.level"] == "info"
        assert record["service.name"] == "cimatrix-test"
        assert "@timestamp" in record

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        structlog.get_logger("cimatrix.test").info("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_nothing_on_stdout(self, capsys):
        configure_logging(level="DEBUG", json_format=True)
        structlog.get_logger("cimatrix.test").warning("to.stderr")
        assert capsys.readouterr().out == ""

    def test_unknown_level_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown log level 'verbose'"):
            configure_logging(level="verbose")


class TestContext:
    def teardown_method(self):
        clear_context()

    def test_log_context_binds_and_unbinds(self):
        with LogContext(run_id="r1", job="n=1"):
            ctx = structlog.contextvars.get_contextvars()
            assert ctx["run_id"] == "r1"
            assert ctx["job"] == "n=1"
        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_bind_context(self):
        bind_context(pipeline="checks")
        assert structlog.contextvars.get_contextvars()["pipeline"] == "checks"

    def test_get_logger(self):
        assert get_logger(__name__) is not None

"""
Tests for the logging module.

Tests verify:
- LogContext binds and unbinds contextvars
- JSON output uses ECS-style field names
- Levels below the configured one are dropped
"""

from __future__ import annotations

import json

import structlog

from schemaspine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


class TestContextManagement:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_and_unbind(self):
        bind_context(run_id="abc123", store="sqlite")
        assert structlog.contextvars.get_contextvars() == {"run_id": "abc123", "store": "sqlite"}

        unbind_context("store")
        assert structlog.contextvars.get_contextvars() == {"run_id": "abc123"}

    def test_log_context_is_scoped(self):
        bind_context(request_id="req-1")
        with LogContext(run_id="abc123"):
            assert structlog.contextvars.get_contextvars() == {"request_id": "req-1", "run_id": "abc123"}
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}


class TestConfigureLogging:
    def teardown_method(self):
        clear_context()
        structlog.reset_defaults()

    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_format=True, service="migrator")
        logger = get_logger("tests.logging")

        with LogContext(run_id="abc123"):
            logger.info("migration.applied", migration="003")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "migration.applied"
        assert event["migration"] == "003"
        assert event["run_id"] == "abc123"
        assert event["log.level"] == "info"
        assert event["service.name"] == "migrator"
        assert "@timestamp" in event

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("tests.logging.level")

        logger.debug("migration.skipped", migration="001")
        logger.info("migration.run_completed")

        out = capsys.readouterr().out
        assert "migration.skipped" not in out
        assert "migration.run_completed" in out

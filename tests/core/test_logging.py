"""
Tests for the logging module.

Tests verify:
- JSON output carries event, level, logger name and service metadata
- Bound context is merged into every event
- DEBUG logs are suppressed at INFO level
"""

import json
import logging

import pytest
import structlog

from duckspine.core.adapters import Connector
from duckspine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture
def json_logs(caplog):
    caplog.set_level(logging.DEBUG)
    configure_logging(level="INFO", json_format=True, service="duckspine-test")
    clear_context()
    yield caplog
    clear_context()


def _events(caplog) -> list[dict]:
    return [json.loads(record.getMessage()) for record in caplog.records if record.name.startswith("duckspine")]


class TestConfigureLogging:
    def test_json_event_fields(self, json_logs):
        get_logger("duckspine.test").info("session_opened", session_id="s-1")
        (event,) = _events(json_logs)
        assert event["event"] == "session_opened"
        assert event["session_id"] == "s-1"
        assert event["level"] == "info"
        assert event["logger"] == "duckspine.test"
        assert event["service.name"] == "duckspine-test"
        assert "timestamp" in event

    def test_debug_suppressed_at_info(self, json_logs):
        log = get_logger("duckspine.test")
        log.debug("statement_prepared")
        log.warning("release_failed")
        assert [e["event"] for e in _events(json_logs)] == ["release_failed"]

    def test_console_format(self, caplog):
        caplog.set_level(logging.INFO)
        configure_logging(level="INFO", json_format=False)
        get_logger("duckspine.test").info("connector_opened")
        assert "connector_opened" in caplog.records[-1].getMessage()


class TestContextManagement:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_and_unbind(self):
        bind_context(session_id="s-9")
        assert structlog.contextvars.get_contextvars() == {"session_id": "s-9"}
        unbind_context("session_id")
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_scoped(self):
        with LogContext(database=":memory:"):
            assert structlog.contextvars.get_contextvars()["database"] == ":memory:"
        assert "database" not in structlog.contextvars.get_contextvars()

    def test_context_merged_into_events(self, json_logs):
        with LogContext(request="demo"):
            get_logger("duckspine.test").info("transaction_begin")
        (event,) = _events(json_logs)
        assert event["request"] == "demo"

    def test_session_id_bound_while_statement_runs(self, json_logs):
        configure_logging(level="DEBUG", json_format=True)
        with Connector.open() as connector, connector.new_session() as session:
            session.execute("CREATE TABLE t(i INTEGER)")
            session_id = session.session_id
        executed = [e for e in _events(json_logs) if e["event"] == "statement_executed"]
        assert executed[0]["session_id"] == session_id
        assert "session_id" not in structlog.contextvars.get_contextvars()

"""
Unit tests for the log context and formatters.
"""

import json
import logging

from ggetracker.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
    get_logging_health,
    set_log_context,
)


def _record(**extra):
    record = logging.LogRecord("ggetracker.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_context_is_scoped(self):
        with LogContext(request_id="req-1", route="/api/v1/players"):
            assert get_log_context()["request_id"] == "req-1"
            assert get_log_context()["route"] == "/api/v1/players"
        assert get_log_context().get("request_id") is None

    async def test_async_context_generates_request_id(self):
        async with LogContext(server="DE1") as ctx:
            assert len(ctx.context["request_id"]) == 8
            assert get_log_context()["server"] == "DE1"

    def test_set_and_clear(self):
        set_log_context(operation="bump", namespace="DE1")
        assert get_log_context()["operation"] == "bump"
        assert get_log_context()["namespace"] == "DE1"
        clear_log_context()
        assert get_log_context() == {}


class TestContextFilter:
    def test_fills_fields_from_context(self):
        record = _record()
        with LogContext(request_id="req-2", server="FR1"):
            ContextFilter().filter(record)

        assert record.request_id == "req-2"
        assert record.server == "FR1"
        assert record.component == "ggetracker"

    def test_extra_values_win(self):
        record = _record(server="DE1", operation="list_players")
        with LogContext(server="FR1", operation="other"):
            ContextFilter().filter(record)

        assert record.server == "DE1"
        assert record.operation == "list_players"


class TestJSONFormatter:
    def test_formats_context_and_extra(self):
        record = _record(request_id="req-3", server="N/A", key="DE1:1:/players", attempts=2)
        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello"
        assert data["request_id"] == "req-3"
        assert "server" not in data
        assert data["extra"] == {"key": "DE1:1:/players", "attempts": 2}


class TestHealth:
    def test_logging_is_initialized(self):
        health = get_logging_health()
        assert health.initialized
        assert health.queue_max_size == 10_000

"""Tests for the system log formatters.

Tests cover:
- JsonlFormatter line shape and credential redaction
- ConsoleFormatter text selection and error suffix
"""

from __future__ import annotations

import json
import logging

from m365_copilot_mcp.telemetry.system.system_logger import ConsoleFormatter
from m365_copilot_mcp.utils.logging.jsonl_formatter import REDACTED, JsonlFormatter


def _record(msg: object, level: int = logging.WARNING) -> logging.LogRecord:
    return logging.LogRecord("test", level, __file__, 1, msg, None, None)


class TestFormatters:
    """Tests for JsonlFormatter and ConsoleFormatter."""

    def test_jsonl_emits_one_object_per_record(self) -> None:
        line = JsonlFormatter().format(_record({"event": "logout_completed", "removed": 2}))

        entry = json.loads(line)
        assert entry["level"] == "WARNING"
        assert entry["event"] == "logout_completed"
        assert entry["removed"] == 2
        assert entry["logger"] == "test"
        assert entry["time"].endswith("Z")

    def test_jsonl_wraps_plain_message(self) -> None:
        entry = json.loads(JsonlFormatter().format(_record("plain")))

        assert entry["message"] == "plain"

    def test_console_prefers_message_then_event(self) -> None:
        formatter = ConsoleFormatter()

        assert formatter.format(_record({"event": "e", "message": "Readable"})) == "WARNING: Readable"
        assert formatter.format(_record({"event": "token_acquired"}, logging.INFO)) == "INFO: token_acquired"
        assert formatter.format(_record("text")) == "WARNING: text"

    def test_jsonl_redacts_credentials(self) -> None:
        """Given token-bearing fields, the file line never contains the token."""
        message = {"event": "debug", "token": "eyJ.secret", "request": {"Authorization": "Bearer abc"}}

        line = JsonlFormatter().format(_record(message))

        entry = json.loads(line)
        assert entry["token"] == REDACTED
        assert entry["request"]["Authorization"] == REDACTED
        assert "secret" not in line

    def test_console_appends_error(self) -> None:
        record = _record({"event": "tool_failed", "message": "search failed", "error": "HTTP 403"})

        assert ConsoleFormatter().format(record) == "WARNING: search failed (HTTP 403)"

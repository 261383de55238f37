"""JSONL log formatting for the system log file.

One JSON object per line: UTC timestamp, level, logger name, then the fields
of the structured (dict) message. Values under credential-bearing keys are
replaced before anything reaches disk.
"""

from __future__ import annotations

__all__ = ["REDACTED", "JsonlFormatter"]

import json
import logging
from datetime import datetime, timezone
from typing import Any

REDACTED = "<redacted>"

_SECRET_KEYS = frozenset(
    {"access_token", "authorization", "id_token", "refresh_token", "token"}
)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in _SECRET_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


class JsonlFormatter(logging.Formatter):
    """Formats records as JSON lines with millisecond UTC timestamps.

    Example line:
        {"time": "2026-03-04T10:48:37.123Z", "level": "WARNING",
         "logger": "m365-copilot-mcp.system", "event": "graph_request_failed", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        time = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )
        fields = record.msg if isinstance(record.msg, dict) else {"message": record.getMessage()}

        entry: dict[str, Any] = {
            "time": time,
            "level": record.levelname,
            "logger": record.name,
            **_redact(fields),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)

"""System logger for operational events.

One process-wide logger records authentication progress, flow fallbacks,
Graph failures and logout cleanup as dict messages with an "event" key.

Destinations:
- stderr: human-readable lines at the configured console level (INFO by
  default). stdout belongs to the MCP stdio transport and is never used.
- Optional JSONL file (M365_COPILOT_LOG_FILE): WARNING and above only,
  attached once the server config is known.
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
    "set_console_level",
]

import logging
import sys
from pathlib import Path

from m365_copilot_mcp.constants import APP_NAME
from m365_copilot_mcp.utils.file_helpers import ensure_private_dir
from m365_copilot_mcp.utils.logging.jsonl_formatter import JsonlFormatter


class ConsoleFormatter(logging.Formatter):
    """Renders structured messages as "LEVEL: text" for stderr.

    The text is the message field, or the event name when there is none.
    An error field is appended in parentheses so the cause is visible
    without the log file.
    """

    def format(self, record: logging.LogRecord) -> str:
        if not isinstance(record.msg, dict):
            return f"{record.levelname}: {record.getMessage()}"

        text = record.msg.get("message") or record.msg.get("event", "")
        error = record.msg.get("error")
        if error and str(error) not in text:
            text = f"{text} ({error})"
        return f"{record.levelname}: {text}"


_system_logger: logging.Logger | None = None
_console_handler: logging.Handler | None = None
_file_handler: logging.Handler | None = None


def get_system_logger() -> logging.Logger:
    """Return the system logger, creating it with its stderr handler on first use.

    The logger itself passes everything; handler levels decide what is shown.

    Example:
        >>> get_system_logger().warning(
        ...     {"event": "account_record_malformed", "message": "Ignoring unreadable account record"}
        ... )
    """
    global _system_logger, _console_handler

    if _system_logger is not None:
        return _system_logger

    logger = logging.getLogger(f"{APP_NAME}.system")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(logging.INFO)
    _console_handler.setFormatter(ConsoleFormatter())
    logger.addHandler(_console_handler)

    _system_logger = logger
    return logger


def set_console_level(level: str) -> None:
    """Set the stderr threshold (DEBUG, INFO, WARNING, ERROR or CRITICAL)."""
    get_system_logger()
    assert _console_handler is not None
    _console_handler.setLevel(level.upper())


def configure_system_logger_file(log_path: Path) -> None:
    """Also write WARNING and above to log_path as JSON lines.

    Only the first call attaches a handler. The parent directory is created
    owner-only when missing.

    Raises:
        OSError: If the log file cannot be opened.
    """
    global _file_handler

    if _file_handler is not None:
        return

    ensure_private_dir(log_path.parent)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setLevel(logging.WARNING)
    handler.setFormatter(JsonlFormatter())
    get_system_logger().addHandler(handler)
    _file_handler = handler

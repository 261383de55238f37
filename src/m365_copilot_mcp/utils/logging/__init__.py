"""Logging utilities.

- jsonl_formatter: JSONL formatting with credential redaction for log files
"""

__all__: list[str] = []

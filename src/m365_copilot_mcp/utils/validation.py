"""Tool parameter validation.

Each helper reads one parameter from the arguments mapping, checks it and
returns the normalized value, raising ValidationError naming the field.
"""

from __future__ import annotations

__all__ = [
    "max_length",
    "optional_string",
    "require_string",
    "require_timezone",
]

from collections.abc import Mapping
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from m365_copilot_mcp.exceptions import ValidationError


def require_string(params: Mapping[str, Any], name: str) -> str:
    """Return params[name] stripped; it must be a non-blank string."""
    value = params.get(name)
    if value is None:
        raise ValidationError(f"Missing required parameter: {name}", field=name)
    if not isinstance(value, str):
        raise ValidationError(
            f"Parameter {name} must be a string, got {type(value).__name__}", field=name
        )
    stripped = value.strip()
    if not stripped:
        raise ValidationError(f"Parameter {name} must not be empty", field=name)
    return stripped


def optional_string(params: Mapping[str, Any], name: str) -> str | None:
    """Like require_string, but None and blank strings yield None."""
    value = params.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(
            f"Parameter {name} must be a string, got {type(value).__name__}", field=name
        )
    return value.strip() or None


def require_timezone(params: Mapping[str, Any], name: str) -> str:
    """Return params[name] if it names an IANA time zone (e.g. "America/New_York")."""
    value = require_string(params, name)
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(
            f"Parameter {name} must be an IANA time zone such as 'America/New_York', got '{value}'",
            field=name,
        ) from e
    return value


def max_length(value: str, name: str, length: int) -> str:
    if len(value) > length:
        raise ValidationError(
            f"Parameter {name} must be at most {length} characters", field=name
        )
    return value

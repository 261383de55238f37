"""Custom exceptions for m365-copilot-mcp.

Every error raised by this package derives from M365CopilotError and carries
a stable machine-readable code:

    - ValidationError: A tool parameter is missing or malformed
    - AuthenticationError: Identity provider round trip failed
    - ConfigurationError: Tenant/client id missing or invalid settings
    - APIError: Graph API returned an error or could not be reached
    - LogoutError: Logout cleanup failed after best-effort attempts

Usage:
    from m365_copilot_mcp.exceptions import AuthenticationError, format_error_response
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "AuthenticationError",
    "ConfigurationError",
    "LogoutError",
    "M365CopilotError",
    "ValidationError",
    "format_error_response",
]

from collections.abc import Sequence
from typing import Any


class M365CopilotError(Exception):
    """Base class for all package errors.

    Attributes:
        code: Stable error code reported to MCP clients.
        details: Optional structured context.
    """

    code: str = "M365_COPILOT_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(M365CopilotError):
    """Raised when a tool parameter fails validation."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if field is not None:
            details = {"field": field, **(details or {})}
        super().__init__(message, details)
        self.field = field


class AuthenticationError(M365CopilotError):
    """Raised when a token cannot be obtained from the identity provider.

    Attributes:
        scopes: Scopes that were requested when the failure happened.
        flow: Name of the login flow that failed (if known).
    """

    code = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        scopes: Sequence[str] | None = None,
        flow: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.scopes = list(scopes) if scopes is not None else None
        self.flow = flow
        context: dict[str, Any] = dict(details or {})
        if self.scopes is not None:
            context["scopes"] = self.scopes
        if flow is not None:
            context["flow"] = flow
        super().__init__(message, context or None)


class ConfigurationError(M365CopilotError):
    """Raised for missing or invalid configuration.

    A deployment defect rather than a runtime fault: never retried.
    """

    code = "CONFIGURATION_ERROR"


class APIError(M365CopilotError):
    """Raised when a Graph API call fails.

    Attributes:
        status_code: HTTP status, or None when the request never got a response.
    """

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class LogoutError(M365CopilotError):
    """Raised when one or more logout cleanup steps failed.

    Raised only after every step has been attempted.

    Attributes:
        failures: Mapping of step name to error message.
    """

    code = "LOGOUT_ERROR"

    def __init__(self, failures: dict[str, str]) -> None:
        steps = ", ".join(sorted(failures))
        super().__init__(f"Logout incomplete, failed steps: {steps}", {"failures": failures})
        self.failures = failures


def format_error_response(error: BaseException) -> dict[str, Any]:
    """Build the JSON error payload returned to MCP clients.

    Args:
        error: Any exception raised while handling a tool call.

    Returns:
        Dict with message, code and (when present) details/statusCode.
    """
    if isinstance(error, M365CopilotError):
        response: dict[str, Any] = {"message": error.message, "code": error.code}
        if error.details:
            response["details"] = error.details
        if isinstance(error, APIError) and error.status_code is not None:
            response["statusCode"] = error.status_code
        return response

    return {"message": str(error) or type(error).__name__, "code": "UNKNOWN_ERROR"}

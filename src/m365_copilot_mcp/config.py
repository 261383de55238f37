"""Application configuration for m365-copilot-mcp.

Settings come from environment variables (the MCP client launches the server
with an env block). Unset or blank variables fall back to defaults: the
built-in multi-tenant client, tenant "common" and the InteractiveBrowser flow.

Example usage:
    auth_config = load_auth_config()
    server_config = load_server_config()
"""

from __future__ import annotations

__all__ = [
    "AuthConfig",
    "FlowKind",
    "ServerConfig",
    "load_auth_config",
    "load_server_config",
]

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from m365_copilot_mcp.constants import (
    ACCOUNT_RECORD_FILENAME,
    DEFAULT_CLIENT_ID,
    DEFAULT_INTERACTIVE_TIMEOUT_SECONDS,
    DEFAULT_TENANT_ID,
    PROTECTED_CONFIG_DIR,
)
from m365_copilot_mcp.exceptions import ConfigurationError

# =============================================================================
# Environment variable names
# =============================================================================

ENV_TENANT_ID = "AZURE_TENANT_ID"
ENV_CLIENT_ID = "AZURE_CLIENT_ID"
ENV_AUTH_METHOD = "AUTH_METHOD"
ENV_AUTH_TIMEOUT = "M365_COPILOT_AUTH_TIMEOUT"
ENV_ALLOW_UNENCRYPTED = "M365_COPILOT_ALLOW_UNENCRYPTED_CACHE"
ENV_ACCOUNT_RECORD = "M365_COPILOT_ACCOUNT_RECORD"
ENV_LOG_LEVEL = "M365_COPILOT_LOG_LEVEL"
ENV_LOG_FILE = "M365_COPILOT_LOG_FILE"
ENV_AUTH_ON_STARTUP = "M365_COPILOT_AUTH_ON_STARTUP"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class FlowKind(str, Enum):
    """Interactive login flow used by the credential provider."""

    INTERACTIVE_BROWSER = "InteractiveBrowser"
    DEVICE_CODE = "DeviceCode"

    @classmethod
    def parse(cls, value: str) -> FlowKind:
        """Parse an AUTH_METHOD value case-insensitively.

        Raises:
            ConfigurationError: If value names no supported flow.
        """
        normalized = value.strip().lower()
        for kind in cls:
            if kind.value.lower() == normalized:
                return kind
        supported = ", ".join(kind.value for kind in cls)
        raise ConfigurationError(
            f"Unsupported {ENV_AUTH_METHOD} '{value}'. Supported methods: {supported}",
            {"variable": ENV_AUTH_METHOD},
        )


def _default_account_record_path() -> Path:
    return Path(PROTECTED_CONFIG_DIR) / ACCOUNT_RECORD_FILENAME


class AuthConfig(BaseModel):
    """Identity provider settings.

    Attributes:
        tenant_id: Entra ID tenant ("common" for any work/school account).
        client_id: Application (client) id of the public client registration.
        auth_method: Login flow to start with.
        interactive_timeout_seconds: How long a browser login waits for the user.
        allow_unencrypted_storage: Permit a plaintext token cache when no OS
            credential store is usable (headless Linux without libsecret).
        account_record_path: Location of the non-secret account record.
    """

    tenant_id: str = DEFAULT_TENANT_ID
    client_id: str = DEFAULT_CLIENT_ID
    auth_method: FlowKind = FlowKind.INTERACTIVE_BROWSER
    interactive_timeout_seconds: int = Field(default=DEFAULT_INTERACTIVE_TIMEOUT_SECONDS, ge=1)
    allow_unencrypted_storage: bool = False
    account_record_path: Path = Field(default_factory=_default_account_record_path)

    def is_configured(self) -> bool:
        """True once both tenant and client id are non-empty."""
        return bool(self.tenant_id.strip()) and bool(self.client_id.strip())


class ServerConfig(BaseModel):
    """Server runtime settings.

    Attributes:
        log_level: Console log level.
        log_file: Optional JSONL file for warnings and errors.
        authenticate_on_startup: Start authenticating in the background at startup.
    """

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Path | None = None
    authenticate_on_startup: bool = True


# =============================================================================
# Loading
# =============================================================================


def _get(env: Mapping[str, str], name: str) -> str | None:
    """Return a stripped env value, treating blank as unset."""
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got '{value}'", {"variable": name})


def load_auth_config(environ: Mapping[str, str] | None = None) -> AuthConfig:
    """Build AuthConfig from environment variables.

    Args:
        environ: Mapping to read instead of os.environ (tests).

    Returns:
        Validated AuthConfig with defaults for unset variables.

    Raises:
        ConfigurationError: If a variable holds an invalid value.
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}

    if (tenant := _get(env, ENV_TENANT_ID)) is not None:
        values["tenant_id"] = tenant
    if (client := _get(env, ENV_CLIENT_ID)) is not None:
        values["client_id"] = client
    if (method := _get(env, ENV_AUTH_METHOD)) is not None:
        values["auth_method"] = FlowKind.parse(method)
    if (timeout := _get(env, ENV_AUTH_TIMEOUT)) is not None:
        values["interactive_timeout_seconds"] = timeout
    if (allow := _get(env, ENV_ALLOW_UNENCRYPTED)) is not None:
        values["allow_unencrypted_storage"] = _parse_bool(ENV_ALLOW_UNENCRYPTED, allow)
    if (record_path := _get(env, ENV_ACCOUNT_RECORD)) is not None:
        values["account_record_path"] = Path(record_path).expanduser()

    try:
        return AuthConfig.model_validate(values)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid authentication configuration: {e}") from e


def load_server_config(environ: Mapping[str, str] | None = None) -> ServerConfig:
    """Build ServerConfig from environment variables.

    Args:
        environ: Mapping to read instead of os.environ (tests).

    Raises:
        ConfigurationError: If a variable holds an invalid value.
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}

    if (level := _get(env, ENV_LOG_LEVEL)) is not None:
        values["log_level"] = level.upper()
    if (log_file := _get(env, ENV_LOG_FILE)) is not None:
        values["log_file"] = Path(log_file).expanduser()
    if (on_startup := _get(env, ENV_AUTH_ON_STARTUP)) is not None:
        values["authenticate_on_startup"] = _parse_bool(ENV_AUTH_ON_STARTUP, on_startup)

    try:
        return ServerConfig.model_validate(values)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid server configuration: {e}") from e

"""OS credential store detection.

azure-identity talks to the platform store (Keychain, DPAPI, libsecret)
through msal-extensions. keyring resolves the same backends, so it is used
here to report which store is in effect and whether one exists at all.
"""

from __future__ import annotations

__all__ = [
    "get_keyring_backend_name",
    "is_keyring_available",
]

import keyring
from keyring.backends.fail import Keyring as FailKeyring
from keyring.errors import KeyringError

from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger


def get_keyring_backend_name() -> str | None:
    """Name of the active keyring backend, or None if resolution failed."""
    try:
        return type(keyring.get_keyring()).__name__
    except KeyringError as e:
        get_system_logger().debug(
            {
                "event": "keyring_unavailable",
                "reason": "keyring_error",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return None


def is_keyring_available() -> bool:
    """Check whether a usable OS credential store backend is present.

    Returns:
        False when keyring fell back to its fail backend (no Keychain,
        Credential Manager or Secret Service reachable).
    """
    try:
        backend = keyring.get_keyring()
    except KeyringError as e:
        get_system_logger().debug(
            {
                "event": "keyring_unavailable",
                "reason": "keyring_error",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return False

    if isinstance(backend, FailKeyring):
        get_system_logger().debug(
            {
                "event": "keyring_unavailable",
                "reason": "fail_backend",
                "message": "Keyring using FailKeyring backend (no usable backend found)",
            }
        )
        return False
    return True

"""Tests for OS credential store detection."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from keyring.backends.fail import Keyring as FailKeyring
from keyring.errors import KeyringError

from m365_copilot_mcp.security.keyring_utils import get_keyring_backend_name, is_keyring_available


class TestIsKeyringAvailable:
    """Tests for is_keyring_available()."""

    def test_fail_backend_is_unavailable(self) -> None:
        with patch("m365_copilot_mcp.security.keyring_utils.keyring.get_keyring", return_value=FailKeyring()):
            assert is_keyring_available() is False

    def test_real_backend_is_available(self) -> None:
        with patch("m365_copilot_mcp.security.keyring_utils.keyring.get_keyring", return_value=MagicMock()):
            assert is_keyring_available() is True

    def test_keyring_error_is_unavailable(self) -> None:
        with patch(
            "m365_copilot_mcp.security.keyring_utils.keyring.get_keyring",
            side_effect=KeyringError("dbus down"),
        ):
            assert is_keyring_available() is False


class TestGetKeyringBackendName:
    """Tests for get_keyring_backend_name()."""

    def test_returns_class_name(self) -> None:
        with patch("m365_copilot_mcp.security.keyring_utils.keyring.get_keyring", return_value=FailKeyring()):
            assert get_keyring_backend_name() == "Keyring"

    def test_error_returns_none(self) -> None:
        with patch(
            "m365_copilot_mcp.security.keyring_utils.keyring.get_keyring",
            side_effect=KeyringError("dbus down"),
        ):
            assert get_keyring_backend_name() is None

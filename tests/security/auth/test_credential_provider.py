"""Tests for the credential provider.

Tests cover:
- Browser -> device code fallback on headless errors (exactly one retry)
- No fallback for ordinary failures
- Best-effort authenticate() result
- Headless error classification
- Credential construction and device code prompt output
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import CredentialUnavailableError

from m365_copilot_mcp.config import AuthConfig, FlowKind
from m365_copilot_mcp.constants import REQUIRED_SCOPES, TOKEN_CACHE_NAME
from m365_copilot_mcp.exceptions import AuthenticationError, ConfigurationError
from m365_copilot_mcp.security.auth.account_record import AccountRecord
from m365_copilot_mcp.security.auth.credential_provider import (
    CredentialProvider,
    build_credential,
    is_headless_error,
    print_device_code_prompt,
)


@pytest.fixture
def provider(auth_config, credential_factory) -> CredentialProvider:
    return CredentialProvider(auth_config, credential_factory=credential_factory)


# ============================================================================
# Token acquisition and fallback
# ============================================================================


class TestGetToken:
    """Tests for get_token() and the headless fallback."""

    def test_returns_token_and_expiry(self, provider, credential_factory, clock) -> None:
        credential_factory.queue(FlowKind.INTERACTIVE_BROWSER, AccessToken("T1", int(clock.now) + 3600))

        result = provider.get_token(REQUIRED_SCOPES)

        assert result.token == "T1"
        assert result.expires_on == int(clock.now) + 3600
        assert credential_factory.calls == [(FlowKind.INTERACTIVE_BROWSER, REQUIRED_SCOPES)]

    def test_headless_failure_falls_back_to_device_code(self, provider, credential_factory, clock) -> None:
        """Given the browser cannot open, one device code attempt returns its token."""
        # Arrange
        credential_factory.queue(
            FlowKind.INTERACTIVE_BROWSER, CredentialUnavailableError("Failed to open a browser")
        )
        credential_factory.queue(FlowKind.DEVICE_CODE, AccessToken("DC1", int(clock.now) + 3600))

        # Act
        result = provider.get_token(REQUIRED_SCOPES)

        # Assert
        assert result.token == "DC1"
        assert provider.flow is FlowKind.DEVICE_CODE
        assert [flow for flow, _ in credential_factory.built] == [
            FlowKind.INTERACTIVE_BROWSER,
            FlowKind.DEVICE_CODE,
        ]

    def test_fallback_failure_reports_both_errors_and_stops(self, provider, credential_factory) -> None:
        """Given both flows fail, AuthenticationError carries both messages and no third attempt occurs."""
        credential_factory.queue(
            FlowKind.INTERACTIVE_BROWSER, CredentialUnavailableError("Failed to open a browser")
        )
        credential_factory.queue(FlowKind.DEVICE_CODE, ClientAuthenticationError("device code expired"))

        with pytest.raises(AuthenticationError) as exc_info:
            provider.get_token(REQUIRED_SCOPES)

        message = str(exc_info.value)
        assert "Failed to open a browser" in message
        assert "device code expired" in message
        assert exc_info.value.flow == "DeviceCode"
        assert exc_info.value.scopes == list(REQUIRED_SCOPES)
        assert len(credential_factory.calls) == 2

    def test_non_headless_failure_does_not_fall_back(self, provider, credential_factory) -> None:
        """Given the user let the browser login time out, no device code retry happens."""
        credential_factory.queue(
            FlowKind.INTERACTIVE_BROWSER, ClientAuthenticationError("Timed out after waiting 300 seconds")
        )

        with pytest.raises(AuthenticationError, match="InteractiveBrowser authentication failed"):
            provider.get_token(REQUIRED_SCOPES)

        assert len(credential_factory.calls) == 1
        assert provider.flow is FlowKind.INTERACTIVE_BROWSER

    def test_device_code_failure_is_terminal(self, auth_config, credential_factory) -> None:
        """Given DeviceCode configured, a failure is not retried."""
        config = auth_config.model_copy(update={"auth_method": FlowKind.DEVICE_CODE})
        provider = CredentialProvider(config, credential_factory=credential_factory)
        credential_factory.queue(FlowKind.DEVICE_CODE, CredentialUnavailableError("no display"))

        with pytest.raises(AuthenticationError):
            provider.get_token(REQUIRED_SCOPES)

        assert len(credential_factory.calls) == 1

    def test_after_fallback_device_code_is_used_directly(self, provider, credential_factory) -> None:
        """Given a previous fallback, later requests skip the browser."""
        credential_factory.queue(
            FlowKind.INTERACTIVE_BROWSER, CredentialUnavailableError("Failed to open a browser")
        )
        provider.get_token(REQUIRED_SCOPES)

        provider.get_token(REQUIRED_SCOPES)

        assert [flow for flow, _ in credential_factory.calls] == [
            FlowKind.INTERACTIVE_BROWSER,
            FlowKind.DEVICE_CODE,
            FlowKind.DEVICE_CODE,
        ]

    def test_account_record_passed_to_credential(self, auth_config, credential_factory) -> None:
        record = AccountRecord(username="ada@contoso.com", tenant_id="t", authority="login.microsoftonline.com")

        CredentialProvider(auth_config, record, credential_factory=credential_factory)

        assert credential_factory.built == [(FlowKind.INTERACTIVE_BROWSER, record)]

    def test_unconfigured_raises_configuration_error(self, auth_config, credential_factory) -> None:
        config = auth_config.model_copy(update={"tenant_id": ""})

        with pytest.raises(ConfigurationError):
            CredentialProvider(config, credential_factory=credential_factory)

        assert credential_factory.built == []


# ============================================================================
# authenticate()
# ============================================================================


class TestAuthenticate:
    """Tests for the best-effort account record acquisition."""

    def test_returns_record_on_success(self, provider, credential_factory) -> None:
        result = provider.authenticate(REQUIRED_SCOPES)

        assert result.ok
        assert result.error is None
        assert result.record.username == "ada@contoso.com"
        assert provider.account_record == result.record

    def test_failure_is_returned_not_raised(self, provider, credential_factory) -> None:
        """Given authenticate() fails, the error is returned in the result."""
        credential_factory.authenticate_error = ClientAuthenticationError("consent declined")

        result = provider.authenticate(REQUIRED_SCOPES)

        assert not result.ok
        assert isinstance(result.error, ClientAuthenticationError)
        assert provider.account_record is None

    def test_idempotent_when_record_held(self, auth_config, credential_factory) -> None:
        """Given a record is already held, no round trip happens."""
        record = AccountRecord(username="ada@contoso.com", tenant_id="t", authority="login.microsoftonline.com")
        provider = CredentialProvider(auth_config, record, credential_factory=credential_factory)

        result = provider.authenticate(REQUIRED_SCOPES)

        assert result.record == record
        assert credential_factory.authenticate_calls == 0


# ============================================================================
# Helpers
# ============================================================================


class TestIsHeadlessError:
    """Tests for headless error classification."""

    def test_credential_unavailable_is_headless(self) -> None:
        assert is_headless_error(CredentialUnavailableError("anything"))

    @pytest.mark.parametrize(
        "message",
        [
            "Cache encryption is impossible ... because no display is available",
            "No browser available",
            "Running in headless mode",
        ],
    )
    def test_known_messages_are_headless(self, message: str) -> None:
        assert is_headless_error(ClientAuthenticationError(message))

    def test_timeout_is_not_headless(self) -> None:
        assert not is_headless_error(ClientAuthenticationError("Timed out after waiting 300 seconds"))


class TestBuildCredential:
    """Tests for azure-identity credential construction."""

    def test_interactive_browser_uses_persistent_cache(self, auth_config: AuthConfig) -> None:
        with patch(
            "m365_copilot_mcp.security.auth.credential_provider.InteractiveBrowserCredential"
        ) as mock_cls:
            build_credential(FlowKind.INTERACTIVE_BROWSER, auth_config, None, print_device_code_prompt)

        kwargs = mock_cls.call_args.kwargs
        assert kwargs["tenant_id"] == "common"
        assert kwargs["client_id"] == "X"
        assert kwargs["authentication_record"] is None
        assert kwargs["timeout"] == auth_config.interactive_timeout_seconds
        assert kwargs["cache_persistence_options"].name == TOKEN_CACHE_NAME

    def test_device_code_uses_prompt_callback(self, auth_config: AuthConfig) -> None:
        record = AccountRecord(
            username="ada@contoso.com", tenant_id="t", authority="login.microsoftonline.com", client_id="X"
        )
        with patch("m365_copilot_mcp.security.auth.credential_provider.DeviceCodeCredential") as mock_cls:
            build_credential(FlowKind.DEVICE_CODE, auth_config, record, print_device_code_prompt)

        kwargs = mock_cls.call_args.kwargs
        assert kwargs["prompt_callback"] is print_device_code_prompt
        assert kwargs["authentication_record"].username == "ada@contoso.com"


class TestDeviceCodePrompt:
    """Tests for the device code prompt."""

    def test_prompt_goes_to_stderr_only(self, capsys) -> None:
        """Given a device code, instructions appear on stderr and stdout stays clean."""
        print_device_code_prompt(
            "https://microsoft.com/devicelogin",
            "ABCD-1234",
            datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
        )

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "DEVICE CODE AUTHENTICATION" in captured.err
        assert "ABCD-1234" in captured.err
        assert "https://microsoft.com/devicelogin" in captured.err

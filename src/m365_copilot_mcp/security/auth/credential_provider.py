"""Credential provider wrapping the azure-identity interactive flows.

The provider owns one azure-identity credential bound to a FlowKind:

- InteractiveBrowser: loopback redirect listener + system browser
- DeviceCode: user code printed to stderr, completed on another device

Both credentials persist their token cache in the OS credential store under
TOKEN_CACHE_NAME and accept an AuthenticationRecord, in which case they try
silent acquisition from that cache before showing any UI.

When the browser flow fails because the host has no graphical environment,
the provider switches itself to DeviceCode and retries the same request once.
A second failure is terminal and reports both errors.

All methods block (the interactive flows wait on the user). Callers on an
event loop run them in a worker thread.
"""

from __future__ import annotations

__all__ = [
    "AuthenticateResult",
    "CredentialFactory",
    "CredentialProvider",
    "build_credential",
    "is_headless_error",
    "print_device_code_prompt",
]

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import click
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import (
    CredentialUnavailableError,
    DeviceCodeCredential,
    InteractiveBrowserCredential,
    TokenCachePersistenceOptions,
)

from m365_copilot_mcp.config import AuthConfig, FlowKind
from m365_copilot_mcp.constants import HEADLESS_ERROR_INDICATORS, TOKEN_CACHE_NAME
from m365_copilot_mcp.exceptions import AuthenticationError, ConfigurationError
from m365_copilot_mcp.security.auth.account_record import AccountRecord
from m365_copilot_mcp.security.auth.token_cache import CachedToken
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger

PromptCallback = Callable[[str, str, datetime], None]

# Builds the underlying credential for a flow. Injectable for tests.
CredentialFactory = Callable[[FlowKind, AuthConfig, AccountRecord | None, PromptCallback], Any]

# Errors the identity library raises for failed acquisitions. ValueError
# covers an unusable secret store (e.g. libsecret without a display).
_PROVIDER_ERRORS: tuple[type[Exception], ...] = (ClientAuthenticationError, ValueError, OSError)


def print_device_code_prompt(verification_uri: str, user_code: str, expires_on: datetime) -> None:
    """Show device code instructions on stderr.

    stdout carries the MCP protocol stream and must stay clean.
    """
    click.echo("", err=True)
    click.echo("=" * 60, err=True)
    click.echo(click.style("DEVICE CODE AUTHENTICATION", bold=True), err=True)
    click.echo("=" * 60, err=True)
    click.echo(f"  1. Open: {verification_uri}", err=True)
    click.echo(f"  2. Enter code: {click.style(user_code, fg='green', bold=True)}", err=True)
    click.echo(f"  Code expires at {expires_on.astimezone():%H:%M:%S %Z}", err=True)
    click.echo("=" * 60, err=True)
    click.echo("", err=True)


def build_credential(
    flow: FlowKind,
    config: AuthConfig,
    account_record: AccountRecord | None,
    prompt_callback: PromptCallback,
) -> InteractiveBrowserCredential | DeviceCodeCredential:
    """Construct the azure-identity credential for a flow.

    Args:
        flow: Which interactive flow to bind.
        config: Tenant, client id and cache settings.
        account_record: Previously signed-in account, enables silent acquisition.
        prompt_callback: Device code display callback (DeviceCode only).

    Returns:
        Configured credential with persistent token cache.
    """
    persistence = TokenCachePersistenceOptions(
        name=TOKEN_CACHE_NAME,
        allow_unencrypted_storage=config.allow_unencrypted_storage,
    )
    auth_record = account_record.to_authentication_record() if account_record else None

    if flow is FlowKind.INTERACTIVE_BROWSER:
        return InteractiveBrowserCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            authentication_record=auth_record,
            cache_persistence_options=persistence,
            timeout=config.interactive_timeout_seconds,
        )
    return DeviceCodeCredential(
        client_id=config.client_id,
        tenant_id=config.tenant_id,
        prompt_callback=prompt_callback,
        authentication_record=auth_record,
        cache_persistence_options=persistence,
    )


def is_headless_error(exc: BaseException) -> bool:
    """Check whether a browser-flow failure means no graphical environment.

    azure-identity raises CredentialUnavailableError when it cannot open a
    browser or bind the loopback listener. Message matching is the fallback
    for errors that arrive untyped and is sensitive to library wording.
    """
    if isinstance(exc, CredentialUnavailableError):
        return True
    message = str(exc).lower()
    return any(indicator in message for indicator in HEADLESS_ERROR_INDICATORS)


@dataclass(frozen=True)
class AuthenticateResult:
    """Outcome of the best-effort account record acquisition.

    Exactly one of record and error is set.
    """

    record: AccountRecord | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


class CredentialProvider:
    """Obtains bearer tokens using the least interactive flow that works.

    Args:
        config: Identity provider settings.
        account_record: Record from a previous login, if any.
        credential_factory: Builds the underlying credential.
        prompt_callback: Device code display callback.

    Raises:
        ConfigurationError: If tenant or client id is empty.
    """

    def __init__(
        self,
        config: AuthConfig,
        account_record: AccountRecord | None = None,
        *,
        credential_factory: CredentialFactory = build_credential,
        prompt_callback: PromptCallback = print_device_code_prompt,
    ) -> None:
        if not config.is_configured():
            raise ConfigurationError(
                "Tenant id and client id are required. Set AZURE_TENANT_ID and AZURE_CLIENT_ID."
            )
        self._config = config
        self._account_record = account_record
        self._factory = credential_factory
        self._prompt_callback = prompt_callback
        self._flow = config.auth_method
        self._credential = self._build(self._flow)

    @property
    def flow(self) -> FlowKind:
        """Flow currently bound (DeviceCode after a headless fallback)."""
        return self._flow

    @property
    def account_record(self) -> AccountRecord | None:
        return self._account_record

    def _build(self, flow: FlowKind) -> Any:
        return self._factory(flow, self._config, self._account_record, self._prompt_callback)

    def get_token(self, scopes: Sequence[str]) -> CachedToken:
        """Acquire a token, silently if the cache allows, else interactively.

        Args:
            scopes: Scopes to request as one grant.

        Returns:
            Token and its absolute expiry.

        Raises:
            AuthenticationError: If the flow (and any fallback) failed.
        """
        scope_list = list(scopes)
        try:
            access = self._credential.get_token(*scope_list)
        except _PROVIDER_ERRORS as first_error:
            if self._flow is not FlowKind.INTERACTIVE_BROWSER or not is_headless_error(first_error):
                raise AuthenticationError(
                    f"{self._flow.value} authentication failed: {first_error}",
                    scopes=scope_list,
                    flow=self._flow.value,
                ) from first_error
            access = self._fall_back_to_device_code(scope_list, first_error)

        return CachedToken(token=access.token, expires_on=float(access.expires_on))

    def _fall_back_to_device_code(self, scopes: list[str], browser_error: Exception) -> Any:
        get_system_logger().warning(
            {
                "event": "credential_fallback_device_code",
                "message": "Browser login unavailable, falling back to device code flow",
                "error": str(browser_error),
                "error_type": type(browser_error).__name__,
            }
        )
        self._flow = FlowKind.DEVICE_CODE
        self._credential = self._build(FlowKind.DEVICE_CODE)
        try:
            return self._credential.get_token(*scopes)
        except _PROVIDER_ERRORS as device_error:
            raise AuthenticationError(
                f"Interactive browser authentication failed: {browser_error}; "
                f"device code fallback failed: {device_error}",
                scopes=scopes,
                flow=FlowKind.DEVICE_CODE.value,
                details={
                    "browser_error": str(browser_error),
                    "device_code_error": str(device_error),
                },
            ) from device_error

    def authenticate(self, scopes: Sequence[str]) -> AuthenticateResult:
        """Obtain an account record for future silent logins.

        Never raises: failures are returned so the caller can log and move on.
        Returns the held record without a round trip when one exists. Called
        right after get_token() succeeded, the credential answers from its
        in-memory cache without prompting again.
        """
        if self._account_record is not None:
            return AuthenticateResult(record=self._account_record)
        try:
            auth_record = self._credential.authenticate(scopes=list(scopes))
            record = AccountRecord.from_authentication_record(auth_record)
        except Exception as e:
            return AuthenticateResult(error=e)
        self._account_record = record
        return AuthenticateResult(record=record)

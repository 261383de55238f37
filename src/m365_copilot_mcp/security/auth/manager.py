"""Authentication manager.

Single entry point the MCP tools use to obtain Graph access tokens. It ties
together the credential provider, the in-memory token cache, the account
record file and the persisted token cache.

Lifecycle:
    constructed -> initialize() (account record loaded, provider built)
    -> ensure_authentication() (first token acquired, ready = True)
    -> logout() (all state dropped, ready = False)

The provider blocks while the user completes a login, so its calls run in a
worker thread. Token acquisition is serialized per scope set: concurrent
callers that miss the cache share one acquisition instead of each opening
a browser or printing a device code.
"""

from __future__ import annotations

__all__ = ["AuthenticationManager"]

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any

from m365_copilot_mcp.config import AuthConfig, load_auth_config
from m365_copilot_mcp.constants import REQUIRED_SCOPES
from m365_copilot_mcp.exceptions import AuthenticationError, ConfigurationError, LogoutError
from m365_copilot_mcp.security.auth.account_record import AccountRecord, AccountRecordStore
from m365_copilot_mcp.security.auth.credential_provider import (
    CredentialFactory,
    CredentialProvider,
    PromptCallback,
    build_credential,
    print_device_code_prompt,
)
from m365_copilot_mcp.security.auth.secret_store import PersistedTokenCacheStore
from m365_copilot_mcp.security.auth.token_cache import TokenCache, scope_key
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger


class AuthenticationManager:
    """Obtains, caches and invalidates delegated Graph tokens.

    Construct one per process and pass it to whatever needs tokens.

    Args:
        config: Identity settings. Loaded from the environment when omitted.
        account_store: Account record file. Defaults to config.account_record_path.
        secret_store: Persisted token cache to erase on logout.
        credential_factory: Builds azure-identity credentials (tests inject fakes).
        prompt_callback: Device code display callback.
        clock: Epoch-seconds clock for cache freshness checks.
        scopes: Scope set acquired by ensure_authentication().

    Raises:
        ConfigurationError: If config is omitted and the environment is invalid.
    """

    def __init__(
        self,
        config: AuthConfig | None = None,
        *,
        account_store: AccountRecordStore | None = None,
        secret_store: PersistedTokenCacheStore | None = None,
        credential_factory: CredentialFactory = build_credential,
        prompt_callback: PromptCallback = print_device_code_prompt,
        clock: Callable[[], float] = time.time,
        scopes: Sequence[str] = REQUIRED_SCOPES,
    ) -> None:
        self._config = config if config is not None else load_auth_config()
        self._account_store = account_store or AccountRecordStore(self._config.account_record_path)
        self._secret_store = secret_store or PersistedTokenCacheStore()
        self._credential_factory = credential_factory
        self._prompt_callback = prompt_callback
        self._token_cache = TokenCache(clock=clock)
        self._scopes = tuple(scopes)

        self._provider: CredentialProvider | None = None
        self._account_record: AccountRecord | None = None
        self._ready = False

        self._auth_lock = asyncio.Lock()
        self._scope_locks: dict[str, asyncio.Lock] = {}
        # Bumped by logout/reset so in-flight acquisitions don't repopulate state
        self._generation = 0

    # =========================================================================
    # State
    # =========================================================================

    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def ready(self) -> bool:
        """True once ensure_authentication() has succeeded (until logout)."""
        return self._ready

    @property
    def account_record(self) -> AccountRecord | None:
        """Account loaded at initialize() or obtained after the first login."""
        return self._account_record

    def is_configured(self) -> bool:
        return self._config.is_configured()

    def get_status(self) -> dict[str, Any]:
        """Diagnostic snapshot. Never triggers authentication."""
        return {
            "initialized": self._provider is not None,
            "configured": self.is_configured(),
            "credential_flavor": self._provider.flow.value if self._provider else None,
            "cache_size": len(self._token_cache),
        }

    # =========================================================================
    # Authentication
    # =========================================================================

    async def initialize(self) -> CredentialProvider:
        """Load the account record and build the credential provider.

        Re-initializing rebuilds the provider but keeps cached tokens.

        Returns:
            The new provider. Callers keep this reference because a
            concurrent logout clears the manager's own.

        Raises:
            ConfigurationError: If tenant or client id is empty.
        """
        record = await asyncio.to_thread(self._account_store.load)
        if record is not None and record.client_id != self._config.client_id:
            get_system_logger().info(
                {
                    "event": "account_record_ignored",
                    "message": "Stored account belongs to a different client id, signing in again",
                    "record_client_id": record.client_id,
                }
            )
            record = None

        provider = CredentialProvider(
            self._config,
            record,
            credential_factory=self._credential_factory,
            prompt_callback=self._prompt_callback,
        )
        self._account_record = record
        self._provider = provider
        return provider

    async def ensure_authentication(self) -> None:
        """Make sure a valid token exists, logging in if needed.

        The only path that sets ready. Safe to call before every tool call:
        returns immediately once ready.

        Raises:
            ConfigurationError: If tenant or client id is missing.
            AuthenticationError: If no token could be acquired.
        """
        if self._ready:
            return
        if not self.is_configured():
            raise ConfigurationError(
                "Authentication is not configured. Set AZURE_TENANT_ID and AZURE_CLIENT_ID."
            )

        async with self._auth_lock:
            if self._ready:
                return
            generation = self._generation

            provider = await self.initialize()
            await self.get_access_token(self._scopes)
            self._check_generation(generation)
            if self._account_record is None:
                await self._remember_account(provider, generation)
            self._check_generation(generation)
            self._ready = True

        get_system_logger().info(
            {
                "event": "authentication_ready",
                "message": "Authenticated with Microsoft 365",
                "flow": provider.flow.value,
                "username": self._account_record.username if self._account_record else None,
            }
        )

    def _check_generation(self, generation: int) -> None:
        if generation != self._generation:
            raise AuthenticationError(
                "Logged out while authentication was in progress", scopes=self._scopes
            )

    async def _remember_account(self, provider: CredentialProvider, generation: int) -> None:
        """Obtain and persist the account record. Failures are logged only.

        The record is dropped when a logout happened since generation was
        taken, so a finished login cannot recreate a deleted record file.
        """
        result = await asyncio.to_thread(provider.authenticate, self._scopes)
        if generation != self._generation:
            get_system_logger().info(
                {
                    "event": "account_record_discarded",
                    "message": "Logged out during login, not saving account record",
                }
            )
            return
        if not result.ok:
            get_system_logger().warning(
                {
                    "event": "account_record_authenticate_failed",
                    "message": "Could not obtain account record, next restart will prompt again",
                    "error": str(result.error),
                    "error_type": type(result.error).__name__,
                }
            )
            return

        self._account_record = result.record
        try:
            await asyncio.to_thread(self._account_store.save, result.record)
        except OSError as e:
            get_system_logger().warning(
                {
                    "event": "account_record_save_failed",
                    "message": "Could not save account record, next restart will prompt again",
                    "path": str(self._account_store.path),
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return

        if generation != self._generation:
            # Logout's delete may have run before this write landed
            await asyncio.to_thread(self._account_store.delete)
            return

        get_system_logger().info(
            {
                "event": "account_record_saved",
                "path": str(self._account_store.path),
                "username": result.record.username,
            }
        )

    async def get_access_token(self, scopes: Sequence[str]) -> str:
        """Return a fresh bearer token for scopes.

        Served from the cache when the entry is outside the renewal window,
        otherwise acquired through the provider (one acquisition per scope
        set at a time).

        Raises:
            ConfigurationError: If the provider cannot be built.
            AuthenticationError: If acquisition failed.
        """
        key = scope_key(scopes)
        token = self._token_cache.lookup(key)
        if token is not None:
            return token

        lock = self._scope_locks.setdefault(key, asyncio.Lock())
        async with lock:
            token = self._token_cache.lookup(key)
            if token is not None:
                return token

            generation = self._generation
            provider = self._provider or await self.initialize()

            try:
                acquired = await asyncio.to_thread(provider.get_token, list(scopes))
            except AuthenticationError as e:
                self._log_acquisition_failure(e, provider)
                raise
            except Exception as e:
                self._log_acquisition_failure(e, provider)
                raise AuthenticationError(
                    f"Token acquisition failed: {e}", scopes=list(scopes), flow=provider.flow.value
                ) from e

            if generation == self._generation:
                self._token_cache.store(key, acquired.token, acquired.expires_on)

        get_system_logger().info(
            {
                "event": "token_acquired",
                "flow": provider.flow.value,
                "expires_on": acquired.expires_on,
            }
        )
        return acquired.token

    def _log_acquisition_failure(self, error: Exception, provider: CredentialProvider) -> None:
        get_system_logger().error(
            {
                "event": "token_acquisition_failed",
                "message": f"Authentication failed: {error}",
                "flow": provider.flow.value,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )

    # =========================================================================
    # Logout
    # =========================================================================

    async def logout(self) -> None:
        """Forget the signed-in account.

        Drops in-memory state first, then deletes the account record file and
        the persisted token cache. Works without any prior login. Every
        cleanup step is attempted even when an earlier one fails.

        Raises:
            LogoutError: If any file or credential store entry could not be removed.
        """
        self.reset()

        failures: dict[str, str] = {}
        steps = (
            ("account_record", self._account_store.delete),
            ("persisted_token_cache", self._secret_store.delete),
        )
        for step, delete in steps:
            try:
                await asyncio.to_thread(delete)
            except Exception as e:
                failures[step] = str(e)
                get_system_logger().error(
                    {
                        "event": "logout_step_failed",
                        "message": f"Logout could not remove {step}",
                        "step": step,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )

        if failures:
            raise LogoutError(failures)

        get_system_logger().info({"event": "logout_completed", "message": "Logged out"})

    def reset(self) -> None:
        """Return to the freshly constructed state without touching disk.

        Scope locks are kept: a coroutine may still hold one, and a fresh
        lock would let a second acquisition for the same scopes start.
        """
        self._generation += 1
        self._ready = False
        self._token_cache.clear()
        self._provider = None
        self._account_record = None

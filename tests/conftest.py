"""Shared fixtures for m365-copilot-mcp tests.

Provides fake azure-identity credentials, a controllable clock and
file-backed stores under tmp_path so authentication runs without a
browser, a network or the real OS credential store.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import pytest
from azure.core.credentials import AccessToken
from azure.identity import AuthenticationRecord

from m365_copilot_mcp.config import AuthConfig, FlowKind
from m365_copilot_mcp.security.auth.account_record import AccountRecordStore
from m365_copilot_mcp.security.auth.secret_store import PersistedTokenCacheStore

TEST_CLIENT_ID = "X"
TEST_USERNAME = "ada@contoso.com"


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Epoch-seconds clock advanced manually."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCredential:
    """Stands in for InteractiveBrowserCredential / DeviceCodeCredential."""

    def __init__(self, factory: FakeCredentialFactory, flow: FlowKind) -> None:
        self._factory = factory
        self.flow = flow

    def get_token(self, *scopes: str) -> AccessToken:
        self._factory.calls.append((self.flow, scopes))
        if self._factory.delay:
            time.sleep(self._factory.delay)
        queue = self._factory.outcomes[self.flow]
        outcome = queue.pop(0) if queue else self._factory.default_token()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def authenticate(self, scopes: list[str]) -> AuthenticationRecord:
        self._factory.authenticate_calls += 1
        if self._factory.authenticate_delay:
            time.sleep(self._factory.authenticate_delay)
        if self._factory.authenticate_error is not None:
            raise self._factory.authenticate_error
        return AuthenticationRecord(
            tenant_id="72f988bf-0000-0000-0000-000000000000",
            client_id=TEST_CLIENT_ID,
            authority="login.microsoftonline.com",
            home_account_id="uid.72f988bf-0000-0000-0000-000000000000",
            username=TEST_USERNAME,
        )


class FakeCredentialFactory:
    """Credential factory recording every credential build and token request.

    Attributes:
        outcomes: Per-flow queue of AccessToken or Exception results.
        built: (flow, account_record) for every credential constructed.
        calls: (flow, scopes) for every get_token call.
        authenticate_calls: Number of authenticate() round trips.
        authenticate_error: Raised by authenticate() when set.
        delay: Seconds each get_token blocks (simulates a login).
        authenticate_delay: Seconds each authenticate() blocks.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.outcomes: dict[FlowKind, list[Any]] = {kind: [] for kind in FlowKind}
        self.built: list[tuple[FlowKind, Any]] = []
        self.calls: list[tuple[FlowKind, tuple[str, ...]]] = []
        self.authenticate_calls = 0
        self.authenticate_error: Exception | None = None
        self.delay = 0.0
        self.authenticate_delay = 0.0

    def default_token(self) -> AccessToken:
        return AccessToken(f"token-{len(self.calls)}", int(self.clock.now) + 3600)

    def queue(self, flow: FlowKind, *outcomes: Any) -> None:
        self.outcomes[flow].extend(outcomes)

    def __call__(self, flow: FlowKind, config: AuthConfig, account_record: Any, prompt: Any) -> FakeCredential:
        self.built.append((flow, account_record))
        return FakeCredential(self, flow)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential_factory(clock: FakeClock) -> FakeCredentialFactory:
    return FakeCredentialFactory(clock)


@pytest.fixture
def record_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "account_record.json"


@pytest.fixture
def auth_config(record_path: Path) -> AuthConfig:
    """Config with tenant 'common' and client id 'X'."""
    return AuthConfig(tenant_id="common", client_id=TEST_CLIENT_ID, account_record_path=record_path)


@pytest.fixture
def account_store(record_path: Path) -> AccountRecordStore:
    return AccountRecordStore(record_path)


@pytest.fixture
def secret_store(tmp_path: Path) -> PersistedTokenCacheStore:
    """File-only persisted cache (Windows layout) under tmp_path."""
    return PersistedTokenCacheStore(base_dir=tmp_path / ".IdentityService", platform="win32")


@pytest.fixture
def manager_factory(
    auth_config: AuthConfig,
    account_store: AccountRecordStore,
    secret_store: PersistedTokenCacheStore,
    credential_factory: FakeCredentialFactory,
    clock: FakeClock,
):
    """Build AuthenticationManager instances wired to the fakes."""
    from m365_copilot_mcp.security.auth.manager import AuthenticationManager

    def build(config: AuthConfig | None = None, **overrides: Any) -> AuthenticationManager:
        kwargs: dict[str, Any] = {
            "account_store": account_store,
            "secret_store": secret_store,
            "credential_factory": credential_factory,
            "prompt_callback": lambda uri, code, expires: None,
            "clock": clock,
        }
        kwargs.update(overrides)
        return AuthenticationManager(config or auth_config, **kwargs)

    return build

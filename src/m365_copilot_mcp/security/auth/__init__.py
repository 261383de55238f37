"""Authentication for Microsoft Graph.

This module provides:
- Account record persistence (non-secret "remember me" file)
- In-memory token cache with renewal skew
- Credential provider over azure-identity browser/device code flows
- Persisted token cache deletion
- AuthenticationManager orchestrating the above
"""

from m365_copilot_mcp.security.auth.account_record import (
    AccountRecord,
    AccountRecordStore,
)
from m365_copilot_mcp.security.auth.credential_provider import (
    AuthenticateResult,
    CredentialProvider,
    is_headless_error,
)
from m365_copilot_mcp.security.auth.manager import AuthenticationManager
from m365_copilot_mcp.security.auth.secret_store import (
    PersistedTokenCacheStore,
    get_secret_store_info,
)
from m365_copilot_mcp.security.auth.token_cache import (
    CachedToken,
    TokenCache,
    scope_key,
)

__all__ = [
    # Account record
    "AccountRecord",
    "AccountRecordStore",
    # Credential provider
    "AuthenticateResult",
    "CredentialProvider",
    "is_headless_error",
    # Manager
    "AuthenticationManager",
    # Secret store
    "PersistedTokenCacheStore",
    "get_secret_store_info",
    # Token cache
    "CachedToken",
    "TokenCache",
    "scope_key",
]

"""Persisted token cache in the OS credential store.

azure-identity writes the MSAL token cache (refresh tokens included) through
msal-extensions under a fixed name. This module never reads that blob; it
only checks for it and erases it on logout, using the same platform layout:

- Windows: DPAPI-encrypted file at %LOCALAPPDATA%/.IdentityService/<name>
- macOS: Keychain item, change-signal file at ~/.IdentityService/<name>
- Linux: libsecret item, change-signal file at ~/.IdentityService/<name>
  (plaintext file at the same path when unencrypted storage is allowed)

Each cache exists in two variants, "<name>.nocae" and "<name>.cae".
Erasing overwrites the secret with an empty cache and then removes the file.
On macOS every persisted azure-identity cache shares one Keychain account,
so the overwrite signs out other azure-identity tools of this user as well.
"""

from __future__ import annotations

__all__ = [
    "PersistedTokenCacheStore",
    "get_secret_store_info",
]

import os
import sys
from pathlib import Path
from typing import Any

import msal_extensions

from m365_copilot_mcp.constants import (
    IDENTITY_SERVICE_ACCOUNT,
    IDENTITY_SERVICE_DIR,
    IDENTITY_SERVICE_NAME,
    TOKEN_CACHE_NAME,
)
from m365_copilot_mcp.security.keyring_utils import (
    get_keyring_backend_name,
    is_keyring_available,
)
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger

_CACHE_VARIANTS = (".nocae", ".cae")


class PersistedTokenCacheStore:
    """Existence check and deletion for the persisted token cache.

    Args:
        name: Cache name passed to TokenCachePersistenceOptions.
        base_dir: Directory holding the cache files. Defaults to the
            platform location azure-identity uses.
        platform: Platform string (sys.platform). Injectable for tests.
    """

    def __init__(
        self,
        name: str = TOKEN_CACHE_NAME,
        *,
        base_dir: Path | None = None,
        platform: str = sys.platform,
    ) -> None:
        self._name = name
        self._platform = platform
        self._base_dir = base_dir if base_dir is not None else self._default_base_dir()

    def _default_base_dir(self) -> Path:
        if self._platform.startswith("win") and "LOCALAPPDATA" in os.environ:
            return Path(os.environ["LOCALAPPDATA"]) / IDENTITY_SERVICE_DIR
        return Path.home() / IDENTITY_SERVICE_DIR

    @property
    def name(self) -> str:
        return self._name

    def locations(self) -> list[Path]:
        """Paths of the cache files (or their change-signal files)."""
        return [self._base_dir / f"{self._name}{variant}" for variant in _CACHE_VARIANTS]

    def exists(self) -> bool:
        """True if any variant of the cache is present."""
        return any(path.exists() for path in self.locations())

    def delete(self) -> bool:
        """Erase every variant of the persisted cache.

        Returns:
            True if anything was removed, False if nothing was persisted.

        Raises:
            OSError: If a cache file exists but cannot be removed.
        """
        removed = False
        for path in self.locations():
            if not path.exists():
                continue
            self._erase_secret(path)
            path.unlink(missing_ok=True)
            removed = True
        return removed

    def _erase_secret(self, path: Path) -> None:
        """Overwrite the credential-store half of a cache with an empty cache.

        Windows and plaintext caches live entirely in the file, so there is
        nothing to overwrite beyond it.
        """
        persistence = self._secret_persistence(path)
        if persistence is not None:
            persistence.save("")

    def _secret_persistence(self, path: Path) -> Any:
        cache_name = path.name
        if self._platform.startswith("darwin"):
            return msal_extensions.KeychainPersistence(
                str(path), IDENTITY_SERVICE_NAME, IDENTITY_SERVICE_ACCOUNT
            )
        if self._platform.startswith("linux"):
            try:
                return msal_extensions.LibsecretPersistence(
                    str(path),
                    cache_name,
                    {"MsalClientID": IDENTITY_SERVICE_NAME},
                    label=IDENTITY_SERVICE_ACCOUNT,
                )
            except Exception as e:
                # No usable libsecret: the cache can only have been a plaintext file
                get_system_logger().debug(
                    {
                        "event": "libsecret_unavailable",
                        "path": str(path),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )
                return None
        return None


def get_secret_store_info(store: PersistedTokenCacheStore | None = None) -> dict[str, Any]:
    """Describe the credential store backing the persisted token cache.

    Useful for debugging and status display.

    Returns:
        Dict with backend availability, keyring backend name, cache name and
        whether a persisted cache is present.
    """
    store = store or PersistedTokenCacheStore()
    return {
        "secure_store_available": is_keyring_available(),
        "keyring_backend": get_keyring_backend_name(),
        "cache_name": store.name,
        "persisted_cache_present": store.exists(),
    }

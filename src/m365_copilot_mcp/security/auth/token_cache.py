"""In-memory access token cache.

Maps a canonical scope key to the last token acquired for that scope set.
Entries are checked lazily on read; a token is usable only while
``now + skew < expires_on`` so that a Graph call in flight never sees the
token expire mid-request. Entries are removed only by clear() (logout) or
overwritten by a newer store().
"""

from __future__ import annotations

__all__ = [
    "CachedToken",
    "TokenCache",
    "scope_key",
]

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from m365_copilot_mcp.constants import TOKEN_RENEWAL_SKEW_SECONDS


def scope_key(scopes: Iterable[str]) -> str:
    """Canonical cache key for a scope set (order and duplicates ignored)."""
    return ",".join(sorted(set(scopes)))


@dataclass(frozen=True)
class CachedToken:
    """A bearer token and its absolute expiry (epoch seconds)."""

    token: str
    expires_on: float

    def __repr__(self) -> str:
        return f"CachedToken(token=<redacted>, expires_on={self.expires_on})"


class TokenCache:
    """Process-lifetime token cache keyed by scope set.

    Args:
        skew_seconds: Tokens within this many seconds of expiry are misses.
        clock: Returns current epoch seconds. Injectable for tests.
    """

    def __init__(
        self,
        skew_seconds: float = TOKEN_RENEWAL_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._skew_seconds = skew_seconds
        self._clock = clock
        self._entries: dict[str, CachedToken] = {}

    def lookup(self, key: str) -> str | None:
        """Return the cached token for key if it is still fresh, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() + self._skew_seconds < entry.expires_on:
            return entry.token
        return None

    def store(self, key: str, token: str, expires_on: float) -> None:
        """Record a token for key, replacing any previous entry."""
        self._entries[key] = CachedToken(token=token, expires_on=expires_on)

    def clear(self) -> None:
        """Drop every entry. Does not touch the persisted token cache."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

"""Tests for the in-memory token cache.

Tests cover:
- Freshness boundary around the 5 minute renewal skew
- Overwrite, clear and size
- Scope key canonicalization
"""

from __future__ import annotations

from m365_copilot_mcp.constants import REQUIRED_SCOPES, TOKEN_RENEWAL_SKEW_SECONDS
from m365_copilot_mcp.security.auth.token_cache import CachedToken, TokenCache, scope_key


class TestTokenCacheFreshness:
    """Tests for lookup() hit/miss around the renewal skew."""

    def test_token_expiring_in_four_minutes_is_a_miss(self, clock) -> None:
        """Given a token expiring in 4 minutes, lookup misses."""
        # Arrange
        cache = TokenCache(clock=clock)
        cache.store("k", "T1", clock.now + 4 * 60)

        # Act / Assert
        assert cache.lookup("k") is None

    def test_token_expiring_exactly_at_skew_is_a_miss(self, clock) -> None:
        """Given expiry == now + skew, lookup misses."""
        cache = TokenCache(clock=clock)
        cache.store("k", "T1", clock.now + TOKEN_RENEWAL_SKEW_SECONDS)

        assert cache.lookup("k") is None

    def test_token_just_past_skew_is_a_hit(self, clock) -> None:
        """Given expiry one second beyond the skew, lookup hits."""
        cache = TokenCache(clock=clock)
        cache.store("k", "T1", clock.now + TOKEN_RENEWAL_SKEW_SECONDS + 1)

        assert cache.lookup("k") == "T1"

    def test_entry_becomes_stale_as_clock_advances(self, clock) -> None:
        """Given a 60 minute token, it stops hitting once 56 minutes pass."""
        cache = TokenCache(clock=clock)
        cache.store("k", "T1", clock.now + 3600)
        assert cache.lookup("k") == "T1"

        clock.advance(56 * 60)

        assert cache.lookup("k") is None

    def test_unknown_key_is_a_miss(self, clock) -> None:
        cache = TokenCache(clock=clock)
        assert cache.lookup("missing") is None


class TestTokenCacheMutation:
    """Tests for store(), clear() and len()."""

    def test_store_overwrites_previous_entry(self, clock) -> None:
        """Given two stores for the same key, the last one wins."""
        cache = TokenCache(clock=clock)
        cache.store("k", "T1", clock.now + 3600)
        cache.store("k", "T2", clock.now + 3600)

        assert cache.lookup("k") == "T2"
        assert len(cache) == 1

    def test_clear_drops_all_entries(self, clock) -> None:
        cache = TokenCache(clock=clock)
        cache.store("a", "T1", clock.now + 3600)
        cache.store("b", "T2", clock.now + 3600)

        cache.clear()

        assert len(cache) == 0
        assert cache.lookup("a") is None

    def test_cached_token_repr_hides_token(self) -> None:
        """Given a CachedToken, repr never contains the bearer string."""
        entry = CachedToken(token="secret-bearer", expires_on=1.0)
        assert "secret-bearer" not in repr(entry)


class TestScopeKey:
    """Tests for scope_key canonicalization."""

    def test_order_and_duplicates_ignored(self) -> None:
        assert scope_key(["b", "a", "b"]) == scope_key(["a", "b"]) == "a,b"

    def test_required_scopes_key_is_stable(self) -> None:
        assert scope_key(REQUIRED_SCOPES) == scope_key(reversed(REQUIRED_SCOPES))

"""Tests for the installation credential cache."""

import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from ticket_sync.integrations.cache import CredentialCache


class TestCredentialCacheInit:
    """Test CredentialCache initialization."""

    def test_defaults(self):
        """Test default TTL stays under the one hour token lifetime."""
        cache = CredentialCache()
        assert cache.ttl_seconds == 3000.0
        assert cache.max_entries == 100

    def test_custom_limits(self):
        """Test custom TTL and size."""
        cache = CredentialCache(max_entries=5, ttl_seconds=10)
        assert cache.max_entries == 5
        assert cache.ttl_seconds == 10


class TestCredentialCacheOperations:
    """Test basic cache operations."""

    @pytest.fixture
    def cache(self) -> CredentialCache:
        """Create a cache instance for testing."""
        return CredentialCache(max_entries=3, ttl_seconds=60)

    def test_get_missing(self, cache):
        """Test a miss returns None."""
        assert cache.get("42") is None

    def test_set_and_get(self, cache):
        """Test a stored token is returned."""
        cache.set("42", "tok-a")
        assert cache.get("42") == "tok-a"

    def test_set_replaces(self, cache):
        """Test setting again replaces the token."""
        cache.set("42", "tok-a")
        cache.set("42", "tok-b")
        assert cache.get("42") == "tok-b"

    def test_expiry(self, cache):
        """Test expired tokens are dropped."""
        cache.set("42", "tok-a")
        with patch("time.time", return_value=time.time() + 120):
            assert cache.get("42") is None
        assert cache.stats["entries"] == 0

    def test_issuer_lifetime_shortens_ttl(self, cache):
        """Test a token reported to expire sooner than the TTL is dropped early."""
        cache.set("42", "tok-a", expires_in=10)
        with patch("time.time", return_value=time.time() + 30):
            assert cache.get("42") is None

    def test_issuer_lifetime_never_extends_ttl(self, cache):
        """Test a long issuer lifetime is still bounded by the TTL."""
        cache.set("42", "tok-a", expires_in=7200)
        with patch("time.time", return_value=time.time() + 120):
            assert cache.get("42") is None

    def test_lru_eviction(self, cache):
        """Test the least recently used installation is evicted first."""
        cache.set("1", "a")
        cache.set("2", "b")
        cache.set("3", "c")
        cache.get("1")  # 2 is now least recently used
        cache.set("4", "d")
        assert cache.get("2") is None
        assert cache.get("1") == "a"
        assert cache.get("4") == "d"

    def test_invalidate_one(self, cache):
        """Test invalidating a single installation."""
        cache.set("1", "a")
        cache.set("2", "b")
        assert cache.invalidate("1") == 1
        assert cache.get("1") is None
        assert cache.get("2") == "b"

    def test_invalidate_missing(self, cache):
        """Test invalidating an unknown installation removes nothing."""
        assert cache.invalidate("nope") == 0

    def test_invalidate_all(self, cache):
        """Test invalidating everything."""
        cache.set("1", "a")
        cache.set("2", "b")
        assert cache.invalidate() == 2
        assert cache.stats["entries"] == 0


class TestCredentialCacheStats:
    """Test cache statistics."""

    def test_hit_rate(self):
        """Test hits and misses are counted."""
        cache = CredentialCache()
        cache.set("1", "a")
        cache.get("1")
        cache.get("2")
        stats = cache.stats
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5


class TestCredentialCacheThreadSafety:
    """Test concurrent access."""

    def test_concurrent_set_get(self):
        """Test concurrent writers and readers stay consistent."""
        cache = CredentialCache(max_entries=50)

        def work(i: int) -> None:
            cache.set(str(i % 20), f"tok-{i}")
            cache.get(str(i % 20))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(200)))

        assert cache.stats["entries"] == 20

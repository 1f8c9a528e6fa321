"""Installation credential cache.

Installation tokens are minted by an external issuer and live for about
an hour. The GitHub client keeps the most recently used ones here so
every tracker call does not go back to the issuer. A token is dropped
when its own expiry or the cache TTL passes, whichever comes first, and
the least recently used installation is evicted when the cache is full.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, NamedTuple


class _Token(NamedTuple):
    value: str
    expires_at: float


class CredentialCache:
    """Thread-safe token store keyed by installation reference."""

    def __init__(self, max_entries: int = 100, ttl_seconds: float = 3000.0):
        """Initialize the credential cache.

        Args:
            max_entries: Installations kept before LRU eviction
            ttl_seconds: Upper bound on how long any token is reused
        """
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._tokens: OrderedDict[str, _Token] = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, installation_ref: str) -> str | None:
        """Cached token for an installation, or None if absent or expired."""
        with self._lock:
            token = self._tokens.get(installation_ref)
            if token is not None and token.expires_at <= time.time():
                del self._tokens[installation_ref]
                token = None
            if token is None:
                self._misses += 1
                return None
            self._tokens.move_to_end(installation_ref)
            self._hits += 1
            return token.value

    def set(self, installation_ref: str, token: str, expires_in: float | None = None) -> None:
        """Store a token.

        Args:
            installation_ref: The installation reference
            token: The access token
            expires_in: Issuer-reported lifetime in seconds, if known
        """
        lifetime = self.ttl_seconds if expires_in is None else min(expires_in, self.ttl_seconds)
        with self._lock:
            self._tokens.pop(installation_ref, None)
            while self._tokens and len(self._tokens) >= self.max_entries:
                self._tokens.popitem(last=False)
            self._tokens[installation_ref] = _Token(token, time.time() + lifetime)

    def invalidate(self, installation_ref: str | None = None) -> int:
        """Drop one installation's token, or all of them.

        Returns:
            Number of tokens removed
        """
        with self._lock:
            if installation_ref is not None:
                return 1 if self._tokens.pop(installation_ref, None) else 0
            removed = len(self._tokens)
            self._tokens.clear()
            return removed

    @property
    def stats(self) -> dict[str, Any]:
        """Hit/miss counters and occupancy."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "entries": len(self._tokens),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
                "ttl_seconds": self.ttl_seconds,
            }


__all__ = ["CredentialCache"]

"""Error taxonomy for ticket sync.

Every failure that crosses the sync client boundary is one of these
exceptions, so callers can tell a retryable network hiccup from a ticket
that no longer exists or an integration whose credential has expired.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for ticket sync failures.

    Attributes:
        retryable: Whether re-invoking the same operation may succeed
        imported_count: Records already persisted when an import failed midway
    """

    retryable: bool = False
    kind: str = "error"

    def __init__(self, message: str, imported_count: int | None = None):
        super().__init__(message)
        self.message = message
        self.imported_count = imported_count

    def to_dict(self) -> dict[str, object]:
        """Convert to a dictionary for display or logging."""
        return {
            "kind": self.kind,
            "message": self.message,
            "retryable": self.retryable,
            "imported_count": self.imported_count,
        }


class TransientNetworkError(SyncError):
    """Network or service hiccup; re-invoking the same transition may succeed.

    Attributes:
        retry_after: Seconds the service asked us to wait, when it said so
    """

    retryable = True
    kind = "transient"

    def __init__(
        self,
        message: str,
        imported_count: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, imported_count=imported_count)
        self.retry_after = retry_after


class RateLimitedError(TransientNetworkError):
    """The service refused the request for rate limiting before acting on it.

    Unlike other transient failures this is safe to retry for requests
    that are not idempotent.
    """


class NotFoundError(SyncError):
    """The ticket or issue no longer exists; refresh and retry."""

    kind = "not_found"


class ValidationError(SyncError):
    """Invalid local input, caught before any network call."""

    kind = "validation"


class PermissionDeniedError(SyncError):
    """The installation credential is invalid or expired.

    The external integration has to be re-established; retrying alone
    will not help.
    """

    kind = "permission"


__all__ = [
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitedError",
    "SyncError",
    "TransientNetworkError",
    "ValidationError",
]

"""Retry and throttling policy shared by tracker clients.

A tracker call is attempted up to ``max_retries + 1`` times. Between
attempts the client waits either what the service asked for (a
Retry-After hint on TransientNetworkError) or an exponential backoff
with 10-30% jitter. Outgoing calls are also held to a client-side budget
per rolling minute so a bulk import does not trip the service's own
limiter.
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from typing import Any, TypeVar

import requests

from ..sync_logging import get_logger
from .errors import RateLimitedError, SyncError, TransientNetworkError

logger = get_logger()

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
WINDOW_SECONDS = 60.0


class IntegrationClient(ABC):
    """Tracker client base with retry, backoff and a request budget."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        requests_per_minute: int = 60,
    ):
        """Initialize the retry policy.

        Args:
            max_retries: Retries after the first attempt
            base_delay: First backoff step in seconds
            max_delay: Upper bound for any single wait in seconds
            requests_per_minute: Client-side request budget
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.requests_per_minute = requests_per_minute
        self._sent: deque[float] = deque()

    @property
    @abstractmethod
    def name(self) -> str:
        """Short tracker name used in log messages."""

    def _throttle(self) -> None:
        """Sleep until the rolling window has room for one more request."""
        now = time.time()
        while self._sent and now - self._sent[0] >= WINDOW_SECONDS:
            self._sent.popleft()
        if len(self._sent) < self.requests_per_minute:
            return
        wait = WINDOW_SECONDS - (now - self._sent[0])
        if wait > 0:
            logger.info(f"{self.name}: request budget spent, waiting {wait:.1f}s")
            time.sleep(wait)

    def _mark_sent(self) -> None:
        self._sent.append(time.time())

    def _backoff(self, attempt: int, error: Exception | None = None) -> float:
        """Seconds to wait before the next attempt.

        A server-provided Retry-After wins over the computed backoff; both
        are capped at max_delay.
        """
        hint = getattr(error, "retry_after", None)
        if hint is not None and hint >= 0:
            return min(float(hint), self.max_delay)
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        return delay * (1 + random.uniform(0.1, 0.3))

    def _is_retryable(self, error: Exception) -> bool:
        if isinstance(error, SyncError):
            return error.retryable
        if isinstance(error, (requests.ConnectionError, requests.Timeout)):
            return True
        if isinstance(error, requests.HTTPError) and error.response is not None:
            return error.response.status_code in TRANSIENT_STATUS_CODES
        return False

    def _call_with_retry(
        self,
        operation: Callable[..., T],
        *args: Any,
        idempotent: bool = True,
        **kwargs: Any,
    ) -> T:
        """Run a blocking tracker call under the retry policy.

        A call that is not idempotent is only retried after a rate-limit
        rejection; any other failure may have been applied by the service.

        Raises:
            TransientNetworkError: Network failures that outlived every retry
            SyncError: Non-retryable failures, unchanged
        """
        attempt = 0
        while True:
            self._throttle()
            self._mark_sent()
            try:
                return operation(*args, **kwargs)
            except Exception as e:
                retryable = (
                    self._is_retryable(e) if idempotent else isinstance(e, RateLimitedError)
                )
                if not retryable or attempt >= self.max_retries:
                    if isinstance(e, (requests.ConnectionError, requests.Timeout)):
                        raise TransientNetworkError(f"{self.name} unreachable: {e}") from e
                    raise
                delay = self._backoff(attempt, e)
                attempt += 1
                logger.warning(
                    f"{self.name}: attempt {attempt} failed ({e}), retrying in {delay:.1f}s"
                )
                time.sleep(delay)


__all__ = ["IntegrationClient", "TRANSIENT_STATUS_CODES"]

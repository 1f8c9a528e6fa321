"""Tests for the tracker retry policy."""

import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from ticket_sync.integrations.base import IntegrationClient
from ticket_sync.integrations.errors import (
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    TransientNetworkError,
)


class ConcreteClient(IntegrationClient):
    """Concrete implementation for testing abstract base class."""

    def __init__(self, requests_per_minute: int = 60, max_retries: int = 3):
        super().__init__(max_retries=max_retries, requests_per_minute=requests_per_minute)

    @property
    def name(self) -> str:
        """Return the tracker name."""
        return "test"


def _http_error(status: int) -> requests.HTTPError:
    response = requests.Response()
    response.status_code = status
    return requests.HTTPError(f"{status}", response=response)


class TestDefaults:
    """Test policy defaults."""

    def test_default_retry_settings(self):
        """Test default retry settings."""
        client = ConcreteClient()
        assert client.max_retries == 3
        assert client.base_delay == 1.0
        assert client.max_delay == 30.0
        assert client.requests_per_minute == 60


class TestThrottle:
    """Test the client-side request budget."""

    def test_mark_sent(self):
        """Test each attempt is recorded in the window."""
        client = ConcreteClient()
        client._mark_sent()
        assert len(client._sent) == 1

    def test_old_entries_leave_window(self):
        """Test requests older than a minute no longer count."""
        client = ConcreteClient(requests_per_minute=5)
        client._sent.extend([time.time() - 120] * 10)
        with patch("time.sleep") as mock_sleep:
            client._throttle()
        assert len(client._sent) == 0
        mock_sleep.assert_not_called()

    def test_full_window_waits(self):
        """Test a spent budget sleeps instead of raising."""
        client = ConcreteClient(requests_per_minute=5)
        client._sent.extend([time.time()] * 5)
        with patch("time.sleep") as mock_sleep:
            client._throttle()
        mock_sleep.assert_called_once()
        assert 0 < mock_sleep.call_args[0][0] <= 60


class TestBackoff:
    """Test wait computation."""

    def test_exponential_with_jitter(self):
        """Test exponential backoff with jitter."""
        client = ConcreteClient()
        with patch("random.uniform", return_value=0.2):
            delays = [client._backoff(attempt) for attempt in range(3)]
        assert delays == pytest.approx([1.2, 2.4, 4.8])

    def test_capped(self):
        """Test the backoff is capped at max_delay plus jitter."""
        assert ConcreteClient()._backoff(10) <= 39

    def test_server_hint_wins(self):
        """Test a Retry-After hint replaces the computed backoff."""
        error = TransientNetworkError("slow down", retry_after=5)
        assert ConcreteClient()._backoff(0, error) == 5.0

    def test_server_hint_capped(self):
        """Test an excessive hint is capped at max_delay."""
        error = TransientNetworkError("slow down", retry_after=3600)
        assert ConcreteClient()._backoff(0, error) == 30.0


class TestRetryable:
    """Test which failures are retried."""

    def test_transient_sync_error(self):
        """Test TransientNetworkError is retryable."""
        assert ConcreteClient()._is_retryable(TransientNetworkError("x"))

    @pytest.mark.parametrize("error", [NotFoundError("x"), PermissionDeniedError("x")])
    def test_terminal_sync_errors(self, error):
        """Test not-found and permission failures are not retryable."""
        assert not ConcreteClient()._is_retryable(error)

    def test_network_errors(self):
        """Test connection failures and timeouts are retryable."""
        client = ConcreteClient()
        assert client._is_retryable(requests.ConnectionError("down"))
        assert client._is_retryable(requests.Timeout("slow"))

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient_http_status(self, status):
        """Test throttling and server errors are retryable."""
        assert ConcreteClient()._is_retryable(_http_error(status))

    def test_client_http_status(self):
        """Test 4xx errors other than 429 are not retryable."""
        assert not ConcreteClient()._is_retryable(_http_error(400))

    def test_unknown_exception(self):
        """Test arbitrary exceptions are not retryable."""
        assert not ConcreteClient()._is_retryable(ValueError("bad"))


class TestCallWithRetry:
    """Test the retry loop."""

    def test_success_first_try(self):
        """Test successful execution without retry."""
        client = ConcreteClient()
        operation = MagicMock(return_value="success")
        assert client._call_with_retry(operation) == "success"
        assert operation.call_count == 1

    def test_retry_then_success(self):
        """Test a transient failure is retried."""
        client = ConcreteClient()
        operation = MagicMock(side_effect=[TransientNetworkError("503"), "success"])
        with patch("time.sleep"):
            assert client._call_with_retry(operation) == "success"
        assert operation.call_count == 2

    def test_sleeps_for_server_hint(self):
        """Test the loop waits exactly what the service asked for."""
        client = ConcreteClient()
        operation = MagicMock(
            side_effect=[TransientNetworkError("429", retry_after=2), "ok"]
        )
        with patch("time.sleep") as mock_sleep:
            client._call_with_retry(operation)
        mock_sleep.assert_called_once_with(2.0)

    def test_terminal_error_propagates(self):
        """Test non-retryable errors propagate without retry."""
        client = ConcreteClient()
        operation = MagicMock(side_effect=NotFoundError("gone"))
        with pytest.raises(NotFoundError):
            client._call_with_retry(operation)
        assert operation.call_count == 1

    def test_exhausted_transient_error_propagates(self):
        """Test the last transient failure is raised once retries run out."""
        client = ConcreteClient(max_retries=1)
        operation = MagicMock(side_effect=TransientNetworkError("503"))
        with patch("time.sleep"):
            with pytest.raises(TransientNetworkError):
                client._call_with_retry(operation)
        assert operation.call_count == 2

    def test_exhausted_network_error_becomes_transient(self):
        """Test exhausted connection failures surface as TransientNetworkError."""
        client = ConcreteClient(max_retries=2)
        operation = MagicMock(side_effect=requests.ConnectionError("down"))
        with patch("time.sleep"):
            with pytest.raises(TransientNetworkError):
                client._call_with_retry(operation)
        assert operation.call_count == 3

    def test_non_idempotent_call_not_repeated(self):
        """Test an ambiguous failure is raised at once for non-idempotent calls."""
        client = ConcreteClient()
        operation = MagicMock(side_effect=TransientNetworkError("502"))
        with patch("time.sleep"):
            with pytest.raises(TransientNetworkError):
                client._call_with_retry(operation, idempotent=False)
        assert operation.call_count == 1

    def test_non_idempotent_call_retried_after_rate_limit(self):
        """Test a rate-limit rejection is retried even for non-idempotent calls."""
        client = ConcreteClient()
        operation = MagicMock(side_effect=[RateLimitedError("429"), "created"])
        with patch("time.sleep"):
            assert client._call_with_retry(operation, idempotent=False) == "created"
        assert operation.call_count == 2

    def test_passes_arguments(self):
        """Test positional and keyword arguments are forwarded."""
        client = ConcreteClient()
        operation = MagicMock(return_value=None)
        client._call_with_retry(operation, 1, key="v")
        operation.assert_called_once_with(1, key="v")

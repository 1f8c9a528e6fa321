"""GitHub Issues integration.

This module provides a client for the GitHub REST API that acts on behalf
of an app installation: listing the repositories it can reach, listing
open issues, opening new ones and closing them. Installation tokens come
from an external credential provider and are cached per installation.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import requests

from ..config import SyncSettings
from ..sync_logging import get_logger
from .base import TRANSIENT_STATUS_CODES, IntegrationClient
from .cache import CredentialCache
from .errors import (
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    SyncError,
    TransientNetworkError,
    ValidationError,
)
from .models import CandidateIssue, RepositorySummary, parse_repository

logger = get_logger()

# Maps an installation reference to a working access token.
CredentialProvider = Callable[[str], str]

MAX_PAGES = 10


def _retry_after(response: requests.Response) -> float | None:
    """Seconds GitHub asked us to wait, from Retry-After or X-RateLimit-Reset."""
    headers = response.headers
    value = headers.get("Retry-After")
    if value is not None:
        try:
            return max(float(value), 0.0)
        except ValueError:
            return None
    reset = headers.get("X-RateLimit-Reset")
    if reset is not None:
        try:
            return max(float(reset) - time.time(), 0.0)
        except ValueError:
            return None
    return None


class GitHubIssuesClient(IntegrationClient):
    """Client for GitHub REST API (Issues) scoped to app installations.

    Provides listing, creation and closing of issues with rate limiting,
    retry logic and credential caching.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        settings: SyncSettings | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize GitHub client.

        Args:
            credentials: Callable returning an access token for an installation
            settings: Sync settings (defaults are used when omitted)
            session: Optional preconfigured requests session
        """
        self.settings = settings or SyncSettings()
        super().__init__(
            max_retries=self.settings.max_retries,
            base_delay=self.settings.base_delay,
            max_delay=self.settings.max_delay,
            requests_per_minute=self.settings.requests_per_minute,
        )

        self._credentials = credentials
        self._tokens = CredentialCache(ttl_seconds=self.settings.credential_ttl_seconds)
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": self.settings.user_agent,
            }
        )

    @property
    def name(self) -> str:
        """Short tracker name used in log messages."""
        return "github"

    @property
    def api_base(self) -> str:
        """REST API base URL without a trailing slash."""
        return self.settings.github_api_base.rstrip("/")

    def _token(self, installation_ref: str) -> str:
        """Return an access token for the installation.

        Raises:
            PermissionDeniedError: If no credential can be obtained
        """
        cached = self._tokens.get(installation_ref)
        if cached:
            return cached

        try:
            token = self._credentials(installation_ref)
        except SyncError:
            raise
        except Exception as e:
            raise PermissionDeniedError(
                f"Could not obtain credential for installation {installation_ref}: {e}"
            ) from e

        if not token:
            raise PermissionDeniedError(
                f"Empty credential for installation {installation_ref}"
            )
        self._tokens.set(installation_ref, token)
        return token

    def _raise_for_status(self, response: requests.Response, installation_ref: str) -> None:
        """Translate an HTTP error response into the sync error taxonomy."""
        status = response.status_code
        if status < 400:
            return

        detail = response.text[:200] if response.text else response.reason
        message = f"GitHub API error: {status} {detail}"

        if status == 401:
            self._tokens.invalidate(installation_ref)
            raise PermissionDeniedError(message)
        if status == 403:
            if response.headers.get("X-RateLimit-Remaining") == "0":
                raise RateLimitedError(message, retry_after=_retry_after(response))
            raise PermissionDeniedError(message)
        if status == 429:
            raise RateLimitedError(message, retry_after=_retry_after(response))
        if status in (404, 410):
            raise NotFoundError(message)
        if status == 422:
            raise ValidationError(message)
        if status in TRANSIENT_STATUS_CODES:
            raise TransientNetworkError(message, retry_after=_retry_after(response))
        raise SyncError(message)

    def _request(
        self,
        method: str,
        installation_ref: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Make an authenticated request to the GitHub API.

        POST creates a resource, so it is not re-sent after an ambiguous
        failure.

        Args:
            method: HTTP method
            installation_ref: Installation whose credential is used
            endpoint: API endpoint (relative to base)
            params: Query parameters
            payload: JSON body

        Returns:
            Decoded JSON response (None for empty bodies)

        Raises:
            SyncError: Classified failure
        """

        def _do_request() -> Any:
            token = self._token(installation_ref)
            response = self._session.request(
                method,
                f"{self.api_base}{endpoint}",
                params=params,
                json=payload,
                headers={"Authorization": f"token {token}"},
                timeout=self.settings.request_timeout,
            )
            self._raise_for_status(response, installation_ref)
            if not response.content:
                return None
            return response.json()

        return self._call_with_retry(_do_request, idempotent=method != "POST")

    def _repo_path(self, repository: str) -> str:
        parsed = parse_repository(repository)
        if not parsed:
            raise ValidationError(f"Repository must be in owner/repo form: {repository!r}")
        owner, repo = parsed
        return f"/repos/{owner}/{repo}"

    def list_open_issues(self, installation_ref: str, repository: str) -> list[CandidateIssue]:
        """List open issues of a repository, excluding pull requests.

        Args:
            installation_ref: Installation reference
            repository: Repository in owner/repo form

        Returns:
            Open issues, most recently created first
        """
        repo_path = self._repo_path(repository)
        per_page = self.settings.issues_per_page
        issues: list[CandidateIssue] = []

        for page in range(1, MAX_PAGES + 1):
            data = self._request(
                "GET",
                installation_ref,
                f"{repo_path}/issues",
                params={"state": "open", "per_page": per_page, "page": page},
            )
            if not isinstance(data, list):
                break
            # Pull requests are also returned by the issues endpoint
            issues.extend(
                CandidateIssue.from_api(item) for item in data if "pull_request" not in item
            )
            if len(data) < per_page:
                break

        logger.info(f"Fetched {len(issues)} open issues for {repository}")
        return issues

    def list_installation_repositories(self, installation_ref: str) -> list[RepositorySummary]:
        """List the repositories an app installation can reach.

        Args:
            installation_ref: Installation reference

        Returns:
            Repositories in the order GitHub returns them
        """
        per_page = self.settings.issues_per_page
        repositories: list[RepositorySummary] = []

        for page in range(1, MAX_PAGES + 1):
            data = self._request(
                "GET",
                installation_ref,
                "/installation/repositories",
                params={"per_page": per_page, "page": page},
            )
            items = data.get("repositories") if isinstance(data, dict) else None
            if not isinstance(items, list):
                break
            repositories.extend(RepositorySummary.from_api(item) for item in items)
            total = data.get("total_count")
            if len(items) < per_page or (isinstance(total, int) and len(repositories) >= total):
                break

        logger.info(
            f"Fetched {len(repositories)} repositories for installation {installation_ref}"
        )
        return repositories

    def create_issue(
        self,
        installation_ref: str,
        repository: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
    ) -> dict[str, Any]:
        """Open a new issue.

        Args:
            installation_ref: Installation reference
            repository: Repository in owner/repo form
            title: Issue title
            body: Issue body
            labels: Labels to apply (defaults to the configured labels)

        Returns:
            Raw GitHub issue payload
        """
        repo_path = self._repo_path(repository)
        payload = {
            "title": title,
            "body": f"{body}{self.settings.issue_footer}",
            "labels": list(labels if labels is not None else self.settings.issue_labels),
        }
        data = self._request("POST", installation_ref, f"{repo_path}/issues", payload=payload)
        if not isinstance(data, dict):
            raise SyncError(f"Unexpected response creating issue in {repository}")
        logger.info(f"GitHub issue created: {data.get('html_url', '')}")
        return data

    def close_issue(self, installation_ref: str, repository: str, number: int) -> dict[str, Any]:
        """Close an issue on GitHub.

        Args:
            installation_ref: Installation reference
            repository: Repository in owner/repo form
            number: Issue number

        Returns:
            Raw GitHub issue payload
        """
        repo_path = self._repo_path(repository)
        data = self._request(
            "PATCH",
            installation_ref,
            f"{repo_path}/issues/{number}",
            payload={"state": "closed"},
        )
        logger.info(f"GitHub issue closed: {repository}#{number}")
        return data if isinstance(data, dict) else {}

    def invalidate_credentials(self, installation_ref: str | None = None) -> int:
        """Drop cached installation tokens.

        Returns:
            Number of entries invalidated
        """
        return self._tokens.invalidate(installation_ref)

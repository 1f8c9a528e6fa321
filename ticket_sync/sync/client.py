"""External sync client.

ExternalSyncClient is the asynchronous contract the state machine and the
portal use to reach the issue tracker. TrackerSyncClient implements it on
top of the blocking GitHubIssuesClient and a TicketStore, running every
blocking call in a worker thread so the event loop is never held.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import replace

from ..integrations.errors import SyncError, ValidationError
from ..integrations.github import GitHubIssuesClient
from ..integrations.models import (
    CandidateIssue,
    ExternalIssue,
    ExternalNote,
    ExternalStatus,
    ImportResult,
    Origin,
    RepositorySummary,
    UserProfile,
)
from ..integrations.status_map import normalize_tracker_state
from ..store import TicketStore
from ..sync_logging import get_logger
from ..timestamps import now_ms

logger = get_logger()

# Resolves a user id to a profile; returns None for unknown users.
ProfileLookup = Callable[[str], UserProfile | None]


class ExternalSyncClient(ABC):
    """Asynchronous operations against the external issue tracker."""

    @abstractmethod
    async def list_repositories(self, installation_ref: str) -> list[RepositorySummary]:
        """Repositories the installation can reach, to choose one to load from."""

    @abstractmethod
    async def list_candidate_issues(
        self, installation_ref: str, repository: str
    ) -> list[CandidateIssue]:
        """Open tracker issues that have not been imported yet.

        Safe to call repeatedly.
        """

    @abstractmethod
    async def import_issues(
        self,
        installation_ref: str,
        repository: str,
        external_issue_ids: Iterable[int],
    ) -> ImportResult:
        """Import exactly the given subset of tracker issues.

        Idempotent by (repository, external issue id): repeating the call
        never creates a second record.
        """

    @abstractmethod
    async def set_status(self, ticket_id: str, status: ExternalStatus | str) -> ExternalIssue:
        """Update the status of an imported issue."""

    @abstractmethod
    async def append_note(self, ticket_id: str, note: ExternalNote) -> ExternalIssue:
        """Append a note without overwriting concurrent appends."""

    @abstractmethod
    async def close_permanently(
        self,
        ticket_id: str,
        installation_ref: str,
        repository: str,
        external_issue_id: int,
    ) -> None:
        """Close the issue on the tracker and remove the internal record."""

    @abstractmethod
    async def remove_from_view(self, ticket_id: str) -> None:
        """Remove only the internal record; the tracker issue is untouched."""

    @abstractmethod
    async def create_issue(
        self,
        installation_ref: str,
        repository: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
    ) -> ExternalIssue:
        """Open a new tracker issue and store it."""

    @abstractmethod
    async def import_all(self, installation_ref: str, repository: str) -> ImportResult:
        """Import every open tracker issue not stored yet."""


class TrackerSyncClient(ExternalSyncClient):
    """ExternalSyncClient backed by GitHub Issues and a ticket store.

    All imports and created issues are attributed to the acting user given
    at construction.
    """

    def __init__(
        self,
        github: GitHubIssuesClient,
        store: TicketStore,
        user_id: str,
        profile_lookup: ProfileLookup | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the sync client.

        Args:
            github: Tracker REST client
            store: Ticket store holding imported issues
            user_id: Acting user that imported issues are attributed to
            profile_lookup: Optional resolver for the user's email and name
            clock: Returns the current time as epoch milliseconds
        """
        self.github = github
        self.store = store
        self.user_id = user_id
        self._profile_lookup = profile_lookup
        self._clock = clock

    def _require(self, **values: object) -> None:
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ValidationError(f"Missing {', '.join(missing)}")

    def _resolve_profile(self) -> UserProfile:
        """Look up the acting user's profile.

        A failed lookup never fails the import; the record is stored with
        empty email and name instead.
        """
        if self._profile_lookup is None:
            return UserProfile(user_id=self.user_id)
        try:
            profile = self._profile_lookup(self.user_id)
        except Exception as e:
            logger.warning(f"Profile lookup failed for user {self.user_id}: {e}")
            return UserProfile(user_id=self.user_id)
        if profile is None:
            logger.warning(f"No profile found for user {self.user_id}")
            return UserProfile(user_id=self.user_id)
        return profile

    def _to_issue(
        self,
        candidate: CandidateIssue,
        installation_ref: str,
        repository: str,
        profile: UserProfile,
    ) -> ExternalIssue:
        return ExternalIssue(
            id="",
            external_issue_id=candidate.number,
            external_url=candidate.html_url,
            title=candidate.title,
            body=candidate.body,
            repository=repository,
            installation_ref=installation_ref,
            user_id=self.user_id,
            status=normalize_tracker_state(candidate.state),
            user_email=profile.email,
            user_name=profile.display_name,
            labels=list(candidate.labels),
            assignees=list(candidate.assignees),
            external_created_at=candidate.created_at,
            external_updated_at=candidate.updated_at,
        )

    def _store_candidates(
        self,
        candidates: list[CandidateIssue],
        installation_ref: str,
        repository: str,
    ) -> tuple[int, list[int]]:
        """Store candidates one by one.

        Returns:
            Tuple of (newly stored count, numbers that already existed)

        Raises:
            SyncError: With imported_count set when storing fails midway
        """
        profile = self._resolve_profile()
        imported = 0
        skipped: list[int] = []
        for candidate in candidates:
            issue = self._to_issue(candidate, installation_ref, repository, profile)
            try:
                _, created = self.store.add_external_if_absent(issue)
            except SyncError as e:
                e.imported_count = imported
                raise
            except Exception as e:
                raise SyncError(
                    f"Failed to store issue {repository}#{candidate.number}: {e}",
                    imported_count=imported,
                ) from e
            if created:
                imported += 1
            else:
                logger.debug(f"Issue {repository}#{candidate.number} already imported")
                skipped.append(candidate.number)
        return imported, skipped

    async def list_repositories(self, installation_ref: str) -> list[RepositorySummary]:
        """Repositories the installation can reach."""
        self._require(installation_ref=installation_ref)
        return await asyncio.to_thread(
            self.github.list_installation_repositories, installation_ref
        )

    async def list_candidate_issues(
        self, installation_ref: str, repository: str
    ) -> list[CandidateIssue]:
        """Open tracker issues that have not been imported yet."""
        self._require(installation_ref=installation_ref, repository=repository)
        issues = await asyncio.to_thread(
            self.github.list_open_issues, installation_ref, repository
        )
        existing = await asyncio.to_thread(self.store.external_issue_ids, repository)
        candidates = [
            issue
            for issue in issues
            if issue.state == "open" and issue.number not in existing
        ]
        logger.info(
            f"Found {len(candidates)} importable issues out of {len(issues)} "
            f"open issues in {repository}"
        )
        return candidates

    async def import_issues(
        self,
        installation_ref: str,
        repository: str,
        external_issue_ids: Iterable[int],
    ) -> ImportResult:
        """Import exactly the given subset of tracker issues.

        Args:
            installation_ref: Installation reference
            repository: Repository in owner/repo form
            external_issue_ids: Tracker issue numbers to import

        Returns:
            ImportResult with the number of newly stored records

        Raises:
            ValidationError: If no ids are given
            SyncError: On tracker or store failure; imported_count reports
                records already stored
        """
        wanted = list(dict.fromkeys(int(number) for number in external_issue_ids))
        self._require(installation_ref=installation_ref, repository=repository)
        if not wanted:
            raise ValidationError("Select at least one issue to import")

        issues = await asyncio.to_thread(
            self.github.list_open_issues, installation_ref, repository
        )
        by_number = {issue.number: issue for issue in issues}
        selected = [by_number[number] for number in wanted if number in by_number]
        missing = tuple(number for number in wanted if number not in by_number)
        if missing:
            logger.warning(
                f"Issues {list(missing)} are no longer open in {repository}; skipping"
            )

        imported, skipped = await asyncio.to_thread(
            self._store_candidates, selected, installation_ref, repository
        )
        logger.info(
            f"Imported {imported} of {len(selected)} selected issues from {repository}"
        )
        return ImportResult(
            imported_count=imported,
            skipped_ids=tuple(skipped),
            missing_ids=missing,
        )

    async def import_all(self, installation_ref: str, repository: str) -> ImportResult:
        """Import every open tracker issue not stored yet."""
        self._require(installation_ref=installation_ref, repository=repository)
        issues = await asyncio.to_thread(
            self.github.list_open_issues, installation_ref, repository
        )
        imported, skipped = await asyncio.to_thread(
            self._store_candidates, issues, installation_ref, repository
        )
        logger.info(f"Imported {imported} new issues out of {len(issues)} in {repository}")
        return ImportResult(imported_count=imported, skipped_ids=tuple(skipped))

    async def set_status(self, ticket_id: str, status: ExternalStatus | str) -> ExternalIssue:
        """Update the status of an imported issue.

        Raises:
            ValidationError: If the status is not a known value
            NotFoundError: If the issue no longer exists
        """
        self._require(ticket_id=ticket_id)
        if not isinstance(status, ExternalStatus):
            try:
                status = ExternalStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown issue status: {status!r}") from e
        return await asyncio.to_thread(
            self.store.set_status, Origin.EXTERNAL, ticket_id, status
        )

    async def append_note(self, ticket_id: str, note: ExternalNote) -> ExternalIssue:
        """Append a note to an imported issue.

        Missing note ids and creation times are filled in.

        Raises:
            ValidationError: If the note message is empty
            NotFoundError: If the issue no longer exists
        """
        self._require(ticket_id=ticket_id)
        if not note.message or not note.message.strip():
            raise ValidationError("Note message cannot be empty")
        note = replace(
            note,
            id=note.id or uuid.uuid4().hex,
            created_at=note.created_at if note.created_at is not None else self._clock(),
        )
        return await asyncio.to_thread(
            self.store.append_note, Origin.EXTERNAL, ticket_id, note
        )

    async def close_permanently(
        self,
        ticket_id: str,
        installation_ref: str,
        repository: str,
        external_issue_id: int,
    ) -> None:
        """Close the issue on the tracker, then delete the internal record.

        The record is kept when the tracker call fails, so the operation can
        be retried.
        """
        self._require(
            ticket_id=ticket_id,
            installation_ref=installation_ref,
            repository=repository,
            external_issue_id=external_issue_id,
        )
        await asyncio.to_thread(
            self.github.close_issue, installation_ref, repository, external_issue_id
        )
        await asyncio.to_thread(self.store.delete, Origin.EXTERNAL, ticket_id)
        logger.info(f"Closed {repository}#{external_issue_id} and removed {ticket_id}")

    async def remove_from_view(self, ticket_id: str) -> None:
        """Remove only the internal record."""
        self._require(ticket_id=ticket_id)
        await asyncio.to_thread(self.store.delete, Origin.EXTERNAL, ticket_id)
        logger.info(f"Removed imported issue {ticket_id} from view")

    async def create_issue(
        self,
        installation_ref: str,
        repository: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
    ) -> ExternalIssue:
        """Open a new tracker issue and store it.

        Raises:
            ValidationError: If the title or body is empty
        """
        self._require(
            installation_ref=installation_ref,
            repository=repository,
            title=title.strip() if title else title,
            body=body.strip() if body else body,
        )
        data = await asyncio.to_thread(
            self.github.create_issue, installation_ref, repository, title, body, labels
        )
        candidate = CandidateIssue.from_api(data)
        profile = await asyncio.to_thread(self._resolve_profile)
        issue = self._to_issue(candidate, installation_ref, repository, profile)
        stored, _ = await asyncio.to_thread(self.store.add_external_if_absent, issue)
        return stored


__all__ = ["ExternalSyncClient", "ProfileLookup", "TrackerSyncClient"]

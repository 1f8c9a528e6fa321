"""In-memory ticket store.

Reference implementation of TicketStore. All mutations run under one lock,
so a note append is a single read-modify-write that cannot interleave with
another writer, and conditional inserts cannot race each other.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from threading import Lock

from ..integrations.errors import NotFoundError, ValidationError
from ..integrations.models import (
    ExternalIssue,
    ExternalStatus,
    InternalStatus,
    InternalTicket,
    Origin,
)
from ..timestamps import normalize, now_ms
from ..sync_logging import get_logger
from .base import Listener, Note, Status, Ticket, TicketStore, Unsubscribe

logger = get_logger()

STATUS_TYPES = {Origin.INTERNAL: InternalStatus, Origin.EXTERNAL: ExternalStatus}


@dataclass(eq=False)
class _Subscription:
    origin: Origin
    listener: Listener
    user_id: str | None = None


class InMemoryTicketStore(TicketStore):
    """Thread-safe in-memory store for both ticket collections."""

    def __init__(self, clock: Callable[[], int] = now_ms):
        """Initialize the store.

        Args:
            clock: Returns the current time as epoch milliseconds
        """
        self._clock = clock
        self._lock = Lock()
        self._records: dict[Origin, dict[str, Ticket]] = {
            Origin.INTERNAL: {},
            Origin.EXTERNAL: {},
        }
        self._subscriptions: list[_Subscription] = []

    def _new_id(self) -> str:
        return uuid.uuid4().hex[:20]

    def _touch(self, record: Ticket) -> int:
        """Return the next updated time, never earlier than the current one.

        Must be called while holding the lock.
        """
        now = self._clock()
        previous = normalize(record.updated_at)
        if previous is not None and previous > now:
            return previous
        return now

    def _require(self, origin: Origin, ticket_id: str) -> Ticket:
        """Must be called while holding the lock."""
        record = self._records[origin].get(ticket_id)
        if record is None:
            raise NotFoundError(f"{origin.value} ticket {ticket_id} not found")
        return record

    def _snapshot(self, origin: Origin, user_id: str | None) -> list[Ticket]:
        """Must be called while holding the lock."""
        return [
            copy.deepcopy(record)
            for record in self._records[origin].values()
            if user_id is None or record.user_id == user_id
        ]

    def _notify(self, origin: Origin) -> None:
        """Push fresh result sets to the live queries of one origin."""
        with self._lock:
            pending = [
                (sub.listener, self._snapshot(origin, sub.user_id))
                for sub in self._subscriptions
                if sub.origin is origin
            ]
        for listener, records in pending:
            listener(records)

    def add_internal(self, ticket: InternalTicket) -> InternalTicket:
        """Persist a new support request."""
        with self._lock:
            now = self._clock()
            stored = replace(
                copy.deepcopy(ticket),
                id=ticket.id or self._new_id(),
                created_at=ticket.created_at if ticket.created_at is not None else now,
                updated_at=ticket.updated_at if ticket.updated_at is not None else now,
                version=1,
            )
            if stored.id in self._records[Origin.INTERNAL]:
                raise ValidationError(f"Support request {stored.id} already exists")
            self._records[Origin.INTERNAL][stored.id] = stored
            result = copy.deepcopy(stored)
        logger.debug(f"Stored support request {result.id}")
        self._notify(Origin.INTERNAL)
        return result

    def add_external_if_absent(self, issue: ExternalIssue) -> tuple[ExternalIssue, bool]:
        """Persist an imported issue unless (repository, number) is taken."""
        with self._lock:
            for existing in self._records[Origin.EXTERNAL].values():
                if (
                    existing.repository == issue.repository
                    and existing.external_issue_id == issue.external_issue_id
                ):
                    return copy.deepcopy(existing), False

            now = self._clock()
            stored = replace(
                copy.deepcopy(issue),
                id=issue.id or self._new_id(),
                created_at=issue.created_at if issue.created_at is not None else now,
                updated_at=issue.updated_at if issue.updated_at is not None else now,
                version=1,
            )
            self._records[Origin.EXTERNAL][stored.id] = stored
            result = copy.deepcopy(stored)
        logger.debug(
            f"Stored issue {result.repository}#{result.external_issue_id} as {result.id}"
        )
        self._notify(Origin.EXTERNAL)
        return result, True

    def get(self, origin: Origin, ticket_id: str) -> Ticket:
        """Fetch one ticket."""
        with self._lock:
            return copy.deepcopy(self._require(origin, ticket_id))

    def find_external(self, repository: str, external_issue_id: int) -> ExternalIssue | None:
        """Find an imported issue by its tracker identity."""
        with self._lock:
            for record in self._records[Origin.EXTERNAL].values():
                if (
                    record.repository == repository
                    and record.external_issue_id == external_issue_id
                ):
                    return copy.deepcopy(record)
        return None

    def external_issue_ids(self, repository: str) -> set[int]:
        """Tracker issue numbers already imported for a repository."""
        with self._lock:
            return {
                record.external_issue_id
                for record in self._records[Origin.EXTERNAL].values()
                if record.repository == repository
            }

    def set_status(self, origin: Origin, ticket_id: str, status: Status) -> Ticket:
        """Update a ticket's status.

        Raises:
            ValidationError: If the status belongs to the other origin's vocabulary
        """
        expected = STATUS_TYPES[origin]
        if not isinstance(status, expected):
            raise ValidationError(
                f"{origin.value} tickets take {expected.__name__}, got {status!r}"
            )
        with self._lock:
            record = self._require(origin, ticket_id)
            record.status = status
            record.updated_at = self._touch(record)
            record.version += 1
            result = copy.deepcopy(record)
        self._notify(origin)
        return result

    def append_note(self, origin: Origin, ticket_id: str, note: Note) -> Ticket:
        """Atomically append a note to a ticket."""
        with self._lock:
            record = self._require(origin, ticket_id)
            record.notes.append(note)
            record.updated_at = self._touch(record)
            record.version += 1
            result = copy.deepcopy(record)
        self._notify(origin)
        return result

    def delete(self, origin: Origin, ticket_id: str) -> None:
        """Remove a ticket record."""
        with self._lock:
            self._require(origin, ticket_id)
            del self._records[origin][ticket_id]
        logger.debug(f"Deleted {origin.value} ticket {ticket_id}")
        self._notify(origin)

    def list_tickets(self, origin: Origin, user_id: str | None = None) -> list[Ticket]:
        """List tickets of one origin."""
        with self._lock:
            return self._snapshot(origin, user_id)

    def subscribe(
        self, origin: Origin, listener: Listener, user_id: str | None = None
    ) -> Unsubscribe:
        """Register a live query."""
        subscription = _Subscription(origin=origin, listener=listener, user_id=user_id)
        with self._lock:
            self._subscriptions.append(subscription)
            initial = self._snapshot(origin, user_id)
        listener(initial)

        def _unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return _unsubscribe

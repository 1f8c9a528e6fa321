"""Abstract ticket store.

The sync layer talks to the document store only through this interface:
create, conditional insert, status update, atomic note append, delete,
listing and a live-query subscription keyed by user or unfiltered.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Union

from ..integrations.models import (
    ExternalIssue,
    ExternalNote,
    ExternalStatus,
    InternalNote,
    InternalStatus,
    InternalTicket,
    Origin,
)

Ticket = Union[InternalTicket, ExternalIssue]
Note = Union[InternalNote, ExternalNote]
Status = Union[InternalStatus, ExternalStatus]

# Receives the full, current result set of a live query.
Listener = Callable[[list[Ticket]], None]
Unsubscribe = Callable[[], None]


class TicketStore(ABC):
    """Document store for support requests and imported issues.

    Implementations must make every write atomic per record. In particular
    append_note must never replace the notes collection wholesale, so two
    actors appending at the same time both keep their note.
    """

    @abstractmethod
    def add_internal(self, ticket: InternalTicket) -> InternalTicket:
        """Persist a new support request.

        Assigns an id when the ticket has none and stamps created/updated
        times.

        Returns:
            The stored ticket
        """

    @abstractmethod
    def add_external_if_absent(self, issue: ExternalIssue) -> tuple[ExternalIssue, bool]:
        """Persist an imported issue unless one already exists.

        Uniqueness is keyed on (repository, external_issue_id).

        Returns:
            Tuple of (stored or existing issue, whether it was created)
        """

    @abstractmethod
    def get(self, origin: Origin, ticket_id: str) -> Ticket:
        """Fetch one ticket.

        Raises:
            NotFoundError: If the ticket does not exist
        """

    @abstractmethod
    def find_external(self, repository: str, external_issue_id: int) -> ExternalIssue | None:
        """Find an imported issue by its tracker identity."""

    @abstractmethod
    def external_issue_ids(self, repository: str) -> set[int]:
        """Tracker issue numbers already imported for a repository."""

    @abstractmethod
    def set_status(self, origin: Origin, ticket_id: str, status: Status) -> Ticket:
        """Update a ticket's status and bump its updated time.

        Raises:
            NotFoundError: If the ticket does not exist
        """

    @abstractmethod
    def append_note(self, origin: Origin, ticket_id: str, note: Note) -> Ticket:
        """Atomically append a note to a ticket.

        Raises:
            NotFoundError: If the ticket does not exist
        """

    @abstractmethod
    def delete(self, origin: Origin, ticket_id: str) -> None:
        """Remove a ticket record.

        Raises:
            NotFoundError: If the ticket does not exist
        """

    @abstractmethod
    def list_tickets(self, origin: Origin, user_id: str | None = None) -> list[Ticket]:
        """List tickets of one origin, optionally for a single user."""

    @abstractmethod
    def subscribe(
        self, origin: Origin, listener: Listener, user_id: str | None = None
    ) -> Unsubscribe:
        """Register a live query.

        The listener is called with the current result set immediately and
        again after every change to that origin.

        Returns:
            Callable that cancels the subscription
        """

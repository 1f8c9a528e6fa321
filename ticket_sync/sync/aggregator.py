"""Unified ticket aggregation.

Merges support requests and imported issues into one read model, applies
the caller's filter, and sorts newest first with a deterministic tie-break.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..integrations.models import ExternalIssue, InternalTicket, Origin, UnifiedTicket
from ..sync_logging import get_logger
from ..timestamps import first_normalized
from ..timestamps import now_ms as current_ms
from .notes import to_unified_notes

logger = get_logger()

TITLE_MAX_LENGTH = 80


@dataclass(frozen=True)
class TicketFilter:
    """Filter applied to the merged ticket list.

    Empty collections mean "no filtering" on that field, never
    "exclude everything".
    """

    user_email: frozenset[str] = field(default_factory=frozenset)
    user_id: str | None = None
    statuses: frozenset[str] = field(default_factory=frozenset)
    origin: Origin | None = None

    @classmethod
    def create(
        cls,
        user_email: Iterable[str] | None = None,
        user_id: str | None = None,
        statuses: Iterable[str] | None = None,
        origin: Origin | None = None,
    ) -> TicketFilter:
        """Build a filter from plain iterables."""
        return cls(
            user_email=frozenset(user_email or ()),
            user_id=user_id,
            statuses=frozenset(statuses or ()),
            origin=origin,
        )

    def matches(self, ticket: UnifiedTicket) -> bool:
        """Check whether a ticket passes every active criterion."""
        if self.user_email and ticket.user_email not in self.user_email:
            return False
        if self.user_id is not None and ticket.user_id != self.user_id:
            return False
        if self.statuses and ticket.status not in self.statuses:
            return False
        if self.origin is not None and ticket.origin is not self.origin:
            return False
        return True


def _title_from_message(message: str) -> str:
    first_line = message.strip().splitlines()[0] if message.strip() else ""
    if len(first_line) > TITLE_MAX_LENGTH:
        return first_line[: TITLE_MAX_LENGTH - 3] + "..."
    return first_line or "Support request"


def _created_at(ticket_id: str, now: int, *candidates: object) -> int:
    value = first_normalized(*candidates)
    if value is None:
        logger.warning(
            f"Ticket {ticket_id} has no usable created/updated timestamp; "
            f"sorting it as created now"
        )
        return now
    return value


def project_internal(
    ticket: InternalTicket, now: int, include_internal_notes: bool = True
) -> UnifiedTicket:
    """Project a support request into the unified read model."""
    unified_id = f"{Origin.INTERNAL.value}:{ticket.id}"
    return UnifiedTicket(
        id=unified_id,
        source_id=ticket.id,
        origin=Origin.INTERNAL,
        title=_title_from_message(ticket.message),
        body=ticket.message,
        status=ticket.status.value,
        created_at=_created_at(unified_id, now, ticket.created_at, ticket.updated_at),
        user_id=ticket.user_id,
        user_email=ticket.user_email,
        user_name=ticket.user_name,
        notes=tuple(to_unified_notes(ticket.notes, include_internal_notes)),
        repo_ref=ticket.repo_ref,
    )


def project_external(
    issue: ExternalIssue, now: int, include_internal_notes: bool = True
) -> UnifiedTicket:
    """Project an imported issue into the unified read model."""
    unified_id = f"{Origin.EXTERNAL.value}:{issue.id}"
    return UnifiedTicket(
        id=unified_id,
        source_id=issue.id,
        origin=Origin.EXTERNAL,
        title=issue.title,
        body=issue.body,
        status=issue.status.value,
        created_at=_created_at(
            unified_id,
            now,
            issue.created_at,
            issue.external_created_at,
            issue.updated_at,
        ),
        user_id=issue.user_id,
        user_email=issue.user_email,
        user_name=issue.user_name,
        notes=tuple(to_unified_notes(issue.notes, include_internal_notes)),
        repository=issue.repository,
        external_url=issue.external_url,
        external_issue_id=issue.external_issue_id,
        labels=tuple(issue.labels),
    )


def aggregate(
    internal: Iterable[InternalTicket],
    external: Iterable[ExternalIssue],
    ticket_filter: TicketFilter | None = None,
    now_ms: int | None = None,
    include_internal_notes: bool = True,
) -> list[UnifiedTicket]:
    """Merge both ticket domains into one sorted timeline.

    Args:
        internal: Support requests
        external: Imported tracker issues
        ticket_filter: Optional filter; empty criteria do not filter
        now_ms: Fallback time for tickets without any usable timestamp
        include_internal_notes: Keep admin-only notes (False for customer views)

    Returns:
        Unified tickets, newest first, ties broken by id ascending
    """
    now = now_ms if now_ms is not None else current_ms()

    tickets = [project_internal(t, now, include_internal_notes) for t in internal]
    tickets.extend(project_external(i, now, include_internal_notes) for i in external)

    if ticket_filter is not None:
        tickets = [t for t in tickets if ticket_filter.matches(t)]

    tickets.sort(key=lambda t: t.id)
    tickets.sort(key=lambda t: t.created_at, reverse=True)
    return tickets


def status_counts(tickets: Iterable[UnifiedTicket]) -> dict[tuple[str, str], int]:
    """Count tickets per (origin, raw status).

    Returns:
        Mapping of (origin value, status) to count
    """
    return dict(Counter((t.origin.value, t.status) for t in tickets))


__all__ = [
    "TicketFilter",
    "aggregate",
    "project_external",
    "project_internal",
    "status_counts",
]

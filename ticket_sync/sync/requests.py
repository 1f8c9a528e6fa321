"""Support request service.

Internally authored support requests: creation, status changes, the note
thread shared by the customer and admins, and per-user listings. The acting
user is always passed in explicitly.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable

from ..integrations.errors import ValidationError
from ..integrations.models import (
    InternalNote,
    InternalStatus,
    InternalTicket,
    Origin,
    UserProfile,
)
from ..integrations.status_map import LEGACY_INTERNAL_ALIASES, parse_internal_status
from ..store import TicketStore
from ..sync_logging import get_logger
from ..timestamps import now_ms

logger = get_logger()

KNOWN_INTERNAL_SPELLINGS = frozenset(
    [status.value for status in InternalStatus] + list(LEGACY_INTERNAL_ALIASES)
)


class SupportRequestService:
    """Asynchronous operations on support requests."""

    def __init__(self, store: TicketStore, clock: Callable[[], int] = now_ms):
        """Initialize the service.

        Args:
            store: Ticket store holding support requests
            clock: Returns the current time as epoch milliseconds
        """
        self.store = store
        self._clock = clock

    @staticmethod
    def _require_message(message: str | None) -> str:
        if not message or not message.strip():
            raise ValidationError("Message cannot be empty")
        return message.strip()

    async def create_request(
        self,
        actor: UserProfile,
        message: str,
        repo_ref: str | None = None,
        file_path: str | None = None,
    ) -> InternalTicket:
        """Open a new support request for the acting user.

        Raises:
            ValidationError: If the message is empty
        """
        text = self._require_message(message)
        ticket = InternalTicket(
            id="",
            user_id=actor.user_id,
            user_name=actor.display_name or actor.email,
            user_email=actor.email,
            message=text,
            status=InternalStatus.NEW,
            repo_ref=repo_ref or None,
            file_path=file_path or None,
        )
        stored = await asyncio.to_thread(self.store.add_internal, ticket)
        logger.info(f"Support request {stored.id} created by {actor.user_id}")
        return stored

    async def set_status(
        self, ticket_id: str, status: InternalStatus | str
    ) -> InternalTicket:
        """Change a request's status.

        Legacy status spellings are accepted; anything else is rejected.

        Raises:
            ValidationError: If the status is unknown
            NotFoundError: If the request no longer exists
        """
        if isinstance(status, str):
            key = status.strip().lower()
            if key not in KNOWN_INTERNAL_SPELLINGS:
                raise ValidationError(f"Unknown request status: {status!r}")
            status = parse_internal_status(key)
        if not isinstance(status, InternalStatus):
            raise ValidationError(f"Not a support request status: {status!r}")
        return await asyncio.to_thread(
            self.store.set_status, Origin.INTERNAL, ticket_id, status
        )

    async def add_note(
        self, ticket_id: str, actor: UserProfile, message: str
    ) -> InternalTicket:
        """Append a note to a request's thread.

        Raises:
            ValidationError: If the message is empty
            NotFoundError: If the request no longer exists
        """
        text = self._require_message(message)
        note = InternalNote(
            id=uuid.uuid4().hex,
            author_id=actor.user_id,
            author_name=actor.display_name or actor.email,
            message=text,
            created_at=self._clock(),
            role="admin" if actor.is_admin else "user",
        )
        return await asyncio.to_thread(
            self.store.append_note, Origin.INTERNAL, ticket_id, note
        )

    async def list_for_user(self, user_id: str) -> list[InternalTicket]:
        """Requests opened by one user."""
        return await asyncio.to_thread(self.store.list_tickets, Origin.INTERNAL, user_id)

    async def list_all(self) -> list[InternalTicket]:
        """Every request, for the admin view."""
        return await asyncio.to_thread(self.store.list_tickets, Origin.INTERNAL)


__all__ = ["SupportRequestService"]

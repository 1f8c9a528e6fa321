"""Projection of both note shapes into one thread format."""

from __future__ import annotations

from collections.abc import Iterable

from ..integrations.models import ExternalNote, InternalNote, NoteRole, UnifiedNote
from ..timestamps import normalize


def _role(raw_role: str | None) -> NoteRole:
    # Only an explicit admin tag makes an admin note
    return NoteRole.ADMIN if raw_role == NoteRole.ADMIN.value else NoteRole.CUSTOMER


def to_unified_note(note: InternalNote | ExternalNote) -> UnifiedNote:
    """Project a single note.

    Args:
        note: Support request note or imported issue note

    Returns:
        UnifiedNote with normalized created_at

    Raises:
        TypeError: If the note is neither shape
    """
    if isinstance(note, InternalNote):
        return UnifiedNote(
            id=note.id or None,
            author_id=note.author_id or None,
            author_name=note.author_name,
            author_email=None,
            message=note.message,
            created_at=normalize(note.created_at),
            role=_role(note.role),
        )
    if isinstance(note, ExternalNote):
        return UnifiedNote(
            id=note.id or None,
            author_id=None,
            author_name=note.author_name,
            author_email=note.author_email or None,
            message=note.message,
            created_at=normalize(note.created_at),
            role=_role(note.role),
            is_internal=note.is_internal,
        )
    raise TypeError(f"Unsupported note type: {type(note).__name__}")


def to_unified_notes(
    notes: Iterable[InternalNote | ExternalNote],
    include_internal: bool = True,
) -> list[UnifiedNote]:
    """Project a note thread, preserving authored order.

    Args:
        notes: Notes of either domain
        include_internal: Keep admin-only notes (False for customer views)

    Returns:
        Unified notes in input order
    """
    unified = [to_unified_note(note) for note in notes]
    if not include_internal:
        unified = [note for note in unified if not note.is_internal]
    return unified


__all__ = ["to_unified_note", "to_unified_notes"]

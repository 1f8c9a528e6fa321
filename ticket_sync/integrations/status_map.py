"""Status taxonomy mapping between support requests and tracker issues.

The two vocabularies evolved independently. They currently line up one to
one, but each direction is its own lookup table so that a state that only
exists on one side (e.g. a tracker-only "duplicate") can be added without
touching the other direction.
"""

from __future__ import annotations

from .models import ExternalStatus, InternalStatus

INTERNAL_TO_EXTERNAL: dict[InternalStatus, ExternalStatus] = {
    InternalStatus.NEW: ExternalStatus.OPEN,
    InternalStatus.IN_PROGRESS: ExternalStatus.IN_PROGRESS,
    InternalStatus.WAITING_ON_USER: ExternalStatus.WAITING_ON_USER,
    InternalStatus.RESOLVED: ExternalStatus.RESOLVED,
    InternalStatus.CLOSED: ExternalStatus.CLOSED,
}

EXTERNAL_TO_INTERNAL: dict[ExternalStatus, InternalStatus] = {
    ExternalStatus.OPEN: InternalStatus.NEW,
    ExternalStatus.IN_PROGRESS: InternalStatus.IN_PROGRESS,
    ExternalStatus.WAITING_ON_USER: InternalStatus.WAITING_ON_USER,
    ExternalStatus.RESOLVED: InternalStatus.RESOLVED,
    ExternalStatus.CLOSED: InternalStatus.CLOSED,
}

# Spellings written by an older version of the support request form
LEGACY_INTERNAL_ALIASES: dict[str, InternalStatus] = {
    "in-progress": InternalStatus.IN_PROGRESS,
    "completed": InternalStatus.RESOLVED,
    "cancelled": InternalStatus.CLOSED,
    "canceled": InternalStatus.CLOSED,
}

# GitHub's own issue state, as returned by the REST API
TRACKER_STATE_MAP: dict[str, ExternalStatus] = {
    "open": ExternalStatus.OPEN,
    "closed": ExternalStatus.CLOSED,
}

DEFAULT_INTERNAL_STATUS = InternalStatus.NEW
DEFAULT_EXTERNAL_STATUS = ExternalStatus.OPEN


def parse_internal_status(value: InternalStatus | str | None) -> InternalStatus:
    """Parse a stored support request status.

    Args:
        value: Enum member, current spelling, or legacy spelling

    Returns:
        InternalStatus (NEW for unknown input)
    """
    if isinstance(value, InternalStatus):
        return value
    if not isinstance(value, str):
        return DEFAULT_INTERNAL_STATUS
    key = value.strip().lower()
    try:
        return InternalStatus(key)
    except ValueError:
        return LEGACY_INTERNAL_ALIASES.get(key, DEFAULT_INTERNAL_STATUS)


def parse_external_status(value: ExternalStatus | str | None) -> ExternalStatus:
    """Parse a stored tracker issue status.

    Args:
        value: Enum member or its string value

    Returns:
        ExternalStatus (OPEN for unknown input)
    """
    if isinstance(value, ExternalStatus):
        return value
    if not isinstance(value, str):
        return DEFAULT_EXTERNAL_STATUS
    try:
        return ExternalStatus(value.strip().lower())
    except ValueError:
        return DEFAULT_EXTERNAL_STATUS


def to_external(status: InternalStatus | str | None) -> ExternalStatus:
    """Map a support request status into the tracker issue vocabulary.

    Args:
        status: Internal status (enum or string)

    Returns:
        ExternalStatus, OPEN when the input is unknown
    """
    return INTERNAL_TO_EXTERNAL.get(
        parse_internal_status(status), DEFAULT_EXTERNAL_STATUS
    )


def to_internal(status: ExternalStatus | str | None) -> InternalStatus:
    """Map a tracker issue status into the support request vocabulary.

    Args:
        status: External status (enum or string)

    Returns:
        InternalStatus, NEW when the input is unknown
    """
    return EXTERNAL_TO_INTERNAL.get(
        parse_external_status(status), DEFAULT_INTERNAL_STATUS
    )


def normalize_tracker_state(state: str | None) -> ExternalStatus:
    """Map GitHub's native issue state to an ExternalStatus.

    Args:
        state: GitHub issue state ("open" or "closed")

    Returns:
        ExternalStatus, OPEN when the state is unknown
    """
    if not state:
        return DEFAULT_EXTERNAL_STATUS
    return TRACKER_STATE_MAP.get(state.lower(), DEFAULT_EXTERNAL_STATUS)


__all__ = [
    "DEFAULT_EXTERNAL_STATUS",
    "DEFAULT_INTERNAL_STATUS",
    "EXTERNAL_TO_INTERNAL",
    "INTERNAL_TO_EXTERNAL",
    "LEGACY_INTERNAL_ALIASES",
    "TRACKER_STATE_MAP",
    "normalize_tracker_state",
    "parse_external_status",
    "parse_internal_status",
    "to_external",
    "to_internal",
]

"""Ticket synchronization and unified aggregation.

This package provides the asynchronous tracker sync client, the operator
sync state machine, the support request service, and the aggregator that
merges both ticket domains into one timeline.
"""

from .aggregator import TicketFilter, aggregate, status_counts
from .client import ExternalSyncClient, ProfileLookup, TrackerSyncClient
from .notes import to_unified_note, to_unified_notes
from .requests import SupportRequestService
from .state_machine import (
    EMPTY_SELECTION_MESSAGE,
    SyncAction,
    SyncSnapshot,
    SyncState,
    SyncStateMachine,
)

__all__ = [
    # Client
    "ExternalSyncClient",
    "ProfileLookup",
    "TrackerSyncClient",
    # State machine
    "EMPTY_SELECTION_MESSAGE",
    "SyncAction",
    "SyncSnapshot",
    "SyncState",
    "SyncStateMachine",
    # Aggregation
    "TicketFilter",
    "aggregate",
    "status_counts",
    "to_unified_note",
    "to_unified_notes",
    # Support requests
    "SupportRequestService",
]

"""Ticket Sync - support request and issue tracker reconciliation

Imports issues from GitHub into the support portal and merges them with
internally authored support requests into one sortable, filterable
timeline.
"""

__version__ = "1.0.0"
__description__ = "Support ticket sync and unified aggregation"

from ticket_sync.config import SyncSettings, load_settings

from .integrations.errors import SyncError
from .sync import SyncStateMachine, TrackerSyncClient, aggregate
from .sync_logging import get_logger, setup_logging

__all__ = [
    "SyncSettings",
    "load_settings",
    "SyncError",
    "SyncStateMachine",
    "TrackerSyncClient",
    "aggregate",
    "get_logger",
    "setup_logging",
]

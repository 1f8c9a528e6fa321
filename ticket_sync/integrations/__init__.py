"""Issue tracker integration for ticket sync.

This package provides the ticket data model, the status taxonomy mapping,
the error taxonomy and the GitHub Issues client used by the sync layer.
"""

from .base import IntegrationClient
from .cache import CredentialCache
from .errors import (
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    SyncError,
    TransientNetworkError,
    ValidationError,
)
from .github import CredentialProvider, GitHubIssuesClient
from .models import (
    CandidateIssue,
    ExternalIssue,
    ExternalNote,
    ExternalStatus,
    ImportResult,
    InternalNote,
    InternalStatus,
    InternalTicket,
    NoteRole,
    Origin,
    RepositorySummary,
    UnifiedNote,
    UnifiedTicket,
    UserProfile,
    parse_repository,
)
from .status_map import (
    EXTERNAL_TO_INTERNAL,
    INTERNAL_TO_EXTERNAL,
    normalize_tracker_state,
    parse_external_status,
    parse_internal_status,
    to_external,
    to_internal,
)

__all__ = [
    # Clients
    "IntegrationClient",
    "GitHubIssuesClient",
    "CredentialProvider",
    # Cache
    "CredentialCache",
    # Errors
    "SyncError",
    "TransientNetworkError",
    "NotFoundError",
    "ValidationError",
    "PermissionDeniedError",
    "RateLimitedError",
    # Models
    "CandidateIssue",
    "ExternalIssue",
    "ExternalNote",
    "ExternalStatus",
    "ImportResult",
    "InternalNote",
    "InternalStatus",
    "InternalTicket",
    "NoteRole",
    "Origin",
    "RepositorySummary",
    "UnifiedNote",
    "UnifiedTicket",
    "UserProfile",
    # Mappings
    "INTERNAL_TO_EXTERNAL",
    "EXTERNAL_TO_INTERNAL",
    # Utilities
    "normalize_tracker_state",
    "parse_external_status",
    "parse_internal_status",
    "parse_repository",
    "to_external",
    "to_internal",
]

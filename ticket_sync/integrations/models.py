"""Data models for support tickets and imported tracker issues.

This module defines the two persisted ticket domains (internal support
requests and imported GitHub issues), their note shapes, the candidate
issue shape returned by the tracker, and the read-only unified projections
the aggregator produces.

Persisted records convert to and from the camelCase document shape the
ticket store holds. Timestamp fields are kept raw because documents written
by different code paths disagree on their representation; the aggregator
normalizes them when it needs to sort.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Origin(Enum):
    """Which ticket domain a unified ticket came from."""

    INTERNAL = "internal"
    EXTERNAL = "external"


class InternalStatus(Enum):
    """Status vocabulary of internally authored support requests."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    WAITING_ON_USER = "waiting_on_user"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ExternalStatus(Enum):
    """Status vocabulary of imported tracker issues."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING_ON_USER = "waiting_on_user"
    RESOLVED = "resolved"
    CLOSED = "closed"


class NoteRole(Enum):
    """Role shown on a unified note."""

    ADMIN = "admin"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class UserProfile:
    """The acting user, passed explicitly into every write."""

    user_id: str
    email: str = ""
    display_name: str = ""
    role: str = "user"  # "user" or "admin"

    @property
    def is_admin(self) -> bool:
        """Whether the user acts with admin privileges."""
        return self.role == "admin"


@dataclass(frozen=True)
class InternalNote:
    """A note on a support request."""

    id: str
    author_id: str
    author_name: str
    message: str
    created_at: Any = None
    role: str = "user"

    def to_document(self) -> dict[str, Any]:
        """Convert to the stored document shape."""
        return {
            "id": self.id,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "role": self.role,
            "message": self.message,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> InternalNote:
        """Create from a stored document."""
        return cls(
            id=str(data.get("id", "")),
            author_id=data.get("authorId", "") or "",
            author_name=data.get("authorName", "") or "",
            message=data.get("message", "") or "",
            created_at=data.get("createdAt"),
            role=data.get("role", "user") or "user",
        )


@dataclass(frozen=True)
class ExternalNote:
    """A note on an imported issue.

    Internal notes are visible to admins only.
    """

    id: str
    author_name: str
    author_email: str
    message: str
    created_at: Any = None
    role: str = "customer"
    is_internal: bool = False

    def to_document(self) -> dict[str, Any]:
        """Convert to the stored document shape."""
        return {
            "id": self.id,
            "authorName": self.author_name,
            "authorEmail": self.author_email,
            "role": self.role,
            "message": self.message,
            "createdAt": self.created_at,
            "isInternal": self.is_internal,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> ExternalNote:
        """Create from a stored document."""
        return cls(
            id=str(data.get("id", "")),
            author_name=data.get("authorName", "") or "",
            author_email=data.get("authorEmail", "") or "",
            message=data.get("message", "") or "",
            created_at=data.get("createdAt"),
            role=data.get("role", "customer") or "customer",
            is_internal=bool(data.get("isInternal", False)),
        )


@dataclass
class InternalTicket:
    """An internally authored support request."""

    id: str
    user_id: str
    user_name: str
    user_email: str
    message: str
    status: InternalStatus = InternalStatus.NEW
    repo_ref: str | None = None
    file_path: str | None = None
    notes: list[InternalNote] = field(default_factory=list)
    created_at: Any = None
    updated_at: Any = None
    version: int = 0

    def to_document(self) -> dict[str, Any]:
        """Convert to the stored document shape."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "message": self.message,
            "githubRepo": self.repo_ref or "",
            "filePath": self.file_path,
            "status": self.status.value,
            "notes": [note.to_document() for note in self.notes],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> InternalTicket:
        """Create from a stored document.

        Legacy status spellings are folded into the current vocabulary.
        """
        from .status_map import parse_internal_status

        return cls(
            id=str(data.get("id", "")),
            user_id=data.get("userId", "") or "",
            user_name=data.get("userName", "") or "",
            user_email=data.get("userEmail", "") or "",
            message=data.get("message", "") or "",
            status=parse_internal_status(data.get("status")),
            repo_ref=data.get("githubRepo") or None,
            file_path=data.get("filePath"),
            notes=[InternalNote.from_document(n) for n in data.get("notes") or []],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class ExternalIssue:
    """A tracker issue imported into the internal store."""

    id: str
    external_issue_id: int
    external_url: str
    title: str
    body: str
    repository: str
    installation_ref: str
    user_id: str
    status: ExternalStatus = ExternalStatus.OPEN
    user_email: str = ""
    user_name: str = ""
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    notes: list[ExternalNote] = field(default_factory=list)
    created_at: Any = None
    updated_at: Any = None
    external_created_at: Any = None
    external_updated_at: Any = None
    version: int = 0

    @property
    def repository_url(self) -> str:
        """Browser URL of the repository the issue lives in."""
        return f"https://github.com/{self.repository}" if self.repository else ""

    def to_document(self) -> dict[str, Any]:
        """Convert to the stored document shape."""
        return {
            "id": self.id,
            "githubIssueId": self.external_issue_id,
            "githubIssueUrl": self.external_url,
            "title": self.title,
            "body": self.body,
            "status": self.status.value,
            "repository": self.repository,
            "repositoryUrl": self.repository_url,
            "installationId": self.installation_ref,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "userName": self.user_name,
            "labels": list(self.labels),
            "assignees": list(self.assignees),
            "notes": [note.to_document() for note in self.notes],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "githubCreatedAt": self.external_created_at,
            "githubUpdatedAt": self.external_updated_at,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> ExternalIssue:
        """Create from a stored document."""
        from .status_map import parse_external_status

        return cls(
            id=str(data.get("id", "")),
            external_issue_id=int(data.get("githubIssueId") or 0),
            external_url=data.get("githubIssueUrl", "") or "",
            title=data.get("title", "") or "",
            body=data.get("body", "") or "",
            repository=data.get("repository", "") or "",
            installation_ref=str(data.get("installationId", "") or ""),
            user_id=data.get("userId", "") or "",
            status=parse_external_status(data.get("status")),
            user_email=data.get("userEmail", "") or "",
            user_name=data.get("userName", "") or "",
            labels=list(data.get("labels") or []),
            assignees=list(data.get("assignees") or []),
            notes=[ExternalNote.from_document(n) for n in data.get("notes") or []],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            external_created_at=data.get("githubCreatedAt"),
            external_updated_at=data.get("githubUpdatedAt"),
        )


@dataclass(frozen=True)
class CandidateIssue:
    """An open tracker issue that has not been imported yet."""

    number: int
    title: str
    body: str = ""
    state: str = "open"
    html_url: str = ""
    author: str = "Unknown"
    labels: tuple[str, ...] = field(default_factory=tuple)
    assignees: tuple[str, ...] = field(default_factory=tuple)
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CandidateIssue:
        """Parse a GitHub REST issue payload."""
        user = data.get("user") or {}
        return cls(
            number=int(data.get("number", 0)),
            title=data.get("title", "") or "",
            body=data.get("body", "") or "",
            state=data.get("state", "open") or "open",
            html_url=data.get("html_url", "") or "",
            author=user.get("login", "Unknown") or "Unknown",
            labels=tuple(
                label.get("name", "")
                for label in data.get("labels") or []
                if isinstance(label, dict) and label.get("name")
            ),
            assignees=tuple(
                assignee.get("login", "")
                for assignee in data.get("assignees") or []
                if isinstance(assignee, dict) and assignee.get("login")
            ),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "id": self.number,
            "title": self.title,
            "body": self.body,
            "state": self.state,
            "labels": list(self.labels),
            "assignees": list(self.assignees),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "html_url": self.html_url,
            "user": self.author,
        }


@dataclass(frozen=True)
class RepositorySummary:
    """A repository an app installation can reach."""

    id: int
    name: str
    full_name: str
    owner: str
    html_url: str = ""
    is_private: bool = False
    can_admin: bool = False
    can_push: bool = False
    can_pull: bool = True

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RepositorySummary:
        """Parse a GitHub REST repository payload.

        Missing permissions mean read-only access.
        """
        owner = data.get("owner") or {}
        permissions = data.get("permissions") or {}
        name = data.get("name", "") or ""
        return cls(
            id=int(data.get("id", 0)),
            name=name,
            full_name=data.get("full_name") or f"{owner.get('login', '')}/{name}",
            owner=owner.get("login", "") or "",
            html_url=data.get("html_url", "") or "",
            is_private=bool(data.get("private", False)),
            can_admin=bool(permissions.get("admin", False)),
            can_push=bool(permissions.get("push", False)),
            can_pull=bool(permissions.get("pull", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "id": self.id,
            "name": self.name,
            "full_name": self.full_name,
            "owner": self.owner,
            "html_url": self.html_url,
            "private": self.is_private,
            "permissions": {
                "admin": self.can_admin,
                "push": self.can_push,
                "pull": self.can_pull,
            },
        }


@dataclass(frozen=True)
class ImportResult:
    """Outcome of importing a subset of candidate issues."""

    imported_count: int
    skipped_ids: tuple[int, ...] = field(default_factory=tuple)  # already stored
    missing_ids: tuple[int, ...] = field(default_factory=tuple)  # not open upstream


@dataclass(frozen=True)
class UnifiedNote:
    """A note in the one thread format shared by both ticket domains."""

    author_name: str
    message: str
    created_at: int | None
    role: NoteRole = NoteRole.CUSTOMER
    id: str | None = None
    author_id: str | None = None
    author_email: str | None = None
    is_internal: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "authorName": self.author_name,
            "authorId": self.author_id,
            "authorEmail": self.author_email,
            "message": self.message,
            "createdAt": self.created_at,
            "role": self.role.value,
            "isInternal": self.is_internal,
        }


@dataclass(frozen=True)
class UnifiedTicket:
    """Read-only projection of a ticket from either domain.

    status holds the raw, origin-specific value; it is never translated
    for display.
    """

    id: str  # origin-prefixed, unique across both domains
    source_id: str
    origin: Origin
    title: str
    body: str
    status: str
    created_at: int
    user_id: str = ""
    user_email: str = ""
    user_name: str = ""
    notes: tuple[UnifiedNote, ...] = field(default_factory=tuple)

    # Origin-specific passthrough
    repo_ref: str | None = None
    repository: str | None = None
    external_url: str | None = None
    external_issue_id: int | None = None
    labels: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the presentation layer."""
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "origin": self.origin.value,
            "title": self.title,
            "body": self.body,
            "status": self.status,
            "createdAt": self.created_at,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "userName": self.user_name,
            "notes": [note.to_dict() for note in self.notes],
            "repoRef": self.repo_ref,
            "repository": self.repository,
            "externalUrl": self.external_url,
            "externalIssueId": self.external_issue_id,
            "labels": list(self.labels),
        }


def parse_repository(repository: str) -> tuple[str, str] | None:
    """Split an "owner/repo" name into its parts.

    Args:
        repository: Full repository name

    Returns:
        Tuple of (owner, repo) or None if malformed
    """
    if not repository or repository.count("/") != 1:
        return None
    owner, repo = repository.split("/")
    if not owner or not repo:
        return None
    return owner, repo


__all__ = [
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
    "parse_repository",
]

"""Sync state machine.

Drives the operator flow for importing tracker issues:

    IDLE -> LOADING_CANDIDATES -> SELECTION_READY -> SYNCING -> IDLE

with SELECTION_READY -> IDLE on cancel and any failure -> ERROR. ERROR is
terminal until the operator calls retry() or reset().

The machine is driven from one event loop. Only one load or sync may be in
flight per (installation_ref, repository); a duplicate request while busy
is ignored rather than queued. A newer load supersedes older in-flight
work: results arriving for a superseded request are discarded, and the
superseded request no longer blocks its repository from being loaded again.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..integrations.errors import SyncError
from ..integrations.models import CandidateIssue, ImportResult
from ..sync_logging import get_logger
from .client import ExternalSyncClient

logger = get_logger()

EMPTY_SELECTION_MESSAGE = "Select at least one issue to import"


class SyncState(Enum):
    """Operator-visible sync states."""

    IDLE = "idle"
    LOADING_CANDIDATES = "loading_candidates"
    SELECTION_READY = "selection_ready"
    SYNCING = "syncing"
    ERROR = "error"


class SyncAction(Enum):
    """Network actions that can fail and be retried."""

    LOAD = "load"
    SYNC = "sync"


@dataclass(frozen=True)
class SyncSnapshot:
    """Immutable view of the state machine for rendering."""

    state: SyncState = SyncState.IDLE
    installation_ref: str | None = None
    repository: str | None = None
    candidates: tuple[CandidateIssue, ...] = field(default_factory=tuple)
    selected_ids: frozenset[int] = field(default_factory=frozenset)
    validation_message: str | None = None
    error: SyncError | None = None
    failed_action: SyncAction | None = None
    last_result: ImportResult | None = None

    @property
    def is_busy(self) -> bool:
        """Whether a network call is in flight."""
        return self.state in (SyncState.LOADING_CANDIDATES, SyncState.SYNCING)

    @property
    def candidate_ids(self) -> frozenset[int]:
        """Tracker numbers of the loaded candidates."""
        return frozenset(candidate.number for candidate in self.candidates)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the presentation layer."""
        return {
            "state": self.state.value,
            "installationRef": self.installation_ref,
            "repository": self.repository,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "selectedIds": sorted(self.selected_ids),
            "validationMessage": self.validation_message,
            "error": self.error.to_dict() if self.error else None,
            "failedAction": self.failed_action.value if self.failed_action else None,
            "importedCount": self.last_result.imported_count if self.last_result else None,
        }


SnapshotListener = Callable[[SyncSnapshot], None]


class SyncStateMachine:
    """Explicit state machine around an ExternalSyncClient."""

    def __init__(self, client: ExternalSyncClient):
        """Initialize in IDLE.

        Args:
            client: Asynchronous tracker client
        """
        self._client = client
        self._snapshot = SyncSnapshot()
        self._generation = 0
        # key -> generation of the call currently holding it
        self._in_flight: dict[tuple[str, str], int] = {}
        self._listeners: list[SnapshotListener] = []

    @property
    def state(self) -> SyncState:
        """Current state."""
        return self._snapshot.state

    def snapshot(self) -> SyncSnapshot:
        """Current immutable view."""
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Observe every transition.

        The listener receives the current snapshot immediately.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)
        listener(self._snapshot)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, **changes: Any) -> None:
        previous = self._snapshot.state
        self._snapshot = replace(self._snapshot, **changes)
        if self._snapshot.state is not previous:
            logger.debug(f"Sync state {previous.value} -> {self._snapshot.state.value}")
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _busy(self, key: tuple[str, str]) -> bool:
        """Whether a call for key is in flight and has not been superseded."""
        return self._in_flight.get(key) == self._generation

    def _release(self, key: tuple[str, str], generation: int) -> None:
        if self._in_flight.get(key) == generation:
            del self._in_flight[key]

    def _fail(self, error: Exception, action: SyncAction) -> None:
        if not isinstance(error, SyncError):
            logger.exception(f"Unexpected failure during {action.value}")
            error = SyncError(f"Unexpected error during {action.value}: {error}")
        else:
            logger.warning(f"Sync {action.value} failed ({error.kind}): {error.message}")
        self._set(state=SyncState.ERROR, error=error, failed_action=action)

    async def load(self, installation_ref: str, repository: str) -> bool:
        """Load importable issues for a repository.

        Clears any previous candidates and selection before the request is
        issued, and enters SELECTION_READY even when nothing is importable.

        Returns:
            True if the candidates were loaded and applied
        """
        key = (installation_ref, repository)
        if self.state is SyncState.ERROR:
            logger.debug("Ignoring load while in ERROR; retry or reset first")
            return False
        if self._busy(key):
            logger.debug(f"Ignoring load for {repository}: operation already in flight")
            return False
        if not installation_ref or not repository:
            self._set(validation_message="Choose an installation and a repository")
            return False

        self._generation += 1
        generation = self._generation
        self._set(
            state=SyncState.LOADING_CANDIDATES,
            installation_ref=installation_ref,
            repository=repository,
            candidates=(),
            selected_ids=frozenset(),
            validation_message=None,
            error=None,
            failed_action=None,
            last_result=None,
        )

        self._in_flight[key] = generation
        try:
            candidates = await self._client.list_candidate_issues(installation_ref, repository)
        except Exception as e:
            if self._is_current(generation):
                self._fail(e, SyncAction.LOAD)
            else:
                logger.debug(f"Discarding failed load for superseded request {repository}")
            return False
        finally:
            self._release(key, generation)

        if not self._is_current(generation):
            logger.debug(f"Discarding candidates for superseded request {repository}")
            return False

        self._set(state=SyncState.SELECTION_READY, candidates=tuple(candidates))
        return True

    def select(self, ids: Iterable[int]) -> bool:
        """Replace the selection with the given candidate numbers.

        Numbers that are not loaded candidates are ignored.

        Returns:
            True if the selection was applied
        """
        if self.state is not SyncState.SELECTION_READY:
            return False
        valid = self._snapshot.candidate_ids
        selected = frozenset(number for number in ids if number in valid)
        self._set(selected_ids=selected, validation_message=None)
        return True

    def toggle(self, issue_id: int) -> bool:
        """Add or remove one candidate from the selection.

        Returns:
            True if the selection changed
        """
        if self.state is not SyncState.SELECTION_READY:
            return False
        if issue_id not in self._snapshot.candidate_ids:
            return False
        selected = set(self._snapshot.selected_ids)
        selected.symmetric_difference_update({issue_id})
        self._set(selected_ids=frozenset(selected), validation_message=None)
        return True

    async def sync(self, ids: Iterable[int] | None = None) -> bool:
        """Import the selected candidates.

        Args:
            ids: Optional selection to apply first

        An empty selection does not transition: a validation message is set
        and no network call is made. On failure the candidates and selection
        are preserved for retry.

        Returns:
            True if the import completed and was applied
        """
        if self.state is not SyncState.SELECTION_READY:
            logger.debug(f"Ignoring sync in state {self.state.value}")
            return False
        if ids is not None:
            self.select(ids)

        snapshot = self._snapshot
        if not snapshot.selected_ids:
            self._set(validation_message=EMPTY_SELECTION_MESSAGE)
            return False

        installation_ref = snapshot.installation_ref or ""
        repository = snapshot.repository or ""
        key = (installation_ref, repository)
        if self._busy(key):
            logger.debug(f"Ignoring sync for {repository}: operation already in flight")
            return False

        self._generation += 1
        generation = self._generation
        self._set(
            state=SyncState.SYNCING,
            validation_message=None,
            error=None,
            failed_action=None,
        )

        self._in_flight[key] = generation
        try:
            result = await self._client.import_issues(
                installation_ref, repository, sorted(snapshot.selected_ids)
            )
        except Exception as e:
            if self._is_current(generation):
                self._fail(e, SyncAction.SYNC)
            else:
                logger.debug(f"Discarding failed sync for superseded request {repository}")
            return False
        finally:
            self._release(key, generation)

        if not self._is_current(generation):
            logger.debug(f"Discarding sync result for superseded request {repository}")
            return False

        logger.info(f"Imported {result.imported_count} issues from {repository}")
        self._set(
            state=SyncState.IDLE,
            candidates=(),
            selected_ids=frozenset(),
            last_result=result,
        )
        return True

    def cancel(self) -> bool:
        """Leave selection mode without importing.

        Returns:
            True if the machine returned to IDLE
        """
        if self.state is not SyncState.SELECTION_READY:
            return False
        self._set(
            state=SyncState.IDLE,
            candidates=(),
            selected_ids=frozenset(),
            validation_message=None,
        )
        return True

    async def retry(self) -> bool:
        """Re-run the action that put the machine into ERROR.

        A failed sync is retried with the preserved candidates and
        selection; a failed load is reissued for the same repository.

        Returns:
            True if the retried action succeeded
        """
        snapshot = self._snapshot
        if snapshot.state is not SyncState.ERROR or snapshot.failed_action is None:
            return False

        if snapshot.failed_action is SyncAction.SYNC:
            self._set(state=SyncState.SELECTION_READY, error=None, failed_action=None)
            return await self.sync()

        self._set(state=SyncState.IDLE, error=None, failed_action=None)
        return await self.load(snapshot.installation_ref or "", snapshot.repository or "")

    def reset(self) -> None:
        """Return to IDLE, discarding any in-flight result."""
        self._generation += 1
        self._set(
            state=SyncState.IDLE,
            installation_ref=None,
            repository=None,
            candidates=(),
            selected_ids=frozenset(),
            validation_message=None,
            error=None,
            failed_action=None,
        )


__all__ = [
    "EMPTY_SELECTION_MESSAGE",
    "SnapshotListener",
    "SyncAction",
    "SyncSnapshot",
    "SyncState",
    "SyncStateMachine",
]

"""Progress state for bulk bookmark operations, for display by a UI or the CLI."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from . import operations
from .config import DEFAULT_CONCURRENCY
from .models import Failed, ProgressSnapshot

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Mapping, Sequence

    from .client import KarakeepClient
    from .models import BookmarkUpdate, BulkResult

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BulkOperationState:
    """Latest progress of the tracked batch plus whether it is still running."""

    is_running: bool = False
    total: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0
    errors: tuple[Failed, ...] = field(default_factory=tuple)

    @classmethod
    def starting(cls, total: int) -> BulkOperationState:
        return cls(is_running=True, total=total)

    def with_snapshot(self, snapshot: ProgressSnapshot) -> BulkOperationState:
        return replace(
            self,
            total=snapshot.total,
            completed=snapshot.completed,
            failed=snapshot.failed,
            in_progress=snapshot.in_progress,
            errors=snapshot.errors,
        )

    def to_snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            total=self.total,
            completed=self.completed,
            failed=self.failed,
            in_progress=self.in_progress,
            errors=self.errors,
        )


class BulkOperationTracker:
    """Runs bulk operations for one client and publishes their progress.

    Each run resets the state, publishes an initial ``total=N`` state before any
    work starts, forwards every executor snapshot, and clears ``is_running`` when
    the batch returns.
    """

    def __init__(
        self, client: KarakeepClient, *, concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._client = client
        self._concurrency = concurrency
        self._lock = threading.Lock()
        self._state = BulkOperationState()
        self._listeners: list[Callable[[BulkOperationState], None]] = []

    @property
    def state(self) -> BulkOperationState:
        with self._lock:
            return self._state

    def subscribe(self, listener: Callable[[BulkOperationState], None]) -> Callable[[], None]:
        """Register ``listener`` for state changes; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def reset(self) -> None:
        self._publish(BulkOperationState())

    def update_bookmarks(
        self, bookmark_ids: Sequence[str], updates: BookmarkUpdate | Mapping[str, object],
    ) -> BulkResult:
        return self._run(bookmark_ids, operations.bulk_update, updates)

    def delete_bookmarks(self, bookmark_ids: Sequence[str]) -> BulkResult:
        return self._run(bookmark_ids, operations.bulk_delete)

    def attach_tags(self, bookmark_ids: Sequence[str], tags: Sequence[str]) -> BulkResult:
        return self._run(bookmark_ids, operations.bulk_attach_tags, tags)

    def detach_tags(self, bookmark_ids: Sequence[str], tags: Sequence[str]) -> BulkResult:
        return self._run(bookmark_ids, operations.bulk_detach_tags, tags)

    def add_to_list(self, bookmark_ids: Sequence[str], list_id: str) -> BulkResult:
        return self._run(bookmark_ids, operations.bulk_add_to_list, list_id)

    def remove_from_list(self, bookmark_ids: Sequence[str], list_id: str) -> BulkResult:
        return self._run(bookmark_ids, operations.bulk_remove_from_list, list_id)

    def _run(
        self,
        bookmark_ids: Sequence[str],
        bulk_call: Callable[..., BulkResult],
        *payload: object,
    ) -> BulkResult:
        ids = list(bookmark_ids)
        LOGGER.debug("Tracking %s over %d bookmarks", bulk_call.__name__, len(ids))
        self._publish(BulkOperationState.starting(len(ids)))
        try:
            return bulk_call(
                self._client,
                ids,
                *payload,
                concurrency=self._concurrency,
                on_progress=self._on_progress,
            )
        finally:
            with self._lock:
                final = replace(self._state, is_running=False)
            self._publish(final)

    def _on_progress(self, snapshot: ProgressSnapshot) -> None:
        with self._lock:
            state = self._state.with_snapshot(snapshot)
        self._publish(state)

    def _publish(self, state: BulkOperationState) -> None:
        with self._lock:
            self._state = state
            listeners = list(self._listeners)
        for listener in listeners:
            listener(state)

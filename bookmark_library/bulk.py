"""Bounded-concurrency execution of one mutation across many bookmark ids.

A batch seeds a shared queue with every id, then starts ``min(concurrency, len(ids))``
workers on a thread pool. Each worker claims the next id, runs the operation and
records a terminal outcome until the queue is empty. Failures are isolated per id:
an exception from the operation becomes a ``Failed`` outcome and the batch carries on.

Queue hand-off and the running counters share a single lock. Progress callbacks run
while that lock is held, so observers see snapshots in a strict order.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, TypeVar

from .config import DEFAULT_CONCURRENCY
from .errors import ConfigurationError
from .models import BulkResult, Failed, Outcome, ProgressSnapshot, Succeeded

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Iterable

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def run_task(item_id: str, operation: Callable[[str], T]) -> Outcome:
    """Run ``operation`` for one id and classify the result.

    Any ``Exception`` (including one raised before the operation does any I/O)
    is converted into a ``Failed`` outcome carrying a non-empty message.
    """
    try:
        operation(item_id)
    except Exception as exc:  # noqa: BLE001
        return Failed(id=item_id, error=_error_message(exc))
    return Succeeded(id=item_id)


def _error_message(exc: BaseException) -> str:
    try:
        message = str(exc).strip()
    except Exception:  # noqa: BLE001
        LOGGER.debug("Could not render %s as text", exc.__class__.__name__, exc_info=True)
        message = ""
    return message or exc.__class__.__name__


class _Batch:
    """Queue and counters owned by a single ``execute_bulk_operation`` call."""

    def __init__(
        self,
        ids: Iterable[str],
        on_progress: Callable[[ProgressSnapshot], None] | None,
    ) -> None:
        self._queue: deque[str] = deque(ids)
        self.total = len(self._queue)
        self._on_progress = on_progress
        self._lock = threading.Lock()
        self._succeeded: list[str] = []
        self._failed: list[Failed] = []
        self._in_progress = 0

    def claim(self) -> str | None:
        """Pop the next id and mark it in progress, or return None when drained."""
        with self._lock:
            if not self._queue:
                return None
            item_id = self._queue.popleft()
            self._in_progress += 1
            self._emit()
            return item_id

    def record(self, outcome: Outcome) -> None:
        with self._lock:
            self._in_progress -= 1
            if isinstance(outcome, Failed):
                self._failed.append(outcome)
            else:
                self._succeeded.append(outcome.id)
            self._emit()

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            total=self.total,
            completed=len(self._succeeded),
            failed=len(self._failed),
            in_progress=self._in_progress,
            errors=tuple(self._failed),
        )

    def result(self) -> BulkResult:
        with self._lock:
            return BulkResult(succeeded=tuple(self._succeeded), failed=tuple(self._failed))

    def _emit(self) -> None:
        # Caller holds the lock.
        if self._on_progress is not None:
            self._on_progress(self.snapshot())


def _drain(batch: _Batch, operation: Callable[[str], object]) -> None:
    while True:
        item_id = batch.claim()
        if item_id is None:
            return
        outcome = run_task(item_id, operation)
        if isinstance(outcome, Failed):
            LOGGER.warning("Bulk operation failed for %s: %s", outcome.id, outcome.error)
        else:
            LOGGER.debug("Bulk operation succeeded for %s", outcome.id)
        batch.record(outcome)


def effective_workers(concurrency: int, item_count: int) -> int:
    """Number of workers a batch of ``item_count`` ids will start."""
    return min(max(concurrency, 1), item_count)


def execute_bulk_operation(
    ids: Iterable[str],
    operation: Callable[[str], object],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: Callable[[ProgressSnapshot], None] | None = None,
) -> BulkResult:
    """Apply ``operation`` to every id with at most ``concurrency`` calls in flight.

    Args:
        ids: Entity ids in queue order. Duplicates are processed independently.
        operation: Callable performing one mutation for one id. Its return value is
            ignored; raising marks the id as failed.
        concurrency: Worker count. Values below 1 are treated as 1.
        on_progress: Called synchronously after every claim and every terminal
            outcome with the current ``ProgressSnapshot``. Must not raise.

    Returns:
        ``BulkResult`` with succeeded ids and failures, each in discovery order.

    Raises:
        ConfigurationError: ``operation`` is not callable or ``concurrency`` is not
            an integer. Raised before any worker starts.

    """
    _validate_arguments(operation, concurrency, on_progress)
    batch = _Batch(ids, on_progress)
    if batch.total == 0:
        return BulkResult()

    workers = effective_workers(concurrency, batch.total)
    LOGGER.info("Starting bulk operation on %d ids with %d workers", batch.total, workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bulk-worker") as executor:
        futures = [executor.submit(_drain, batch, operation) for _ in range(workers)]
        for future in as_completed(futures):
            future.result()

    result = batch.result()
    LOGGER.info(
        "Bulk operation finished: %d succeeded, %d failed",
        len(result.succeeded),
        len(result.failed),
    )
    return result


def _validate_arguments(
    operation: object,
    concurrency: object,
    on_progress: object,
) -> None:
    if not callable(operation):
        msg = f"operation must be callable, got {type(operation).__name__}"
        raise ConfigurationError(msg)
    if isinstance(concurrency, bool) or not isinstance(concurrency, int):
        msg = f"concurrency must be an integer, got {concurrency!r}"
        raise ConfigurationError(msg)
    if on_progress is not None and not callable(on_progress):
        msg = f"on_progress must be callable, got {type(on_progress).__name__}"
        raise ConfigurationError(msg)

"""Tests for the bounded-concurrency bulk executor."""

from __future__ import annotations

import threading
import time
from collections import Counter

import pytest

from bookmark_library.bulk import effective_workers, execute_bulk_operation, run_task
from bookmark_library.errors import ConfigurationError
from bookmark_library.models import Failed, ProgressSnapshot, Succeeded


def _ids(n: int) -> list[str]:
    return [f"bm-{i}" for i in range(n)]


def _succeed(_: str) -> None:
    return None


def _fail(item_id: str) -> None:
    msg = f"cannot mutate {item_id}"
    raise RuntimeError(msg)


def _concurrency_values(n: int) -> list[int]:
    return [1, 3, max(n, 1), n + 10]


@pytest.mark.parametrize("n", [0, 1, 4, 17])
def test_all_succeed(n: int) -> None:
    ids = _ids(n)
    for k in _concurrency_values(n):
        result = execute_bulk_operation(ids, _succeed, concurrency=k)
        if sorted(result.succeeded) != sorted(ids):
            msg = f"k={k}: expected every id in succeeded, got {result.succeeded}"
            raise AssertionError(msg)
        if result.failed:
            raise AssertionError(f"k={k}: unexpected failures {result.failed}")


@pytest.mark.parametrize("n", [1, 5, 12])
def test_all_fail(n: int) -> None:
    ids = _ids(n)
    for k in _concurrency_values(n):
        result = execute_bulk_operation(ids, _fail, concurrency=k)
        if result.succeeded:
            raise AssertionError(f"k={k}: nothing should succeed")
        failed_ids = result.failed_ids
        if len(failed_ids) != n or set(failed_ids) != set(ids):
            raise AssertionError(f"k={k}: failed ids {failed_ids} do not match input")
        for failure in result.failed:
            if failure.error != f"cannot mutate {failure.id}":
                raise AssertionError(f"Unexpected error text {failure.error!r}")


def test_mixed_outcomes_partition_input() -> None:
    ids = _ids(23)

    def operation(item_id: str) -> None:
        if int(item_id.split("-")[1]) % 3 == 0:
            msg = "rejected"
            raise ValueError(msg)

    for k in _concurrency_values(len(ids)):
        result = execute_bulk_operation(ids, operation, concurrency=k)
        seen = Counter(result.succeeded) + Counter(result.failed_ids)
        if seen != Counter(ids):
            raise AssertionError(f"k={k}: partition mismatch {seen}")
        expected_failed = {i for i in ids if int(i.split("-")[1]) % 3 == 0}
        if set(result.failed_ids) != expected_failed:
            raise AssertionError(f"k={k}: wrong failures {result.failed_ids}")


def test_single_failure_scenario() -> None:
    def operation(item_id: str) -> None:
        if item_id == "c":
            msg = "404 not found"
            raise RuntimeError(msg)

    result = execute_bulk_operation(["a", "b", "c", "d", "e"], operation, concurrency=2)
    if set(result.succeeded) != {"a", "b", "d", "e"} or len(result.succeeded) != 4:
        raise AssertionError(f"Unexpected succeeded {result.succeeded}")
    if result.failed != (Failed(id="c", error="404 not found"),):
        raise AssertionError(f"Unexpected failed {result.failed}")
    if result.to_dict()["failed"] != [{"bookmarkId": "c", "error": "404 not found"}]:
        raise AssertionError("Failure dict shape changed")


def test_empty_ids_never_reports_progress() -> None:
    snapshots: list[ProgressSnapshot] = []
    calls: list[str] = []

    result = execute_bulk_operation([], calls.append, concurrency=4, on_progress=snapshots.append)

    if result.succeeded or result.failed:
        raise AssertionError("Empty input must produce an empty result")
    if snapshots or calls:
        raise AssertionError("Nothing should run for empty input")


def test_single_id_uses_one_worker() -> None:
    calls: list[str] = []
    threads: set[str] = set()

    def operation(item_id: str) -> None:
        calls.append(item_id)
        threads.add(threading.current_thread().name)

    result = execute_bulk_operation(["x"], operation, concurrency=5)
    if calls != ["x"]:
        raise AssertionError(f"Operation should run exactly once, ran {calls}")
    if len(threads) != 1 or result.succeeded != ("x",):
        raise AssertionError("Expected a single worker to process the id")
    if effective_workers(5, 1) != 1:
        raise AssertionError("effective worker count must be capped by id count")


@pytest.mark.parametrize("concurrency", [0, -4])
def test_non_positive_concurrency_runs_one_worker(concurrency: int) -> None:
    lock = threading.Lock()
    in_flight = 0
    peak = 0

    def operation(_: str) -> None:
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.002)
        with lock:
            in_flight -= 1

    result = execute_bulk_operation(_ids(6), operation, concurrency=concurrency)
    if len(result.succeeded) != 6:
        raise AssertionError("A single worker must still drain the queue")
    if peak != 1:
        raise AssertionError(f"Expected one operation in flight, saw {peak}")


def test_concurrency_cap_reached_and_not_exceeded() -> None:
    workers = 3
    barrier = threading.Barrier(workers, timeout=5)
    lock = threading.Lock()
    in_flight = 0
    peak = 0

    def operation(_: str) -> None:
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        # All workers must be inside the operation at once for the barrier to release.
        barrier.wait()
        with lock:
            in_flight -= 1

    result = execute_bulk_operation(_ids(12), operation, concurrency=workers)
    if result.failed:
        raise AssertionError(f"Barrier broke, failures: {result.failed}")
    if peak != workers:
        raise AssertionError(f"Expected peak concurrency {workers}, saw {peak}")


def test_duplicate_ids_processed_independently() -> None:
    calls: list[str] = []
    lock = threading.Lock()

    def operation(item_id: str) -> None:
        with lock:
            calls.append(item_id)

    result = execute_bulk_operation(["a", "a", "b"], operation, concurrency=2)
    if Counter(calls) != Counter({"a": 2, "b": 1}):
        raise AssertionError(f"Duplicates not processed independently: {calls}")
    if Counter(result.succeeded) != Counter({"a": 2, "b": 1}):
        raise AssertionError(f"Unexpected succeeded {result.succeeded}")


def test_progress_snapshots_are_consistent_and_monotonic() -> None:
    ids = _ids(15)
    snapshots: list[ProgressSnapshot] = []

    def operation(item_id: str) -> None:
        if item_id.endswith(("3", "7")):
            msg = "boom"
            raise RuntimeError(msg)

    result = execute_bulk_operation(ids, operation, concurrency=4, on_progress=snapshots.append)

    # One snapshot per claim and one per terminal outcome.
    if len(snapshots) != 2 * len(ids):
        raise AssertionError(f"Expected {2 * len(ids)} snapshots, got {len(snapshots)}")
    previous = ProgressSnapshot(total=len(ids), completed=0, failed=0, in_progress=0)
    for snap in snapshots:
        if snap.total != len(ids):
            raise AssertionError("total must stay constant")
        if snap.completed + snap.failed + snap.in_progress > snap.total:
            raise AssertionError(f"Counter invariant violated: {snap}")
        if snap.completed < previous.completed or snap.failed < previous.failed:
            raise AssertionError(f"Snapshot went backwards: {previous} -> {snap}")
        if len(snap.errors) != snap.failed:
            raise AssertionError("errors must mirror the failed count")
        previous = snap
    final = snapshots[-1]
    if not final.finished or final.in_progress != 0:
        raise AssertionError(f"Final snapshot not terminal: {final}")
    if final.failed != len(result.failed) or final.completed != len(result.succeeded):
        raise AssertionError("Final snapshot disagrees with result")


def test_first_snapshot_is_a_claim() -> None:
    snapshots: list[ProgressSnapshot] = []
    execute_bulk_operation(["only"], _succeed, on_progress=snapshots.append)
    first, last = snapshots
    if (first.in_progress, first.completed) != (1, 0):
        raise AssertionError(f"Unexpected first snapshot {first}")
    if (last.in_progress, last.completed, last.percent) != (0, 1, 100.0):
        raise AssertionError(f"Unexpected last snapshot {last}")


def test_empty_exception_message_falls_back_to_class_name() -> None:
    def operation(_: str) -> None:
        raise SilentError

    result = execute_bulk_operation(["a"], operation)
    if result.failed[0].error != "SilentError":
        raise AssertionError(f"Unexpected fallback message {result.failed[0].error!r}")


class SilentError(Exception):
    """Exception whose ``str()`` is empty."""


class UnprintableError(Exception):
    """Exception whose ``str()`` itself raises."""

    def __str__(self) -> str:
        msg = "unprintable"
        raise TypeError(msg)


def test_unprintable_exception_still_fails_only_that_id() -> None:
    snapshots: list[ProgressSnapshot] = []

    def operation(item_id: str) -> None:
        if item_id == "b":
            raise UnprintableError

    result = execute_bulk_operation(
        ["a", "b", "c"], operation, concurrency=1, on_progress=snapshots.append,
    )
    if result.succeeded != ("a", "c"):
        raise AssertionError(f"Unexpected succeeded {result.succeeded}")
    if result.failed != (Failed(id="b", error="UnprintableError"),):
        raise AssertionError(f"Unexpected failed {result.failed}")
    if snapshots[-1].in_progress != 0:
        raise AssertionError("Every claimed id must reach a terminal outcome")


def test_run_task_classifies_outcomes() -> None:
    if run_task("a", _succeed) != Succeeded(id="a"):
        raise AssertionError("Expected a Succeeded outcome")
    outcome = run_task("b", _fail)
    if outcome != Failed(id="b", error="cannot mutate b"):
        raise AssertionError(f"Unexpected outcome {outcome}")


@pytest.mark.parametrize(
    ("operation", "concurrency"),
    [(None, 3), ("not-callable", 3), (_succeed, "3"), (_succeed, 2.5), (_succeed, True)],
)
def test_invalid_arguments_fail_before_work(operation: object, concurrency: object) -> None:
    snapshots: list[ProgressSnapshot] = []
    with pytest.raises(ConfigurationError):
        execute_bulk_operation(
            ["a"], operation, concurrency=concurrency, on_progress=snapshots.append,  # type: ignore[arg-type]
        )
    if snapshots:
        raise AssertionError("No progress may be reported for a rejected call")


def test_concurrent_calls_do_not_share_state() -> None:
    results = {}

    def run(prefix: str) -> None:
        ids = [f"{prefix}-{i}" for i in range(20)]
        results[prefix] = execute_bulk_operation(ids, _succeed, concurrency=3)

    threads = [threading.Thread(target=run, args=(p,)) for p in ("left", "right")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    for prefix, result in results.items():
        if len(result.succeeded) != 20 or not all(i.startswith(prefix) for i in result.succeeded):
            raise AssertionError(f"Batch {prefix} saw foreign ids: {result.succeeded}")

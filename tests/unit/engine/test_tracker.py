"""Unit tests for the execution tracker."""

from __future__ import annotations

import threading

from pocket.engine.tracker import ExecutionTracker
from pocket.engine.types import TaskID


def test_mark_done_reports_repeats() -> None:
    tracker = ExecutionTracker()

    assert tracker.mark_done(TaskID("lint", ".")) is False
    assert tracker.mark_done(TaskID("lint", ".")) is True
    assert tracker.mark_done(TaskID("lint", "services")) is False
    assert [str(t) for t in tracker.executed()] == ["lint@.", "lint@services"]


def test_mark_done_is_atomic_under_contention() -> None:
    tracker = ExecutionTracker()
    first_claims: list[bool] = []
    lock = threading.Lock()
    barrier = threading.Barrier(16)

    def claim() -> None:
        barrier.wait()
        already = tracker.mark_done(TaskID("install", "."))
        with lock:
            first_claims.append(not already)

    threads = [threading.Thread(target=claim) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert first_claims.count(True) == 1


def test_warnings_flag() -> None:
    tracker = ExecutionTracker()
    assert tracker.warnings() is False
    tracker.mark_warning()
    assert tracker.warnings() is True

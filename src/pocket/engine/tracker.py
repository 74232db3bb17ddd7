"""Per-invocation record of executed tasks."""

from __future__ import annotations

import threading

from pocket.engine.types import TaskID


class ExecutionTracker:
    """Thread-safe set of task executions plus a "had warnings" flag.

    A tracker lives for exactly one invocation. It is the only structure that
    sibling branches of a ``Parallel`` mutate concurrently.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done: set[TaskID] = set()
        self._warnings = False

    def mark_done(self, task_id: TaskID) -> bool:
        """Record ``task_id``; return True if it had already been recorded."""
        with self._lock:
            if task_id in self._done:
                return True
            self._done.add(task_id)
            return False

    def executed(self) -> list[TaskID]:
        with self._lock:
            return sorted(self._done)

    def mark_warning(self) -> None:
        with self._lock:
            self._warnings = True

    def warnings(self) -> bool:
        with self._lock:
            return self._warnings

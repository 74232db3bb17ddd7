"""Sequential and concurrent composition of runnables."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from pocket.engine.output import BufferedOutput
from pocket.engine.types import Runnable

if TYPE_CHECKING:
    from pocket.engine.env import ExecEnv


class Serial(Runnable):
    """Run children in order, stopping at the first error."""

    def __init__(self, *runnables: Runnable):
        self.runnables: tuple[Runnable, ...] = runnables

    def run(self, env: ExecEnv) -> None:
        for runnable in self.runnables:
            runnable.run(env)

    def __repr__(self) -> str:
        return f"Serial({len(self.runnables)} children)"


class Parallel(Runnable):
    """Run children concurrently, one thread per child.

    With more than one child every branch writes into private buffers that
    are flushed to the parent output, one contiguous block per branch, in
    completion order. The first error cancels the group token; siblings stop
    at their next cancellation checkpoint. ``run`` returns only after every
    branch has finished and re-raises the first error.
    """

    def __init__(self, *runnables: Runnable):
        self.runnables: tuple[Runnable, ...] = runnables

    def run(self, env: ExecEnv) -> None:
        if not self.runnables:
            return
        env.cancel.raise_if_cancelled()
        if len(self.runnables) == 1:
            self.runnables[0].run(env)
            return

        group = env.cancel.child()
        flush_lock = threading.Lock()
        errors: list[BaseException] = []
        errors_lock = threading.Lock()

        def branch(runnable: Runnable) -> None:
            buffered = BufferedOutput(env.output)
            child_env = env.with_output(buffered.output).with_cancel(group)
            try:
                runnable.run(child_env)
            except BaseException as exc:
                with errors_lock:
                    errors.append(exc)
                group.cancel()
            finally:
                with flush_lock:
                    buffered.flush()

        threads = [
            threading.Thread(target=branch, args=(runnable,), name=f"pocket-parallel-{i}", daemon=True)
            for i, runnable in enumerate(self.runnables)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        if errors:
            raise errors[0]

    def __repr__(self) -> str:
        return f"Parallel({len(self.runnables)} children)"


def serial(*runnables: Runnable) -> Serial:
    return Serial(*runnables)


def parallel(*runnables: Runnable) -> Parallel:
    return Parallel(*runnables)

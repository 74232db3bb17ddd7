"""Error types raised by the Pocket engine and its loaders."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pocket.engine.exec import ExecResult


class PocketError(RuntimeError):
    """Base class for every error Pocket raises on purpose."""


class ConfigError(PocketError):
    """Raised when configuration is malformed; aborts before any task runs."""


class PlanError(PocketError):
    """Raised when the runnable tree is used in a way the plan cannot serve."""


class TaskError(PocketError):
    """Raised when a task fails; carries the task name and path when known."""

    def __init__(self, message: str, *, task: str | None = None, path: str | None = None):
        super().__init__(message)
        self.task = task
        self.path = path


class UnknownTaskError(PocketError):
    """Raised when a task name is not part of the plan."""

    def __init__(self, name: str):
        super().__init__(f"unknown task {name!r}")
        self.name = name


class FlagError(PocketError):
    """Raised by ``get_flag`` on a missing flag or a type mismatch.

    Like any other body failure it reaches callers as a ``TaskError`` naming
    the task and path.
    """


class Cancelled(PocketError):
    """Raised when execution stops because its cancel token was set."""


class ExecError(PocketError):
    """Raised when an external command exits non-zero."""

    def __init__(self, result: ExecResult):
        rendered = " ".join(result.argv)
        detail = result.output.strip()
        message = f"command failed ({result.returncode}): {rendered}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.result = result

"""Core engine types shared by the planner and the runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from pocket.engine.compose import Parallel, Serial
    from pocket.engine.env import ExecEnv
    from pocket.engine.scope import Scope
    from pocket.engine.task import Task

DedupScope = Literal["local", "global"]

FLAG_TYPES: tuple[type, ...] = (str, bool, int, float)

DetectFunc: TypeAlias = Callable[[list[str], Path], list[str]]


class Runnable(ABC):
    """Executable node of the task tree.

    The set of concrete nodes is closed: ``Task``, ``Serial``, ``Parallel`` and
    ``Scope``. Consumers walk the tree with an exhaustive ``match`` over
    :data:`Node`.
    """

    @abstractmethod
    def run(self, env: ExecEnv) -> None:
        """Execute the node; raise on failure."""


Node: TypeAlias = "Task | Serial | Parallel | Scope"


@dataclass(frozen=True)
class FlagDef:
    """Declared task flag with its default value and help text."""

    default: Any
    usage: str = ""


@dataclass(frozen=True, order=True)
class TaskID:
    """Deduplication key: effective task name and execution path."""

    name: str
    path: str

    def __str__(self) -> str:
        return f"{self.name}@{self.path}"


@dataclass(frozen=True)
class ExcludePattern:
    """Exclude regex; ``tasks`` limits it to the named tasks when non-empty."""

    pattern: str
    tasks: tuple[str, ...] = ()

    @property
    def is_global(self) -> bool:
        return not self.tasks


@dataclass(frozen=True)
class FlagOverride:
    """Scope-level default for one flag of one task."""

    task_name: str
    flag_name: str
    value: Any


@dataclass(frozen=True)
class ContextValue:
    """Key/value injected into the execution environment of a scope."""

    key: Any
    value: Any = field(compare=False)

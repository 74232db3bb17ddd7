"""Directory-scoping wrapper and its option builders."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pocket.engine.task import Task
from pocket.engine.types import (
    ContextValue,
    DetectFunc,
    ExcludePattern,
    FlagOverride,
    Runnable,
)
from pocket.errors import ConfigError, PlanError

if TYPE_CHECKING:
    from pocket.engine.env import ExecEnv

ScopeOption = Callable[["Scope"], None]
TaskRef = Task | str


class Scope(Runnable):
    """Wrap a runnable and decide which directories it executes in.

    Paths are resolved once by the planner and cached in ``resolved_paths``;
    execution only reads them.
    """

    def __init__(self, inner: Runnable):
        self.inner = inner
        self.include_paths: list[str] = []
        self.excludes: list[ExcludePattern] = []
        self.skip_tasks: list[str] = []
        self.flags: list[FlagOverride] = []
        self.context_values: list[ContextValue] = []
        self.name_suffix = ""
        self.detect: DetectFunc | None = None
        self.force_run = False
        self.notice_patterns: tuple[str, ...] | None = None
        self.resolved_paths: list[str] | None = None

    def run(self, env: ExecEnv) -> None:
        if self.resolved_paths is None:
            raise PlanError("scope has not been planned; build a Plan before running the tree")
        if self.force_run:
            env = env.with_force_run()
        if self.skip_tasks:
            env = env.with_skips(self.skip_tasks)
        if self.context_values:
            env = env.with_values(self.context_values)
        env = env.with_name_suffix(self.name_suffix)
        if self.notice_patterns is not None:
            env = env.with_notice_patterns(self.notice_patterns)
        for path in self.resolved_paths:
            self.inner.run(env.with_path(path))

    def __repr__(self) -> str:
        return f"Scope(include={self.include_paths!r}, suffix={self.name_suffix!r})"


def with_options(runnable: Runnable, *options: ScopeOption) -> Scope:
    """Wrap ``runnable`` in a scope configured by ``options``.

    Example::

        with_options(
            parallel(py_lint, py_test),
            include_path("services", "libs"),
            exclude_task(py_test, "libs/legacy"),
            with_flag(py_test, "coverage", True),
        )
    """
    scope = Scope(runnable)
    for option in options:
        option(scope)
    return scope


def task_name(ref: TaskRef) -> str:
    if isinstance(ref, Task):
        return ref.name
    if isinstance(ref, str) and ref:
        return ref
    raise ConfigError(f"expected a Task or a task name, got {ref!r}")


def include_path(*patterns: str) -> ScopeOption:
    """Run only in directories matching any of ``patterns`` (regex, root-relative)."""

    def apply(scope: Scope) -> None:
        scope.include_paths.extend(patterns)

    return apply


def exclude_path(*patterns: str) -> ScopeOption:
    """Exclude matching directories for every task in the scope."""

    def apply(scope: Scope) -> None:
        scope.excludes.extend(ExcludePattern(p) for p in patterns)

    return apply


def exclude_task(task: TaskRef, *patterns: str) -> ScopeOption:
    """Exclude matching directories for one task only."""
    name = task_name(task)

    def apply(scope: Scope) -> None:
        scope.excludes.extend(ExcludePattern(p, tasks=(name,)) for p in patterns)

    return apply


def skip_task(*tasks: TaskRef) -> ScopeOption:
    """Drop tasks from the scope entirely."""
    names = [task_name(t) for t in tasks]

    def apply(scope: Scope) -> None:
        scope.skip_tasks.extend(names)

    return apply


def with_flag(task: TaskRef, flag_name: str, value: Any) -> ScopeOption:
    """Override the default of one task flag within the scope."""
    name = task_name(task)

    def apply(scope: Scope) -> None:
        scope.flags.append(FlagOverride(name, flag_name, value))

    return apply


def with_detect(detect: DetectFunc) -> ScopeOption:
    """Discover directories with ``detect``; takes precedence over include paths."""

    def apply(scope: Scope) -> None:
        scope.detect = detect

    return apply


def with_force_run() -> ScopeOption:
    """Disable deduplication for tasks in the scope."""

    def apply(scope: Scope) -> None:
        scope.force_run = True

    return apply


def with_name_suffix(suffix: str) -> ScopeOption:
    """Name tasks in the scope ``name:suffix``; nested suffixes compose."""

    def apply(scope: Scope) -> None:
        scope.name_suffix = suffix

    return apply


def with_context_value(key: Any, value: Any) -> ScopeOption:
    """Expose ``value`` to tasks in the scope through ``env.value(key)``."""

    def apply(scope: Scope) -> None:
        scope.context_values.append(ContextValue(key, value))

    return apply


def with_notice_patterns(*patterns: str) -> ScopeOption:
    """Replace the substrings that flag command output as a warning.

    Passing no patterns disables notice detection in the scope.
    """

    def apply(scope: Scope) -> None:
        scope.notice_patterns = tuple(p.lower() for p in patterns)

    return apply

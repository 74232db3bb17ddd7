"""Execution planning: resolve paths, collect task instances, validate names.

The planner walks the composition tree once, before anything executes. It
writes the resolved directories into each ``Scope`` and records, per
effective task name, where that task may run. Execution only reads the
result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, assert_never

from pocket.engine.compose import Parallel, Serial
from pocket.engine.paths import exclude_by_patterns, match_pattern, validate_pattern, walk_directories
from pocket.engine.scope import Scope
from pocket.engine.task import Task
from pocket.engine.types import ContextValue, ExcludePattern, FlagOverride, Runnable
from pocket.errors import ConfigError

if TYPE_CHECKING:
    from pocket.config import Config, PlanSettings

logger = logging.getLogger(__name__)

BUILTIN_NAMES = frozenset({"plan", "run", "tasks", "help"})


@dataclass(frozen=True)
class PathInfo:
    """Where one effective task name may run.

    ``include_paths`` are the raw include patterns of the innermost scope
    (``["."]`` for tasks outside any scope); ``resolved_paths`` are concrete
    directories after excludes.
    """

    include_paths: tuple[str, ...]
    resolved_paths: tuple[str, ...]


@dataclass(frozen=True)
class TaskInstance:
    task: Task
    name: str
    suffix: str
    context_values: tuple[ContextValue, ...]
    flags: Mapping[str, Any]
    manual: bool
    resolved_paths: tuple[str, ...]


@dataclass(frozen=True)
class TaskInfo:
    """Introspection record for one planned task."""

    name: str
    usage: str
    paths: list[str]
    flags: dict[str, Any]
    hidden: bool
    manual: bool

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "paths": list(self.paths),
            "hidden": self.hidden,
            "manual": self.manual,
        }
        if self.usage:
            data["usage"] = self.usage
        if self.flags:
            data["flags"] = dict(self.flags)
        return data


@dataclass(frozen=True)
class _WalkState:
    candidates: tuple[str, ...]
    excludes: tuple[ExcludePattern, ...] = ()
    skips: tuple[str, ...] = ()
    flags: tuple[FlagOverride, ...] = ()
    suffix: str = ""
    context_values: tuple[ContextValue, ...] = ()
    scope: Scope | None = None
    manual: bool = False
    register: bool = True

    def global_excludes(self) -> list[str]:
        return [ex.pattern for ex in self.excludes if ex.is_global]


class _Collector:
    def __init__(self, root: Path, all_dirs: Sequence[str]):
        self.root = root
        self.all_dirs = tuple(all_dirs)
        self.instances: list[TaskInstance] = []
        self.path_mappings: dict[str, PathInfo] = {}
        self._seen: set[tuple[int, str]] = set()

    def walk(self, node: Runnable, state: _WalkState) -> None:
        match node:
            case Task():
                self._visit_task(node, state)
            case Serial() | Parallel():
                for child in node.runnables:
                    self.walk(child, state)
            case Scope():
                self._visit_scope(node, state)
            case _:
                assert_never(node)  # type: ignore[arg-type]

    def _visit_task(self, task: Task, state: _WalkState) -> None:
        if task.name in state.skips:
            logger.debug("plan: %s skipped by scope", task.name)
            return
        task.validate_flags()
        name = task.effective_name(state.suffix)
        paths = self._task_paths(name, task, state)

        if isinstance(task.body, Runnable):
            self.walk(task.body, replace(state, register=False))

        if not state.register:
            return

        key = (id(task), state.suffix)
        if key not in self._seen:
            self._seen.add(key)
            flags = {o.flag_name: o.value for o in state.flags if o.task_name == task.name}
            self.instances.append(
                TaskInstance(
                    task=task,
                    name=name,
                    suffix=state.suffix,
                    context_values=state.context_values,
                    flags=MappingProxyType(flags),
                    manual=state.manual or task.manual,
                    resolved_paths=paths,
                )
            )

        includes = tuple(state.scope.include_paths) if state.scope is not None else ()
        self.path_mappings[name] = PathInfo(
            include_paths=includes or (".",),
            resolved_paths=paths,
        )

    def _task_paths(self, name: str, task: Task, state: _WalkState) -> tuple[str, ...]:
        if state.scope is None:
            return (".",)
        paths = exclude_by_patterns(list(state.candidates), state.global_excludes())
        if not paths and state.candidates:
            raise ConfigError(
                f"task {name!r}: excludes removed all {len(state.candidates)} detected path(s); "
                "adjust the excludes or skip the task"
            )
        own = [ex.pattern for ex in state.excludes if not ex.is_global and task.name in ex.tasks]
        return tuple(exclude_by_patterns(paths, own))

    def _visit_scope(self, scope: Scope, state: _WalkState) -> None:
        for pattern in scope.include_paths:
            validate_pattern(pattern)
        for ex in scope.excludes:
            validate_pattern(ex.pattern)

        scope.resolved_paths = self._filter_paths(scope, state)
        logger.debug("plan: scope %r resolved to %s", scope, scope.resolved_paths)

        suffix = state.suffix
        if scope.name_suffix:
            suffix = f"{suffix}:{scope.name_suffix}" if suffix else scope.name_suffix
        inner = replace(
            state,
            candidates=tuple(scope.resolved_paths),
            excludes=state.excludes + tuple(scope.excludes),
            skips=state.skips + tuple(scope.skip_tasks),
            flags=state.flags + tuple(scope.flags),
            suffix=suffix,
            context_values=state.context_values + tuple(scope.context_values),
            scope=scope,
        )
        self.walk(scope.inner, inner)

    def _filter_paths(self, scope: Scope, state: _WalkState) -> list[str]:
        # Outer scope-wide excludes apply before detection and include matching.
        candidates = exclude_by_patterns(list(state.candidates), state.global_excludes())
        if scope.detect is not None:
            return list(scope.detect(candidates, self.root))
        if scope.include_paths:
            return [d for d in candidates if any(match_pattern(d, p) for p in scope.include_paths)]
        if state.scope is not None or scope.excludes:
            return candidates
        return ["."]


def derive_module_directories(path_mappings: Mapping[str, PathInfo]) -> list[str]:
    """Sorted union of every task's include patterns, always including root."""
    dirs = {"."}
    for info in path_mappings.values():
        dirs.update(info.include_paths)
    return sorted(dirs)


def check_task_names(instances: Iterable[TaskInstance]) -> None:
    seen: set[str] = set()
    for instance in instances:
        if instance.name in BUILTIN_NAMES:
            raise ConfigError(f"task name {instance.name!r} conflicts with builtin command; choose a different name")
        if instance.name in seen:
            raise ConfigError(f"duplicate task name {instance.name!r}; task names must be unique")
        seen.add(instance.name)


@dataclass
class Plan:
    """Result of planning a configuration against a directory list."""

    tree: Runnable | None = None
    manual: tuple[Runnable, ...] = ()
    task_instances: list[TaskInstance] = field(default_factory=list)
    path_mappings: dict[str, PathInfo] = field(default_factory=dict)
    module_directories: list[str] = field(default_factory=lambda: ["."])
    _index: dict[str, TaskInstance] = field(default_factory=dict, repr=False)

    @classmethod
    def build(cls, config: Config | None, root: Path, all_dirs: Sequence[str]) -> Plan:
        """Plan ``config`` against an explicit root and candidate directory list."""
        if config is None or (config.auto is None and not config.manual):
            return cls(tree=config.auto if config is not None else None)

        collector = _Collector(root, all_dirs)
        if config.auto is not None:
            collector.walk(config.auto, _WalkState(candidates=collector.all_dirs))
        for runnable in config.manual:
            collector.walk(runnable, _WalkState(candidates=collector.all_dirs, manual=True))

        check_task_names(collector.instances)
        plan = cls(
            tree=config.auto,
            manual=tuple(config.manual),
            task_instances=collector.instances,
            path_mappings=collector.path_mappings,
            module_directories=derive_module_directories(collector.path_mappings),
            _index={i.name: i for i in collector.instances},
        )
        logger.debug(
            "plan: %d task(s), module directories %s", len(plan.task_instances), plan.module_directories
        )
        return plan

    def instance(self, name: str) -> TaskInstance | None:
        return self._index.get(name)

    def path_info(self, name: str) -> PathInfo | None:
        return self.path_mappings.get(name)

    def tasks(self) -> list[TaskInfo]:
        return [
            TaskInfo(
                name=i.name,
                usage=i.task.usage,
                paths=list(i.resolved_paths) or ["."],
                flags=dict(i.flags),
                hidden=i.task.hidden,
                manual=i.manual,
            )
            for i in self.task_instances
        ]

    def task_runs_in_path(self, name: str, path: str) -> bool:
        """Whether ``name`` is visible from ``path``; root sees every task."""
        if path in ("", "."):
            return True
        info = self.path_mappings.get(name)
        if info is None:
            return False
        return path in info.include_paths


def new_plan(config: Config | None, root: Path, settings: PlanSettings | None = None) -> Plan:
    """Walk the filesystem below ``root`` once and plan ``config`` against it."""
    skip_dirs = settings.skip_dirs if settings is not None else None
    include_hidden = settings.include_hidden_dirs if settings is not None else False
    all_dirs = walk_directories(root, skip_dirs=skip_dirs, include_hidden=include_hidden)
    return Plan.build(config, root, all_dirs)

"""Plan introspection: JSON payload, rich tree rendering and task listings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, assert_never

from rich.markup import escape
from rich.tree import Tree

from pocket import __version__
from pocket.engine.compose import Parallel, Serial
from pocket.engine.plan import PathInfo, Plan, TaskInfo
from pocket.engine.scope import Scope
from pocket.engine.task import Task
from pocket.engine.types import Runnable


def _join_suffix(suffix: str, extra: str) -> str:
    if not extra:
        return suffix
    return f"{suffix}:{extra}" if suffix else extra


def tree_to_dict(node: Runnable | None, mappings: Mapping[str, PathInfo], suffix: str = "") -> dict[str, Any] | None:
    """Convert the composition tree to a JSON-safe nested dict."""
    if node is None:
        return None
    match node:
        case Task():
            name = node.effective_name(suffix)
            info = mappings.get(name)
            return {
                "type": "task",
                "name": name,
                "hidden": node.hidden,
                "manual": node.manual,
                "paths": list(info.resolved_paths) if info is not None else ["."],
            }
        case Serial() | Parallel():
            return {
                "type": "serial" if isinstance(node, Serial) else "parallel",
                "children": [tree_to_dict(child, mappings, suffix) for child in node.runnables],
            }
        case Scope():
            return {
                "type": "scope",
                "include": list(node.include_paths),
                "exclude": [
                    {"pattern": ex.pattern, "tasks": list(ex.tasks)} if ex.tasks else {"pattern": ex.pattern}
                    for ex in node.excludes
                ],
                "paths": list(node.resolved_paths or []),
                "inner": tree_to_dict(node.inner, mappings, _join_suffix(suffix, node.name_suffix)),
            }
        case _:
            assert_never(node)  # type: ignore[arg-type]


def plan_to_dict(plan: Plan) -> dict[str, Any]:
    """Convert plan to deterministic JSON payload."""
    return {
        "version": __version__,
        "module_directories": list(plan.module_directories),
        "tree": tree_to_dict(plan.tree, plan.path_mappings),
        "tasks": [info.to_dict() for info in plan.tasks()],
    }


def _format_paths(paths: tuple[str, ...]) -> str:
    if not paths:
        return "[skipped]"
    if paths == (".",):
        return "[root]"
    return ", ".join(paths)


def _add_node(parent: Tree, node: Runnable, mappings: Mapping[str, PathInfo], suffix: str) -> None:
    match node:
        case Task():
            name = node.effective_name(suffix)
            markers = [m for m, on in (("hidden", node.hidden), ("manual", node.manual)) if on]
            label = f"[bold]{escape(name)}[/bold]"
            if markers:
                label += f" [dim]\\[{', '.join(markers)}][/dim]"
            info = mappings.get(name)
            paths = _format_paths(info.resolved_paths) if info is not None else "[root]"
            parent.add(label).add(escape(f"paths: {paths}"), style="dim")
        case Serial():
            branch = parent.add("[cyan]Serial[/cyan]")
            for child in node.runnables:
                _add_node(branch, child, mappings, suffix)
        case Parallel():
            branch = parent.add("[magenta]Parallel[/magenta]")
            for child in node.runnables:
                _add_node(branch, child, mappings, suffix)
        case Scope():
            child_suffix = _join_suffix(suffix, node.name_suffix)
            if not (node.include_paths or node.excludes or node.detect is not None):
                _add_node(parent, node.inner, mappings, child_suffix)
                return
            parts = []
            if node.include_paths:
                parts.append("include: " + ", ".join(node.include_paths))
            if node.excludes:
                parts.append("exclude: " + ", ".join(ex.pattern for ex in node.excludes))
            if node.detect is not None:
                parts.append("detect")
            branch = parent.add(f"[green]With paths[/green] [dim]({escape('; '.join(parts))})[/dim]")
            _add_node(branch, node.inner, mappings, child_suffix)
        case _:
            assert_never(node)  # type: ignore[arg-type]


def render_plan_tree(plan: Plan) -> Tree:
    """Rich tree of the auto composition tree and manual tasks."""
    root = Tree("[bold]Auto[/bold]")
    if plan.tree is not None:
        _add_node(root, plan.tree, plan.path_mappings, "")
    if plan.manual:
        manual = root.add("[bold]Manual[/bold]")
        for runnable in plan.manual:
            _add_node(manual, runnable, plan.path_mappings, "")
    return root


@dataclass(frozen=True)
class TaskListing:
    auto: list[TaskInfo]
    manual: list[TaskInfo]


def visible_tasks(plan: Plan, task_scope: str | None) -> TaskListing:
    """Non-hidden tasks visible from ``task_scope``, split into auto and manual."""
    scope = task_scope or "."
    auto: list[TaskInfo] = []
    manual: list[TaskInfo] = []
    for info in plan.tasks():
        if info.hidden or not plan.task_runs_in_path(info.name, scope):
            continue
        (manual if info.manual else auto).append(info)
    return TaskListing(auto=auto, manual=manual)

"""Entry points that run a planned configuration or a single task."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from pocket.engine.tracker import ExecutionTracker
from pocket.errors import Cancelled, TaskError, UnknownTaskError

if TYPE_CHECKING:
    from pocket.config import Config
    from pocket.engine.env import ExecEnv
    from pocket.engine.plan import Plan

logger = logging.getLogger(__name__)


def execute(config: Config, plan: Plan, env: ExecEnv) -> ExecutionTracker:
    """Run every auto task of ``config`` and return the tracker used."""
    tracker = ExecutionTracker()
    if config.auto is None:
        return tracker
    env = replace(env, plan=plan, tracker=tracker, auto_exec=True)
    config.auto.run(env)
    return tracker


def execute_task(
    name: str,
    plan: Plan,
    env: ExecEnv,
    task_scope: str | None = None,
) -> ExecutionTracker:
    """Run the task registered under effective ``name``.

    ``task_scope`` naming a subdirectory restricts execution to that
    directory; otherwise the task runs in every path the plan resolved.
    """
    instance = plan.instance(name)
    if instance is None:
        raise UnknownTaskError(name)

    if task_scope and task_scope != ".":
        paths: tuple[str, ...] = (task_scope,)
    else:
        info = plan.path_info(name)
        paths = info.resolved_paths if info is not None and info.resolved_paths else (".",)

    tracker = ExecutionTracker()
    env = replace(env, plan=plan, tracker=tracker, auto_exec=False).with_name_suffix(instance.suffix)
    if instance.context_values:
        env = env.with_values(instance.context_values)

    for path in paths:
        logger.debug("run %s in %s", name, path)
        try:
            instance.task.run(env.with_path(path))
        except (Cancelled, TaskError):
            raise
        except Exception as exc:
            raise TaskError(f"task {name} in {path}: {exc}", task=name, path=path) from exc
    return tracker

"""Named leaf tasks and typed flag access."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar, Union

from pocket.engine.types import FLAG_TYPES, DedupScope, FlagDef, Runnable, TaskID
from pocket.errors import Cancelled, ConfigError, FlagError, TaskError

if TYPE_CHECKING:
    from pocket.engine.env import ExecEnv

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

TaskBody = Union[Callable[["ExecEnv"], None], Runnable]


@dataclass(eq=False)
class Task(Runnable):
    """Named unit of work.

    ``body`` is either a function taking the execution environment or a
    composed runnable. Tasks compare by identity: referencing the same object
    twice in a tree yields a single planned task.

    Example::

        lint = Task(
            name="py-lint",
            usage="lint python files",
            flags={"fix": FlagDef(default=False, usage="apply fixes")},
            body=lambda env: run_command(env, "ruff", "check"),
        )
    """

    name: str
    usage: str = ""
    body: TaskBody | None = None
    flags: dict[str, FlagDef] = field(default_factory=dict)
    dedup: DedupScope = "local"
    hidden: bool = False
    manual: bool = False
    hide_header: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigError("task name must not be empty")
        if self.body is None:
            raise ConfigError(f"task {self.name!r} has no implementation")
        if self.dedup not in ("local", "global"):
            raise ConfigError(f"task {self.name!r}: unknown dedup scope {self.dedup!r}")

    @property
    def is_global(self) -> bool:
        return self.dedup == "global"

    def effective_name(self, suffix: str) -> str:
        return f"{self.name}:{suffix}" if suffix else self.name

    def validate_flags(self) -> None:
        """Reject flag defaults of unsupported types."""
        for flag_name, definition in sorted(self.flags.items()):
            if type(definition.default) not in FLAG_TYPES:
                raise ConfigError(
                    f"task {self.name!r}: flag {flag_name!r} has unsupported default type "
                    f"{type(definition.default).__name__}"
                )

    def run(self, env: ExecEnv) -> None:
        name = self.effective_name(env.name_suffix)
        if self.name in env.skip_tasks:
            logger.debug("skip %s: skipped by scope", name)
            return
        plan = env.plan
        instance = plan.instance(name) if plan is not None else None

        if instance is not None and instance.manual and env.auto_exec:
            logger.debug("skip %s: manual task in auto mode", name)
            return

        if self.flags:
            resolved: dict[str, Any] = {k: d.default for k, d in self.flags.items()}
            if instance is not None:
                resolved.update(instance.flags)
            resolved.update(env.cli_flags)
            env = env.with_flags(resolved)

        if not env.force_run and env.tracker is not None:
            task_id = TaskID(self.name, ".") if self.is_global else TaskID(name, env.path)
            if env.tracker.mark_done(task_id):
                logger.debug("skip %s: already executed", task_id)
                return

        if plan is not None:
            info = plan.path_info(name)
            if info is not None and env.path not in info.resolved_paths:
                logger.debug("skip %s: excluded at %s", name, env.path)
                return

        if not self.hide_header:
            if env.path in ("", "."):
                env.printf(f":: {name}\n")
            else:
                env.printf(f":: {name} [{env.path}]\n")

        self._execute(name, env)

    def _execute(self, name: str, env: ExecEnv) -> None:
        try:
            if isinstance(self.body, Runnable):
                self.body.run(env)
            else:
                self.body(env)  # type: ignore[misc]
        except (Cancelled, TaskError):
            raise
        except Exception as exc:
            raise TaskError(f"task {name} in {env.path}: {exc}", task=name, path=env.path) from exc


def get_flag(env: ExecEnv, name: str, kind: type[_T]) -> _T:
    """Return the resolved value of flag ``name``, checked against ``kind``.

    Raises ``FlagError`` when the task has no flags, the flag is unknown or
    the value has another type. ``bool`` never satisfies ``int`` or ``float``.
    """
    flags = env.flags
    if flags is None:
        raise FlagError(f"flag {name!r}: no flags in context")
    if name not in flags:
        raise FlagError(f"flag {name!r}: not found")
    value = flags[name]
    mismatch = not isinstance(value, kind) or (kind is not bool and isinstance(value, bool))
    if mismatch:
        raise FlagError(
            f"flag {name!r}: expected {kind.__name__}, got {type(value).__name__}"
        )
    return value

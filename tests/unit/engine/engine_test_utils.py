"""Helpers for engine tests."""

from __future__ import annotations

import io
import threading
from pathlib import Path
from typing import Any

from pocket.config import Config
from pocket.engine.env import ExecEnv
from pocket.engine.output import Output
from pocket.engine.plan import Plan
from pocket.engine.task import Task
from pocket.engine.tracker import ExecutionTracker
from pocket.engine.types import FlagDef, Runnable

DIRS = [
    ".",
    "libs",
    "libs/core",
    "libs/legacy",
    "other",
    "other/services",
    "services",
    "services/api",
    "services/web",
]


class Recorder:
    """Thread-safe log of (task name, path) executions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str]] = []

    def record(self, name: str, env: ExecEnv) -> None:
        with self._lock:
            self.calls.append((name, env.path))

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def paths_for(self, name: str) -> list[str]:
        return [path for n, path in self.calls if n == name]


def recording_task(name: str, recorder: Recorder, **kwargs: Any) -> Task:
    def body(env: ExecEnv) -> None:
        recorder.record(name, env)

    return Task(name=name, body=body, **kwargs)


def flag_task(name: str, seen: list[tuple[str, Any]], **flags: Any) -> Task:
    """Task that records the resolved value of every declared flag."""
    lock = threading.Lock()

    def body(env: ExecEnv) -> None:
        assert env.flags is not None
        with lock:
            for flag_name in sorted(flags):
                seen.append((env.name_suffix or name, env.flags[flag_name]))

    return Task(name=name, body=body, flags={k: FlagDef(default=v) for k, v in flags.items()})


def captured_output() -> tuple[Output, io.StringIO, io.StringIO]:
    out = io.StringIO()
    err = io.StringIO()
    return Output(stdout=out, stderr=err), out, err


def make_env(root: Path | None = None, plan: Plan | None = None, **kwargs: Any) -> tuple[ExecEnv, io.StringIO]:
    output, out, _err = captured_output()
    env = ExecEnv(
        root=root or Path("/repo"),
        output=output,
        tracker=ExecutionTracker(),
        plan=plan,
        **kwargs,
    )
    return env, out


def build(auto: Runnable | None = None, manual: list[Runnable] | None = None, dirs: list[str] | None = None) -> Plan:
    config = Config(auto=auto, manual=manual or [])
    return Plan.build(config, Path("/repo"), dirs if dirs is not None else DIRS)

"""Immutable execution environment threaded through the runnable tree."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pocket.engine.output import Output
from pocket.errors import Cancelled

if TYPE_CHECKING:
    from pocket.engine.plan import Plan
    from pocket.engine.tracker import ExecutionTracker
    from pocket.engine.types import ContextValue


def _empty() -> Mapping[Any, Any]:
    return MappingProxyType({})


class CancelToken:
    """Cooperative cancellation flag, optionally linked to a parent token."""

    def __init__(self, parent: CancelToken | None = None):
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        token: CancelToken | None = self
        while token is not None:
            if token._event.is_set():
                return True
            token = token._parent
        return False

    def child(self) -> CancelToken:
        """Return a token cancelled by either itself or this token."""
        return CancelToken(parent=self)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise Cancelled("execution cancelled")


@dataclass(frozen=True)
class ExecEnv:
    """Everything a runnable needs to execute.

    Scoped changes never mutate an environment; the ``with_*`` helpers return
    a modified copy, so concurrent branches each hold their own snapshot.
    """

    root: Path
    path: str = "."
    verbose: bool = False
    force_run: bool = False
    name_suffix: str = ""
    auto_exec: bool = False
    git_diff: bool = False
    flags: Mapping[str, Any] | None = None
    cli_flags: Mapping[str, Any] = field(default_factory=_empty)
    tracker: ExecutionTracker | None = None
    plan: Plan | None = None
    output: Output = field(default_factory=Output.std)
    cancel: CancelToken = field(default_factory=CancelToken)
    values: Mapping[Any, Any] = field(default_factory=_empty)
    env_set: Mapping[str, str] = field(default_factory=_empty)
    env_filter: tuple[str, ...] = ()
    notice_patterns: tuple[str, ...] | None = None
    skip_tasks: frozenset[str] = frozenset()

    def with_path(self, path: str) -> ExecEnv:
        return replace(self, path=path)

    def with_name_suffix(self, suffix: str) -> ExecEnv:
        if not suffix:
            return self
        combined = f"{self.name_suffix}:{suffix}" if self.name_suffix else suffix
        return replace(self, name_suffix=combined)

    def with_force_run(self) -> ExecEnv:
        return replace(self, force_run=True)

    def with_flags(self, flags: Mapping[str, Any]) -> ExecEnv:
        return replace(self, flags=MappingProxyType(dict(flags)))

    def with_cli_flags(self, flags: Mapping[str, Any]) -> ExecEnv:
        return replace(self, cli_flags=MappingProxyType(dict(flags)))

    def with_values(self, values: Iterable[ContextValue]) -> ExecEnv:
        merged = dict(self.values)
        for item in values:
            merged[item.key] = item.value
        return replace(self, values=MappingProxyType(merged))

    def with_env(self, key_value: str) -> ExecEnv:
        """Set a subprocess environment variable given as ``KEY=value``."""
        key, sep, value = key_value.partition("=")
        if not sep or not key:
            return self
        merged = dict(self.env_set)
        merged[key] = value
        return replace(self, env_set=MappingProxyType(merged))

    def without_env(self, prefix: str) -> ExecEnv:
        """Drop subprocess environment variables whose name starts with ``prefix``."""
        return replace(self, env_filter=(*self.env_filter, prefix))

    def with_notice_patterns(self, patterns: tuple[str, ...]) -> ExecEnv:
        return replace(self, notice_patterns=patterns)

    def with_skips(self, names: Iterable[str]) -> ExecEnv:
        """Mark task names that must not run below this point."""
        return replace(self, skip_tasks=self.skip_tasks | frozenset(names))

    def with_output(self, output: Output) -> ExecEnv:
        return replace(self, output=output)

    def with_cancel(self, cancel: CancelToken) -> ExecEnv:
        return replace(self, cancel=cancel)

    def value(self, key: Any, default: Any = None) -> Any:
        return self.values.get(key, default)

    def printf(self, text: str) -> None:
        self.output.stdout.write(text)

    def eprintf(self, text: str) -> None:
        self.output.stderr.write(text)

    def from_root(self, *parts: str) -> Path:
        """Absolute path below the repository root."""
        return self.root.joinpath(*parts)

    @property
    def workdir(self) -> Path:
        """Absolute directory of the current execution path."""
        return self.root if self.path in ("", ".") else self.root / self.path

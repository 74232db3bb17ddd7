"""External command runner bound to the execution environment."""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING, cast

from pocket.errors import Cancelled, ExecError

if TYPE_CHECKING:
    from pocket.engine.env import ExecEnv

logger = logging.getLogger(__name__)

WAIT_DELAY = 5.0
POLL_INTERVAL = 0.1
EXIT_NOT_STARTED = 127

DEFAULT_NOTICE_PATTERNS: tuple[str, ...] = ("warn", "deprecat", "notice", "caution", "error")


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    output: str


def contains_notice(output: str, patterns: tuple[str, ...]) -> bool:
    """Case-insensitive substring check of ``output`` against ``patterns``."""
    if not patterns:
        return False
    lower = output.lower()
    return any(p in lower for p in patterns)


def bin_dir(root: Path) -> Path:
    return root / ".pocket" / "bin"


def build_environ(env: ExecEnv, base: dict[str, str] | None = None) -> dict[str, str]:
    """Process environment for a command run under ``env``.

    Filtered prefixes are removed, explicit overrides applied, ``.pocket/bin``
    is prepended to ``PATH`` and ``TASK_SCOPE`` names the current path.
    """
    environ = dict(os.environ if base is None else base)
    for key in list(environ):
        if any(key.startswith(prefix) for prefix in env.env_filter):
            del environ[key]
    environ.update(env.env_set)
    current = environ.get("PATH", "")
    binaries = str(bin_dir(env.root))
    environ["PATH"] = f"{binaries}{os.pathsep}{current}" if current else binaries
    environ["TASK_SCOPE"] = env.path or "."
    return environ


def _resolve(name: str, environ: dict[str, str]) -> str:
    if os.sep in name or (os.altsep and os.altsep in name):
        return name
    return shutil.which(name, path=environ.get("PATH")) or name


def _interrupt(proc: subprocess.Popen[str]) -> None:
    if proc.poll() is not None:
        return
    if sys.platform == "win32":
        proc.terminate()
    else:
        proc.send_signal(signal.SIGINT)
    try:
        proc.wait(timeout=WAIT_DELAY)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait(timeout=WAIT_DELAY)


def run_command(env: ExecEnv, *argv: str, check: bool = True) -> ExecResult:
    """Run ``argv`` in the current path of ``env``.

    In verbose mode output streams to the environment's stdout. Otherwise it
    is captured and shown only when the command fails (inside the raised
    ``ExecError``) or when it contains a notice pattern, in which case it is
    echoed to stderr and the tracker records a warning.

    The cancel token is polled while waiting; on cancellation the process gets
    SIGINT, then a kill after ``WAIT_DELAY`` seconds, and ``Cancelled`` is
    raised.
    """
    if not argv:
        raise ValueError("run_command requires a command")
    env.cancel.raise_if_cancelled()

    environ = build_environ(env)
    cwd = env.workdir
    command = [_resolve(argv[0], environ), *argv[1:]]
    logger.debug("exec %s in %s", " ".join(argv), cwd)

    try:
        proc = subprocess.Popen(
            command,
            cwd=cwd,
            env=environ,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise ExecError(
            ExecResult(argv=tuple(argv), cwd=cwd.resolve(), returncode=EXIT_NOT_STARTED, output=str(exc))
        ) from exc
    stream = cast(IO[str], proc.stdout)
    chunks: list[str] = []

    def pump() -> None:
        for line in stream:
            if env.verbose:
                env.printf(line)
            else:
                chunks.append(line)

    reader = threading.Thread(target=pump, name="pocket-exec-reader", daemon=True)
    reader.start()
    try:
        while True:
            try:
                proc.wait(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if env.cancel.cancelled:
                    _interrupt(proc)
                    raise Cancelled(f"{' '.join(argv)}: cancelled")
    finally:
        reader.join(timeout=WAIT_DELAY)

    result = ExecResult(
        argv=tuple(argv),
        cwd=cwd.resolve(),
        returncode=proc.returncode,
        output="".join(chunks),
    )
    if check and result.returncode != 0:
        raise ExecError(result)

    patterns = env.notice_patterns if env.notice_patterns is not None else DEFAULT_NOTICE_PATTERNS
    if not env.verbose and contains_notice(result.output, patterns):
        env.eprintf(result.output)
        if env.tracker is not None:
            env.tracker.mark_warning()
    return result

"""Directory discovery and path pattern matching."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

from pocket.engine.types import DetectFunc
from pocket.errors import ConfigError

DEFAULT_SKIP_DIRS: tuple[str, ...] = (
    "node_modules",
    "vendor",
    "__pycache__",
    "venv",
    "site-packages",
)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    try:
        exact = re.compile(pattern)
        nested = re.compile(f"(?:{pattern})/")
    except re.error as exc:
        raise ConfigError(f"invalid pattern {pattern!r}: {exc}") from exc
    return exact, nested


def validate_pattern(pattern: str) -> None:
    """Raise ``ConfigError`` if ``pattern`` is not a valid regular expression."""
    _compile(pattern)


def match_pattern(path: str, pattern: str) -> bool:
    """Return True if ``path`` is ``pattern`` or lies beneath a match of it.

    Patterns are regular expressions relative to the repository root, e.g.
    ``services`` matches ``services`` and ``services/api`` but not
    ``other/services``.
    """
    exact, nested = _compile(pattern)
    return exact.fullmatch(path) is not None or nested.match(path) is not None


def exclude_by_patterns(dirs: Iterable[str], patterns: Iterable[str]) -> list[str]:
    """Drop every directory matched by any of ``patterns``."""
    patterns = list(patterns)
    if not patterns:
        return list(dirs)
    return [d for d in dirs if not any(match_pattern(d, p) for p in patterns)]


def find_git_root(start: Path) -> Path:
    """Return the nearest ancestor of ``start`` containing ``.git``.

    Falls back to ``start`` itself when no repository is found.
    """
    current = start.resolve()
    while True:
        if (current / ".git").exists():
            return current
        parent = current.parent
        if parent == current:
            return start.resolve()
        current = parent


def walk_directories(
    root: Path,
    skip_dirs: Iterable[str] | None = None,
    include_hidden: bool = False,
) -> list[str]:
    """List ``"."`` and every directory below ``root`` as forward-slash paths."""
    skip = set(DEFAULT_SKIP_DIRS if skip_dirs is None else skip_dirs)
    dirs = ["."]
    for current, subdirs, _files in os.walk(root):
        kept = []
        for name in sorted(subdirs):
            if not include_hidden and name.startswith("."):
                continue
            if name in skip:
                continue
            kept.append(name)
        # prune in place so os.walk does not descend into skipped dirs
        subdirs[:] = kept
        rel = Path(current).relative_to(root)
        for name in kept:
            dirs.append((rel / name).as_posix())
    return [".", *sorted(dirs[1:])]


def detect_by_file(*filenames: str) -> DetectFunc:
    """Build a detect function keeping directories that contain any of ``filenames``."""

    def detect(dirs: list[str], root: Path) -> list[str]:
        found = []
        for d in dirs:
            base = root / d
            if any((base / name).exists() for name in filenames):
                found.append(d)
        return found

    return detect

"""Unit tests for the immutable execution environment."""

from __future__ import annotations

from pathlib import Path

import pytest

from pocket.engine.env import CancelToken, ExecEnv
from pocket.engine.types import ContextValue
from pocket.errors import Cancelled


def test_overrides_return_copies() -> None:
    env = ExecEnv(root=Path("/repo"))

    scoped = env.with_path("services").with_force_run().with_flags({"fix": True})

    assert env.path == "."
    assert env.force_run is False
    assert env.flags is None
    assert scoped.path == "services"
    assert scoped.force_run is True
    assert dict(scoped.flags or {}) == {"fix": True}


def test_name_suffix_composes() -> None:
    env = ExecEnv(root=Path("/repo"))

    assert env.with_name_suffix("").name_suffix == ""
    assert env.with_name_suffix("3.9").with_name_suffix("slow").name_suffix == "3.9:slow"


def test_values_later_scopes_win() -> None:
    env = ExecEnv(root=Path("/repo")).with_values([ContextValue("python", "3.9")])
    inner = env.with_values([ContextValue("python", "3.12"), ContextValue("os", "linux")])

    assert env.value("python") == "3.9"
    assert inner.value("python") == "3.12"
    assert inner.value("os") == "linux"
    assert inner.value("missing", "dflt") == "dflt"


def test_env_overrides() -> None:
    env = ExecEnv(root=Path("/repo")).with_env("A=1").with_env("broken").without_env("SECRET_")

    assert dict(env.env_set) == {"A": "1"}
    assert env.env_filter == ("SECRET_",)


def test_workdir() -> None:
    env = ExecEnv(root=Path("/repo"))
    assert env.workdir == Path("/repo")
    assert env.with_path("libs/core").workdir == Path("/repo/libs/core")


def test_cancel_token_propagates_from_parent_only() -> None:
    parent = CancelToken()
    child = parent.child()
    sibling = parent.child()

    child.cancel()
    assert child.cancelled
    assert not parent.cancelled
    assert not sibling.cancelled

    parent.cancel()
    assert sibling.cancelled
    with pytest.raises(Cancelled):
        sibling.raise_if_cancelled()

"""Tests for plan JSON export, tree rendering and task visibility."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console

from pocket import __version__
from pocket.config import Config
from pocket.engine.compose import parallel, serial
from pocket.engine.plan import Plan
from pocket.engine.scope import exclude_task, include_path, with_name_suffix, with_options
from pocket.engine.task import Task
from pocket.reporting import plan_to_dict, render_plan_tree, visible_tasks

DIRS = [".", "libs", "libs/core", "services", "services/api"]


def _noop(env) -> None:
    _ = env


def _plan() -> Plan:
    lint = Task(name="lint", usage="lint code", body=_noop)
    test = Task(name="test", body=_noop)
    hidden = Task(name="internal", body=_noop, hidden=True)
    release = Task(name="release", usage="cut a release", body=_noop)
    auto = serial(
        with_options(
            parallel(lint, with_options(test, with_name_suffix("fast"))),
            include_path("services"),
            exclude_task(lint, "services/api"),
        ),
        hidden,
    )
    return Plan.build(Config(auto=auto, manual=[release]), Path("/repo"), DIRS)


def test_plan_to_dict_payload() -> None:
    payload = plan_to_dict(_plan())

    assert payload["version"] == __version__
    assert payload["module_directories"] == [".", "services"]

    tree = payload["tree"]
    assert tree["type"] == "serial"
    scope = tree["children"][0]
    assert scope["type"] == "scope"
    assert scope["include"] == ["services"]
    assert scope["exclude"] == [{"pattern": "services/api", "tasks": ["lint"]}]
    lint, fast = scope["inner"]["children"]
    assert lint == {"type": "task", "name": "lint", "hidden": False, "manual": False, "paths": ["services"]}
    assert fast["type"] == "scope"
    assert fast["inner"]["name"] == "test:fast"
    assert fast["inner"]["paths"] == ["services", "services/api"]

    names = [t["name"] for t in payload["tasks"]]
    assert names == ["lint", "test:fast", "internal", "release"]
    assert payload["tasks"][0]["usage"] == "lint code"
    assert payload["tasks"][3]["manual"] is True
    json.dumps(payload)


def test_render_plan_tree_mentions_every_task() -> None:
    console = Console(record=True, width=120)
    console.print(render_plan_tree(_plan()))
    text = console.export_text()

    for expected in ("Serial", "Parallel", "With paths", "lint", "test:fast", "internal", "Manual", "release"):
        assert expected in text
    assert "paths: services, services/api" in text


def test_visible_tasks_from_root() -> None:
    listing = visible_tasks(_plan(), None)

    assert [t.name for t in listing.auto] == ["lint", "test:fast"]
    assert [t.name for t in listing.manual] == ["release"]


def test_visible_tasks_from_subdirectory() -> None:
    listing = visible_tasks(_plan(), "services")
    assert [t.name for t in listing.auto] == ["lint"]
    assert listing.manual == []

    assert visible_tasks(_plan(), "libs").auto == []

"""Tests for plan settings and configuration module loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from pocket.config import Config, PlanSettings, config_path, load_config, load_plan_settings
from pocket.errors import ConfigError


def _write(root: Path, name: str, text: str) -> Path:
    path = root / ".pocket" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_no_settings_file(tmp_path: Path) -> None:
    assert load_plan_settings(tmp_path) is None


def test_toml_settings(tmp_path: Path) -> None:
    _write(tmp_path, "pocket.toml", '[plan]\nskip_dirs = ["dist"]\ninclude_hidden_dirs = true\n')

    assert load_plan_settings(tmp_path) == PlanSettings(skip_dirs=("dist",), include_hidden_dirs=True)


def test_toml_preferred_over_yaml(tmp_path: Path) -> None:
    _write(tmp_path, "pocket.toml", "[plan]\nskip_dirs = []\n")
    _write(tmp_path, "pocket.yaml", "plan:\n  skip_dirs: [build]\n")

    assert load_plan_settings(tmp_path) == PlanSettings(skip_dirs=())


def test_yaml_settings(tmp_path: Path) -> None:
    _write(tmp_path, "pocket.yaml", "plan:\n  skip_dirs:\n    - build\n    - out\n")

    settings = load_plan_settings(tmp_path)

    assert settings is not None
    assert settings.skip_dirs == ("build", "out")
    assert settings.include_hidden_dirs is False


def test_empty_yaml_means_defaults(tmp_path: Path) -> None:
    _write(tmp_path, "pocket.yaml", "")
    assert load_plan_settings(tmp_path) == PlanSettings()


def test_malformed_toml(tmp_path: Path) -> None:
    _write(tmp_path, "pocket.toml", "[plan\n")
    with pytest.raises(ConfigError, match="Malformed TOML"):
        load_plan_settings(tmp_path)


def test_malformed_yaml(tmp_path: Path) -> None:
    _write(tmp_path, "pocket.yaml", "plan: [unclosed\n")
    with pytest.raises(ConfigError, match="Malformed YAML"):
        load_plan_settings(tmp_path)


def test_schema_violations_listed(tmp_path: Path) -> None:
    _write(tmp_path, "pocket.toml", '[plan]\nskip_dirs = "dist"\nunknown = 1\n')

    with pytest.raises(ConfigError, match="Invalid plan settings") as excinfo:
        load_plan_settings(tmp_path)

    message = str(excinfo.value)
    assert "plan.skip_dirs" in message
    assert "unknown" in message


def test_load_config_module(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "config.py",
        "from pocket import Config, Task\n"
        "lint = Task(name='lint', body=lambda env: None)\n"
        "config = Config(auto=lint, manual=[Task(name='release', body=lambda env: None)])\n",
    )

    config = load_config(path)

    assert isinstance(config, Config)
    assert config.auto is not None
    assert len(config.manual) == 1
    assert config_path(tmp_path) == path


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="No configuration found"):
        load_config(config_path(tmp_path))


def test_load_config_without_config_object(tmp_path: Path) -> None:
    path = _write(tmp_path, "config.py", "value = 1\n")
    with pytest.raises(ConfigError, match="must define"):
        load_config(path)


def test_load_config_import_error(tmp_path: Path) -> None:
    path = _write(tmp_path, "config.py", "raise ImportError('no such tool')\n")
    with pytest.raises(ConfigError, match="no such tool"):
        load_config(path)


def test_load_config_propagates_task_config_errors(tmp_path: Path) -> None:
    path = _write(tmp_path, "config.py", "from pocket import Task\nTask(name='')\n")
    with pytest.raises(ConfigError, match="must not be empty"):
        load_config(path)

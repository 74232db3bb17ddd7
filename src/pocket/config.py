"""User configuration: the task tree and repository plan settings.

A repository configures Pocket with two files under ``.pocket/``:

- ``config.py`` defines ``config = Config(...)`` with the auto tree and
  manual tasks;
- ``pocket.toml`` (or ``pocket.yaml``) holds plan settings such as the
  directories skipped during the filesystem walk.
"""

from __future__ import annotations

import importlib.util
import json
import tomllib
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from typing import Any

import yaml
from jsonschema.validators import Draft202012Validator

from pocket.engine.types import Runnable
from pocket.errors import ConfigError

POCKET_DIR = ".pocket"
CONFIG_MODULE = "config.py"
SETTINGS_SCHEMA = "plan_settings.schema.json"


@dataclass(frozen=True)
class PlanSettings:
    """Filesystem walk settings.

    ``skip_dirs=None`` means the default skip list; an empty tuple skips
    nothing.
    """

    skip_dirs: tuple[str, ...] | None = None
    include_hidden_dirs: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanSettings:
        plan = data.get("plan", {})
        skip = plan.get("skip_dirs")
        return cls(
            skip_dirs=tuple(skip) if skip is not None else None,
            include_hidden_dirs=bool(plan.get("include_hidden_dirs", False)),
        )


@dataclass
class Config:
    """Top-level configuration.

    ``auto`` runs on a bare ``pok``; ``manual`` tasks only run when named.
    """

    auto: Runnable | None = None
    manual: list[Runnable] = field(default_factory=list)
    plan: PlanSettings | None = None


def _schema() -> dict[str, Any]:
    text = files("pocket.schemas").joinpath(SETTINGS_SCHEMA).read_text(encoding="utf-8")
    return json.loads(text)


def validate_settings(data: Any, source: Path) -> None:
    """Raise ``ConfigError`` listing every schema violation in ``data``."""
    validator = Draft202012Validator(_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        messages = [
            f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
            for e in errors
        ]
        raise ConfigError(
            f"Invalid plan settings in {source}:\n" + "\n".join(f"  - {msg}" for msg in messages)
        )


def load_plan_settings(root: Path) -> PlanSettings | None:
    """Load plan settings from .pocket/pocket.toml or .pocket/pocket.yaml.

    Priority order:
    1. .pocket/pocket.toml (preferred)
    2. .pocket/pocket.yaml (fallback)

    Returns:
        PlanSettings if a settings file exists, None otherwise

    Raises:
        ConfigError: If the file is malformed or fails schema validation
    """
    pocket_dir = root / POCKET_DIR

    toml_path = pocket_dir / "pocket.toml"
    if toml_path.exists():
        try:
            with open(toml_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Malformed TOML config at {toml_path}: {e}") from e
        validate_settings(data, toml_path)
        return PlanSettings.from_dict(data)

    yaml_path = pocket_dir / "pocket.yaml"
    if yaml_path.exists():
        try:
            with open(yaml_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Malformed YAML config at {yaml_path}: {e}") from e
        validate_settings(data, yaml_path)
        return PlanSettings.from_dict(data)

    return None


def load_config(path: Path) -> Config:
    """Import the configuration module at ``path`` and return its ``config``."""
    if not path.exists():
        raise ConfigError(f"No configuration found at {path}")
    spec = importlib.util.spec_from_file_location("pocket_user_config", path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import configuration from {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(f"Failed to load configuration {path}: {e}") from e

    config = getattr(module, "config", None)
    if not isinstance(config, Config):
        raise ConfigError(f"{path} must define 'config = Config(...)'")
    return config


def config_path(root: Path) -> Path:
    return root / POCKET_DIR / CONFIG_MODULE

"""Pocket: compose repository tasks and run them across directories."""

__version__ = "0.4.0"

from pocket.config import Config, PlanSettings
from pocket.engine.compose import Parallel, Serial, parallel, serial
from pocket.engine.env import CancelToken, ExecEnv
from pocket.engine.exec import ExecResult, run_command
from pocket.engine.executor import execute, execute_task
from pocket.engine.paths import detect_by_file
from pocket.engine.plan import Plan, TaskInfo, new_plan
from pocket.engine.scope import (
    Scope,
    exclude_path,
    exclude_task,
    include_path,
    skip_task,
    with_context_value,
    with_detect,
    with_flag,
    with_force_run,
    with_name_suffix,
    with_notice_patterns,
    with_options,
)
from pocket.engine.task import Task, get_flag
from pocket.engine.types import FlagDef, Runnable, TaskID
from pocket.errors import (
    Cancelled,
    ConfigError,
    ExecError,
    FlagError,
    PlanError,
    PocketError,
    TaskError,
    UnknownTaskError,
)

__all__ = [
    "CancelToken",
    "Cancelled",
    "Config",
    "ConfigError",
    "ExecEnv",
    "ExecError",
    "ExecResult",
    "FlagDef",
    "FlagError",
    "Parallel",
    "Plan",
    "PlanError",
    "PlanSettings",
    "PocketError",
    "Runnable",
    "Scope",
    "Serial",
    "Task",
    "TaskError",
    "TaskID",
    "TaskInfo",
    "UnknownTaskError",
    "__version__",
    "detect_by_file",
    "exclude_path",
    "exclude_task",
    "execute",
    "execute_task",
    "get_flag",
    "include_path",
    "new_plan",
    "parallel",
    "run_command",
    "serial",
    "skip_task",
    "with_context_value",
    "with_detect",
    "with_flag",
    "with_force_run",
    "with_name_suffix",
    "with_notice_patterns",
    "with_options",
]

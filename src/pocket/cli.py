"""Pocket CLI (``pok``): run the auto tree, single tasks, and inspect the plan."""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import typer
from rich.console import Console
from rich.markup import escape

from pocket import __version__
from pocket.config import Config, config_path, load_config, load_plan_settings
from pocket.engine.env import ExecEnv
from pocket.engine.exec import run_command
from pocket.engine.executor import execute, execute_task
from pocket.engine.paths import find_git_root
from pocket.engine.plan import Plan, new_plan
from pocket.engine.task import Task
from pocket.engine.tracker import ExecutionTracker
from pocket.errors import ExecError, FlagError, PocketError, UnknownTaskError
from pocket.logging_setup import setup_logging
from pocket.reporting import plan_to_dict, render_plan_tree, visible_tasks

cli = typer.Typer(
    name="pok",
    help="Pocket - run repository tasks across directories",
    add_completion=False,
)
console = Console(soft_wrap=True)

FLAG_CONVERTERS: dict[type, click.ParamType] = {
    str: click.STRING,
    bool: click.BOOL,
    int: click.INT,
    float: click.FLOAT,
}


@dataclass(frozen=True)
class Session:
    """State shared by every command of one invocation."""

    root: Path
    task_scope: str | None
    verbose: bool


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _load(root: Path) -> tuple[Config, Plan]:
    config = load_config(config_path(root))
    settings = config.plan or load_plan_settings(root)
    return config, new_plan(config, root, settings)


def _finish(tracker: ExecutionTracker) -> None:
    if tracker.warnings():
        console.print("[yellow]Completed with warnings; review the output above.[/yellow]")


def _guarded(env: ExecEnv, action: Callable[[], Any]) -> Any:
    """Run ``action``; print ``Error: ...`` and exit 1 on any Pocket failure."""
    try:
        return action()
    except KeyboardInterrupt as exc:
        env.cancel.cancel()
        console.print("[bold red]Error:[/bold red] interrupted")
        raise typer.Exit(130) from exc
    except PocketError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", highlight=False)
        raise typer.Exit(1) from exc


def parse_task_flags(task: Task, args: Sequence[str]) -> dict[str, Any]:
    """Parse ``--name value`` / ``--name=value`` pairs against the task's flags.

    Boolean flags may be given bare (``--fix``). Values are converted with
    click's type converters according to the flag's default type.
    """
    values: dict[str, Any] = {}
    items = list(args)
    i = 0
    while i < len(items):
        token = items[i]
        if not token.startswith("--") or token == "--":
            raise FlagError(f"unexpected argument {token!r}")
        name, sep, raw = token[2:].partition("=")
        definition = task.flags.get(name)
        if definition is None:
            raise FlagError(f"task {task.name!r} has no flag {name!r}")
        kind = type(definition.default)
        if not sep:
            following = items[i + 1] if i + 1 < len(items) else None
            if kind is bool and (following is None or following.startswith("--")):
                raw = "true"
            elif following is None:
                raise FlagError(f"flag {name!r} requires a value")
            else:
                raw = following
                i += 1
        try:
            values[name] = FLAG_CONVERTERS[kind].convert(raw, None, None)
        except click.BadParameter as exc:
            raise FlagError(f"flag {name!r}: {exc.format_message()}") from exc
        i += 1
    return values


def _git_diff(env: ExecEnv) -> None:
    try:
        run_command(env.with_path("."), "git", "diff", "--exit-code")
    except ExecError as exc:
        raise PocketError(f"uncommitted changes detected\n{exc.result.output.strip()}") from exc


@cli.callback(invoke_without_command=True)
def _cli_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Stream command output."),
    git_diff: bool = typer.Option(
        False, "--git-diff", "-g", help="Fail if the auto run leaves uncommitted changes."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show Pocket version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Run every auto task when no command is given."""
    _ = version
    setup_logging(verbose)
    session = Session(
        root=find_git_root(Path.cwd()),
        task_scope=os.environ.get("TASK_SCOPE"),
        verbose=verbose,
    )
    ctx.obj = session
    if ctx.invoked_subcommand is not None:
        return

    env = ExecEnv(root=session.root, verbose=verbose, git_diff=git_diff)

    def run_all() -> None:
        config, plan = _load(session.root)
        tracker = execute(config, plan, env)
        if git_diff:
            _git_diff(env)
        _finish(tracker)

    _guarded(env, run_all)


@cli.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Task name, including any suffix (e.g. py-test:3.9)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Stream command output."),
) -> None:
    """Run one task; pass task flags as --flag value."""
    session: Session = ctx.obj
    verbose = verbose or session.verbose
    if verbose:
        setup_logging(True)
    env = ExecEnv(root=session.root, verbose=verbose)

    def run_one() -> None:
        _config, plan = _load(session.root)
        instance = plan.instance(name)
        if instance is None:
            raise UnknownTaskError(name)
        flags = parse_task_flags(instance.task, ctx.args)
        tracker = execute_task(name, plan, env.with_cli_flags(flags), task_scope=session.task_scope)
        _finish(tracker)

    _guarded(env, run_one)


@cli.command("plan")
def plan_cmd(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output the plan as JSON."),
) -> None:
    """Show the composition tree and where each task runs."""
    session: Session = ctx.obj
    env = ExecEnv(root=session.root)
    _config, plan = _guarded(env, lambda: _load(session.root))
    if as_json:
        typer.echo(json.dumps(plan_to_dict(plan), indent=2, sort_keys=False))
        return
    console.print(render_plan_tree(plan))
    console.print(f"Module directories: {', '.join(plan.module_directories)}", highlight=False)


@cli.command("tasks")
def tasks_cmd(ctx: typer.Context) -> None:
    """List the tasks visible from the current directory scope."""
    session: Session = ctx.obj
    env = ExecEnv(root=session.root)
    _config, plan = _guarded(env, lambda: _load(session.root))
    listing = visible_tasks(plan, session.task_scope)

    def show(title: str, infos: list) -> None:
        if not infos:
            return
        console.print(f"[bold]{title}:[/bold]")
        width = max(len(i.name) for i in infos)
        for info in infos:
            typer.echo(f"  {info.name.ljust(width)}  {info.usage}".rstrip())

    show("Tasks", listing.auto)
    show("Manual tasks", listing.manual)
    if not listing.auto and not listing.manual:
        typer.echo("No tasks visible from this directory.")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

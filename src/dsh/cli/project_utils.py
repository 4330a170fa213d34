"""Shared helpers for CLI commands.

Resolves the project directory, builds the per-invocation Environment and
runner, and turns fatal orchestration errors into a short diagnostic plus a
non-zero exit.

Tests inject collaborators through ``ctx.obj``::

    CliRunner().invoke(cli, ["start"], obj={"runner": fake, "environ": {...}, "system": "Linux"})
"""

import functools
import logging
import os
from pathlib import Path

import click
from rich.markup import escape

from dsh.cli.styles import Messages, console
from dsh.deployment.container_manager import LifecycleController
from dsh.deployment.environment import Environment, resolve_environment
from dsh.deployment.exceptions import DshError
from dsh.deployment.process import ProcessRunner
from dsh.utils.logger import configure_logging


def resolve_project_path(project_arg: str | None = None, environ=None) -> Path:
    """Resolve project directory from multiple sources.

    Resolution priority:
    1. --project CLI argument (if provided)
    2. DSH_PROJECT environment variable (if set)
    3. Current working directory (default)
    """
    environ = os.environ if environ is None else environ

    if project_arg:
        return Path(project_arg).expanduser().resolve()

    env_project = environ.get("DSH_PROJECT")
    if env_project:
        return Path(env_project).expanduser().resolve()

    return Path.cwd()


def get_obj(ctx: click.Context) -> dict:
    root = ctx.find_root()
    if root.obj is None:
        root.obj = {}
    return root.obj


def get_runner(ctx: click.Context) -> ProcessRunner:
    obj = get_obj(ctx)
    if "runner" not in obj:
        obj["runner"] = ProcessRunner()
    return obj["runner"]


def build_environment(ctx: click.Context, require_ssh_agent: bool = True) -> Environment:
    """Resolve the Environment for this invocation and apply its logging settings."""
    obj = get_obj(ctx)
    environ = obj.get("environ")
    env = resolve_environment(
        get_runner(ctx),
        cwd=resolve_project_path(obj.get("project"), environ),
        environ=environ,
        require_ssh_agent=require_ssh_agent,
        system=obj.get("system"),
    )
    level = logging.DEBUG if obj.get("verbose") else env.config.log_level
    configure_logging(level, env.config.log_colors)
    return env


def build_controller(ctx: click.Context, require_ssh_agent: bool = True) -> LifecycleController:
    return LifecycleController(build_environment(ctx, require_ssh_agent), get_runner(ctx))


def report_errors(func):
    """Print fatal DshErrors briefly and exit with their exit code."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DshError as e:
            console.print(Messages.error(escape(e.message)))
            if e.hint:
                console.print(f"  [dim]{escape(e.hint)}[/dim]")
            raise click.exceptions.Exit(e.exit_code) from None

    return wrapper

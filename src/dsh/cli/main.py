"""Main CLI entry point for dsh.

The first positional argument selects a command; the rest are forwarded to
it. Commands are matched by exact name first, then by prefix in the fixed
order of ``COMMANDS`` (first match wins, so ``st`` is ``status``, ``sto`` is
``stop`` and ``star`` is ``start``). Anything that matches no command is run
inside the web container by ``shell``, which is also the default when no
command is given.

Commands are imported only when invoked, which keeps ``dsh --help`` fast.
"""

import importlib
import logging
import sys

import click

from dsh import __version__

# Ordered dispatch table: exact match, then first prefix match in this order
COMMANDS = {
    "shell": ("dsh.cli.lifecycle_cmd", "shell"),
    "status": ("dsh.cli.lifecycle_cmd", "status"),
    "stop": ("dsh.cli.lifecycle_cmd", "stop"),
    "start": ("dsh.cli.lifecycle_cmd", "start"),
    "pull": ("dsh.cli.host_cmd", "pull"),
    "purge": ("dsh.cli.lifecycle_cmd", "purge"),
    "logs": ("dsh.cli.lifecycle_cmd", "logs"),
    "install": ("dsh.cli.host_cmd", "install"),
    "setup_dns": ("dsh.cli.host_cmd", "setup_dns_cmd"),
    "help": ("dsh.cli.main", "help_command"),
}

DEFAULT_COMMAND = "shell"

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "ignore_unknown_options": True,
    "allow_interspersed_args": False,
}


def resolve_command_name(token: str) -> str | None:
    """Map a user token to a command name, or None when nothing matches."""
    if not token:
        return None
    if token in COMMANDS:
        return token
    for name in COMMANDS:
        if name.startswith(token):
            return name
    return None


class LazyGroup(click.Group):
    """Click group with prefix dispatch, shell fallback and lazy command loading."""

    def get_command(self, ctx, cmd_name):
        """Lazily import and return the command a token resolves to."""
        name = resolve_command_name(cmd_name)
        if name is None:
            return None

        module_path, attr = COMMANDS[name]
        mod = importlib.import_module(module_path)
        return getattr(mod, attr)

    def list_commands(self, ctx):
        """Return list of available commands (for --help)."""
        return list(COMMANDS)

    def resolve_command(self, ctx, args):
        cmd = self.get_command(ctx, args[0])
        if cmd is None:
            # Unknown token: run the whole argument list in the container
            return DEFAULT_COMMAND, self.get_command(ctx, DEFAULT_COMMAND), args
        return cmd.name, cmd, args[1:]


@click.group(cls=LazyGroup, invoke_without_command=True, context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="dsh")
@click.option(
    "--project",
    "-p",
    type=click.Path(exists=True, file_okay=False, dir_okay=True),
    help="Project directory (default: current directory or DSH_PROJECT env var)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show every command dsh runs")
@click.pass_context
def cli(ctx, project, verbose):
    """dsh - local Docker development environments.

    Brings up a project's web, database and mail containers behind a shared
    nginx reverse proxy at http://<project>.<domain>.

    Examples:

    \b
      dsh                 Open a shell in the web container (starts it if needed)
      dsh start           Start the project and print its URL
      dsh stop            Stop containers (keeps network and volumes)
      dsh purge           Remove containers, network and volumes
      dsh status          Show container status
      dsh logs            Follow the web container log
      dsh pull            Pre-fetch all images
      dsh setup_dns       Resolve *.<domain> to this machine
      dsh install         Check host tools (macOS)
      dsh drush cr        Any other command runs inside the web container

    Commands can be abbreviated: 'dsh sta' is status, 'dsh star' is start.
    """
    ctx.ensure_object(dict)
    if project:
        ctx.obj["project"] = project
    if verbose:
        from dsh.utils.logger import configure_logging

        # Checked again once dsh.yml is read so logging.level cannot lower it
        ctx.obj["verbose"] = True
        configure_logging(logging.DEBUG)

    if ctx.invoked_subcommand is None:
        ctx.invoke(ctx.command.get_command(ctx, DEFAULT_COMMAND))


@click.command(name="help")
@click.pass_context
def help_command(ctx):
    """Show this message and exit."""
    click.echo(ctx.find_root().get_help())


def main():
    """Entry point for the dsh CLI."""
    try:
        # Non-standalone so an interrupted session is not reported as click's exit 1
        rv = cli(standalone_mode=False)
    except (KeyboardInterrupt, click.exceptions.Abort):
        click.echo("\nInterrupted", err=True)
        sys.exit(130)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    # click hands back the code of ctx.exit()/Exit instead of raising it
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    main()

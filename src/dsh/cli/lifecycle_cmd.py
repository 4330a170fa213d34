"""Project lifecycle commands: start, shell, stop, purge, status, logs.

Thin click wrappers around :class:`dsh.deployment.container_manager.LifecycleController`.
"""

import click

from .project_utils import build_controller, report_errors


@click.command()
@click.pass_context
@report_errors
def start(ctx):
    """Start the project (proxy, network, containers) and print its URL."""
    build_controller(ctx).start()


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
@report_errors
def shell(ctx, command):
    """Open a shell in the web container (starting the project if needed).

    Any arguments are run in the container instead of bash:

    \b
      dsh shell ls -la
      dsh composer install
    """
    exit_code = build_controller(ctx).shell(command)
    ctx.exit(exit_code)


@click.command()
@click.pass_context
@report_errors
def stop(ctx):
    """Stop project containers; network, proxy and volumes are kept."""
    build_controller(ctx).stop()


@click.command()
@click.pass_context
@report_errors
def purge(ctx):
    """Remove project containers, network and volumes."""
    build_controller(ctx).purge()


@click.command()
@click.pass_context
@report_errors
def status(ctx):
    """Show whether the project's containers are running."""
    build_controller(ctx, require_ssh_agent=False).status()


@click.command()
@click.pass_context
@report_errors
def logs(ctx):
    """Follow the web container log."""
    build_controller(ctx, require_ssh_agent=False).logs()

"""Host preparation commands: install, setup_dns, pull."""

import click

from dsh.cli.styles import Messages, console
from dsh.deployment.environment import detect_host_type, resolve_project_domain
from dsh.deployment.host_tools import check_install, pull_images, setup_dns

from .project_utils import build_environment, get_obj, get_runner, report_errors, resolve_project_path


@click.command()
@click.pass_context
@report_errors
def install(ctx):
    """Check that required host tools are installed (macOS only)."""
    tools = check_install(detect_host_type(get_obj(ctx).get("system")), get_runner(ctx))
    console.print(Messages.success(f"All required tools found: {', '.join(tools)}"))


@click.command(name="setup_dns")
@click.pass_context
@report_errors
def setup_dns_cmd(ctx):
    """Resolve *.<domain> to this machine."""
    obj = get_obj(ctx)
    environ = obj.get("environ")
    domain = resolve_project_domain(resolve_project_path(obj.get("project"), environ), environ)

    path = setup_dns(domain, detect_host_type(obj.get("system")), get_runner(ctx))
    console.print(Messages.success(f"*.{domain} now resolves locally ({path})"))


@click.command()
@click.pass_context
@report_errors
def pull(ctx):
    """Pre-fetch every image the project uses."""
    images = pull_images(build_environment(ctx), get_runner(ctx))
    console.print(Messages.success(f"Pulled project images and {', '.join(images)}"))

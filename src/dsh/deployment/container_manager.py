"""Lifecycle Controller for project environments.

This module drives a project's containers through its lifecycle. There is no
stored state: every command probes the runtime and acts only on the delta
between what it observes and what it wants.

Commands:

    start   Ensure reverse proxy, project network, proxy membership and (on
            macOS) the SSH-agent proxy; ``compose up -d``; point Xdebug at
            the host; print the access URL.
    shell   Start if needed, make sure a user matching the host user exists
            in the web container, then attach an interactive session.
    stop    ``compose stop``; network, proxy and volumes stay for a fast restart.
    purge   Stop, detach the proxy and remove the network (best-effort), then
            remove containers, named volumes and anonymous volumes.
    status  Table of the project's containers, or a "not running" notice.
    logs    Follow the web container's log when it is running.

Examples:
    Programmatic use::

        runner = ProcessRunner()
        env = resolve_environment(runner)
        controller = LifecycleController(env, runner)
        controller.start()

.. seealso::
   :mod:`dsh.deployment.singletons` : Shared proxy containers
   :mod:`dsh.deployment.network` : Project network handling
"""

import shutil

from dsh.deployment.debug import DebugReconfigurer
from dsh.deployment.environment import DEFAULT_WEB_PORT, PROXY_CONTAINER, Environment
from dsh.deployment.exceptions import ProvisioningError
from dsh.deployment.network import NetworkCoordinator
from dsh.deployment.probes import ResourceProbes
from dsh.deployment.process import ProcessRunner, tty_flags
from dsh.deployment.runtime_helper import verify_runtime_is_running
from dsh.deployment.singletons import ReverseProxy, SshAgentProxy
from dsh.utils.logger import get_logger

logger = get_logger("lifecycle")

SUDOERS_SCRIPT = 'echo "$1 ALL=(ALL) NOPASSWD: ALL" > /etc/sudoers.d/"$1" && chmod 0440 /etc/sudoers.d/"$1"'


class LifecycleController:
    """Stateless start/stop/purge/status/logs/shell transitions for one project."""

    def __init__(self, env: Environment, runner: ProcessRunner, probes: ResourceProbes | None = None):
        self.env = env
        self.runner = runner
        self.probes = probes or ResourceProbes(runner)
        self.proxy = ReverseProxy(runner, self.probes, env.config.proxy_image, env.config.proxy_port)
        self.ssh_agent = SshAgentProxy(runner, self.probes, env.config.ssh_agent_image, env.environ, env.home)
        self.network = NetworkCoordinator(runner, self.probes, env.project, env.network_name)
        self.debug = DebugReconfigurer(runner, env.host_type)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def web_container(self, running_only: bool = True) -> str | None:
        return self.probes.service_container(self.env.project, self.env.config.web_service, running_only)

    def _compose(self, *args: str, check: bool = True) -> int:
        return self.runner.interactive(self.env.compose(*args), env=self.env.compose_env(), check=check)

    def setup(self) -> None:
        """Reconcile shared infrastructure needed before project containers start."""
        is_running, error_msg = verify_runtime_is_running(self.runner, self.env.is_mac)
        if not is_running:
            raise ProvisioningError(error_msg)

        self.proxy.ensure()
        # Port is only knowable once the proxy runs
        self.env = self.env.with_proxy_port(self.probes.published_port(PROXY_CONTAINER, DEFAULT_WEB_PORT))

        self.network.ensure_network()
        self.network.attach(PROXY_CONTAINER)

        if self.env.is_mac:
            self.ssh_agent.ensure()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> str:
        """Bring the project up. Safe to call repeatedly.

        :return: Access URL
        :raises ProvisioningError: If shared infrastructure or the web container fails
        """
        from dsh.cli.styles import Messages, console

        self.setup()

        logger.key_info(f"Starting {self.env.project} containers")
        self._compose("up", "-d")

        web = self.web_container()
        if web is None:
            raise ProvisioningError(
                f"Service '{self.env.config.web_service}' of project {self.env.project} is not running",
                hint="Check the compose output above or run: dsh logs",
            )

        if self.env.config.xdebug_enabled:
            self.debug.reconfigure(web)

        url = self.env.url
        console.print(Messages.success(f"{self.env.project} is up: [accent]{url}[/accent]"))
        return url

    def stop(self) -> int:
        """Stop project containers, leaving network, proxy and volumes intact."""
        logger.key_info(f"Stopping {self.env.project} containers")
        return self._compose("stop")

    def purge(self) -> None:
        """Remove everything the project owns; shared singletons are untouched."""
        logger.key_info(f"Purging {self.env.project}")

        # Every step is best-effort so teardown reclaims as much as it can
        if self._compose("stop", check=False) != 0:
            logger.warning("compose stop failed, continuing teardown")

        self.network.teardown(PROXY_CONTAINER)

        if self._compose("down", "--volumes", "--remove-orphans", check=False) != 0:
            logger.warning("compose down failed, continuing teardown")

        for volume in self.probes.project_volumes(self.env.project):
            removed = self.runner.run(["docker", "volume", "rm", volume], check=False)
            if not removed.ok:
                logger.warning(f"Could not remove volume {volume}")

        logger.success(f"{self.env.project} purged")

    def status(self) -> bool:
        """Show project containers. Returns True when any of them is running."""
        from rich.table import Table

        from dsh.cli.styles import Messages, Styles, console

        containers = self.probes.project_container_details(self.env.project)
        running = [c for c in containers if c.get("State") == "running"]

        if not running:
            console.print(Messages.info(f"{self.env.project} is not running"))
            console.print("  Start it with: [command]dsh start[/command]")
            return False

        table = Table(show_header=True, header_style=Styles.BOLD_PRIMARY)
        table.add_column("Container", style=Styles.ACCENT, no_wrap=True)
        table.add_column("Status", style=Styles.PRIMARY)
        table.add_column("Ports", style=Styles.INFO)
        table.add_column("Image", style=Styles.DIM)

        for container in containers:
            state = container.get("State", "unknown")
            if state == "running":
                status = f"[{Styles.SUCCESS}]● Running[/{Styles.SUCCESS}]"
            elif state == "exited":
                status = f"[{Styles.ERROR}]● Stopped[/{Styles.ERROR}]"
            else:
                status = f"[{Styles.DIM}]● {state}[/{Styles.DIM}]"

            image = container.get("Image", "unknown")
            if len(image) > 40:
                image = "..." + image[-37:]

            table.add_row(container.get("Names", "unknown"), status, container.get("Ports") or "-", image)

        console.print(f"\n[bold]{self.env.project}[/bold] [dim]{self.env.url}[/dim]")
        console.print(table)
        return True

    def logs(self) -> int:
        """Follow the web container log from its most recent line."""
        from dsh.cli.styles import Messages, console

        web = self.web_container()
        if web is None:
            console.print(Messages.info(f"{self.env.project} is not running"))
            return 0
        return self.runner.interactive(["docker", "logs", "--tail", "1", "-f", web])

    def ensure_user(self, container: str) -> bool:
        """Create the host-matching user on first connection. Returns True when created."""
        user = self.env.user
        if self.runner.run(["docker", "exec", container, "id", "-u", user], check=False).ok:
            return False

        logger.info(f"Creating user {user} in {container}")
        self.runner.run(
            [
                "docker", "exec", "-u", "root", container,
                "useradd", "-m", "-o", "-s", "/bin/bash", "-u", str(self.env.uid), user,
            ]
        )  # fmt: skip

        gitconfig = self.env.home / ".gitconfig"
        if gitconfig.is_file():
            target = f"/home/{user}/.gitconfig"
            self.runner.run(["docker", "cp", str(gitconfig), f"{container}:{target}"])
            self.runner.run(["docker", "exec", "-u", "root", container, "chown", f"{user}:", target])

        self.runner.run(["docker", "exec", "-u", "root", container, "sh", "-c", SUDOERS_SCRIPT, "sh", user])
        return True

    def shell(self, command: tuple[str, ...] | list[str] = ()) -> int:
        """Attach an interactive session, starting the project first if needed.

        :param command: Command to run in the container, ``bash`` when empty
        :return: Exit code of the in-container command
        """
        web = self.web_container()
        if web is None:
            self.start()
            web = self.web_container()
            if web is None:
                raise ProvisioningError(f"Web container for {self.env.project} did not start")

        self.ensure_user(web)

        columns, lines = shutil.get_terminal_size()
        args = [
            "docker", "exec", *tty_flags(),
            "-u", self.env.user,
            "-w", self.env.config.web_workdir,
            "-e", f"COLUMNS={columns}",
            "-e", f"LINES={lines}",
            "-e", f"SSH_AUTH_SOCK={self.env.container_ssh_auth_sock}",
            web,
            *(list(command) or ["bash"]),
        ]  # fmt: skip
        return self.runner.interactive(args)

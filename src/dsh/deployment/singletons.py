"""Singleton Service Managers.

Shared containers used by every project on the host. Each is addressed by a
fixed name, so any number of concurrent projects converge on one instance:

- :class:`ReverseProxy` (``nginx-proxy``) routes ``<project>.<domain>`` to the
  right project's web container.
- :class:`SshAgentProxy` (``ssh-agent``) exposes an SSH agent socket through a
  named volume on hosts where the native socket cannot be bind-mounted.

``ensure()`` is idempotent:

1. running   -> nothing to do
2. stopped   -> ``docker start`` (configuration was fixed at creation)
3. absent    -> ``docker run`` with the fixed configuration, then first-run seeding
4. verify running, else :class:`ProvisioningError`
"""

from collections.abc import Mapping
from pathlib import Path

from dsh.deployment.environment import PROXY_CONTAINER, SSH_AGENT_CONTAINER, SSH_AGENT_VOLUME
from dsh.deployment.exceptions import CommandError, ProvisioningError
from dsh.deployment.probes import ResourceProbes
from dsh.deployment.process import ProcessRunner, tty_flags
from dsh.utils.logger import get_logger

RUNNING = "running"
STARTED = "started"
CREATED = "created"


class SingletonService:
    """Create-once, start-if-stopped management of a shared container."""

    name: str = ""
    component: str = "proxy"

    def __init__(self, runner: ProcessRunner, probes: ResourceProbes, image: str):
        self.runner = runner
        self.probes = probes
        self.image = image
        self.logger = get_logger(self.component)

    def create_command(self) -> list[str]:
        raise NotImplementedError

    def after_create(self) -> None:
        """Hook run only when the container was created by this call."""

    def ensure(self) -> str:
        """Make sure the container exists and is running.

        :return: RUNNING, STARTED or CREATED
        :raises ProvisioningError: If the container is not running afterwards
        """
        if self.probes.container_running(self.name):
            self.logger.debug(f"{self.name} already running")
            return RUNNING

        try:
            if self.probes.container_exists(self.name):
                self.logger.info(f"Starting existing {self.name} container")
                self.runner.run(["docker", "start", self.name])
                outcome = STARTED
            else:
                self.logger.key_info(f"Creating {self.name} container from {self.image}")
                self.runner.run(self.create_command())
                outcome = CREATED
        except CommandError as e:
            raise ProvisioningError(f"Could not bring up shared container '{self.name}': {e}") from e

        if outcome == CREATED:
            self.after_create()

        if not self.probes.container_running(self.name):
            raise ProvisioningError(
                f"Shared container '{self.name}' is not running after {outcome}",
                hint=f"Inspect it with: docker logs {self.name}",
            )
        return outcome


class ReverseProxy(SingletonService):
    """Shared nginx reverse proxy publishing the web port on the host."""

    name = PROXY_CONTAINER
    component = "proxy"

    def __init__(self, runner: ProcessRunner, probes: ResourceProbes, image: str, port: int):
        super().__init__(runner, probes, image)
        self.port = port

    def create_command(self) -> list[str]:
        return [
            "docker",
            "run",
            "-d",
            "--name",
            self.name,
            "--restart",
            "unless-stopped",
            "-p",
            f"{self.port}:80",
            "-v",
            "/var/run/docker.sock:/tmp/docker.sock:ro",
            self.image,
        ]


class SshAgentProxy(SingletonService):
    """Shared SSH agent container seeded with the host agent's keys."""

    name = SSH_AGENT_CONTAINER
    component = "ssh_agent"

    def __init__(
        self,
        runner: ProcessRunner,
        probes: ResourceProbes,
        image: str,
        host_environ: Mapping[str, str],
        home: Path,
    ):
        super().__init__(runner, probes, image)
        self.host_environ = host_environ
        self.home = Path(home)

    def create_command(self) -> list[str]:
        return [
            "docker",
            "run",
            "-d",
            "--name",
            self.name,
            "--restart",
            "unless-stopped",
            "-v",
            f"{SSH_AGENT_VOLUME}:/.ssh-agent",
            self.image,
        ]

    def host_keys(self) -> list[tuple[str, str]]:
        """(fingerprint, comment) for every key loaded in the host agent.

        ``ssh-add -l`` exits 1 when the agent holds no keys and 2 when no
        agent is reachable; both mean there is nothing to seed.
        """
        result = self.runner.run(["ssh-add", "-l"], check=False, env=self.host_environ)
        if not result.ok:
            return []

        keys = []
        for line in result.lines:
            # "<bits> <fingerprint> <comment> (<type>)"
            parts = line.split()
            if len(parts) < 3:
                continue
            fingerprint = parts[1]
            comment = " ".join(parts[2:-1]) if parts[-1].startswith("(") else " ".join(parts[2:])
            keys.append((fingerprint, comment))
        return keys

    def key_files_by_fingerprint(self) -> dict[str, Path]:
        """Private key files under ~/.ssh, keyed by the fingerprint of their .pub."""
        found = {}
        for public_key in sorted((self.home / ".ssh").glob("*.pub")):
            private_key = public_key.with_suffix("")
            if not private_key.is_file():
                continue
            result = self.runner.run(["ssh-keygen", "-lf", str(public_key)], check=False)
            if result.ok and result.lines:
                parts = result.lines[0].split()
                if len(parts) >= 2:
                    found[parts[1]] = private_key
        return found

    def resolve_key_files(self) -> list[tuple[str, Path]]:
        """Map loaded keys to files on disk.

        Agents loaded with ``ssh-add <path>`` report the path as comment;
        keys with an embedded comment (``user@host``) are matched by
        fingerprint against ``~/.ssh/*.pub``.
        """
        by_fingerprint = None
        resolved = []
        for fingerprint, comment in self.host_keys():
            path = Path(comment).expanduser()
            if not path.is_file():
                if by_fingerprint is None:
                    by_fingerprint = self.key_files_by_fingerprint()
                path = by_fingerprint.get(fingerprint)
            if path is None:
                self.logger.warning(f"Key {fingerprint} ({comment}) has no key file under {self.home / '.ssh'}, skipping")
                continue
            resolved.append((fingerprint, path))
        return resolved

    def after_create(self) -> None:
        """Inject each host key into the freshly created agent container."""
        for fingerprint, path in self.resolve_key_files():
            self.logger.info(f"Adding key {fingerprint} to {self.name}")
            exit_code = self.runner.interactive(
                [
                    "docker",
                    "run",
                    "--rm",
                    *tty_flags(),
                    f"--volumes-from={self.name}",
                    "-v",
                    f"{path}:/root/.ssh/{path.name}:ro",
                    self.image,
                    "ssh-add",
                    f"/root/.ssh/{path.name}",
                ]
            )
            if exit_code != 0:
                self.logger.warning(f"Could not add key {fingerprint} ({exit_code})")

"""Read-only queries against the container runtime.

Probes answer "does it exist" and "is it running" for singleton containers,
project containers, the project network and the proxy's network membership.
They always run in tolerant mode: an empty listing or a failed inspect simply
means "absent".

Name isolation: singletons are matched by anchored name filters and then
compared exactly in Python; project containers are matched by compose labels,
never by name prefix, so project ``site`` can never see ``site2``'s resources.
"""

import json

from dsh.deployment.process import ProcessRunner
from dsh.utils.logger import get_logger

logger = get_logger("probes")

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"
NETWORK_LABEL = "com.docker.compose.network"


class ResourceProbes:
    """Tolerant runtime queries."""

    def __init__(self, runner: ProcessRunner):
        self.runner = runner

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def _list_containers(self, filters: list[str], all_containers: bool) -> list[str]:
        cmd = ["docker", "ps"]
        if all_containers:
            cmd.append("-a")
        for flt in filters:
            cmd.extend(["--filter", flt])
        cmd.extend(["--format", "{{.Names}}"])
        result = self.runner.run(cmd, check=False)
        return result.lines if result.ok else []

    def container_exists(self, name: str) -> bool:
        """Whether a container with exactly this name exists in any state."""
        return name in self._list_containers([f"name=^/?{name}$"], all_containers=True)

    def container_running(self, name: str) -> bool:
        """Whether a container with exactly this name is running."""
        return name in self._list_containers([f"name=^/?{name}$"], all_containers=False)

    def project_containers(self, project: str, running_only: bool = True) -> list[str]:
        """Names of containers belonging to a compose project."""
        return self._list_containers([f"label={PROJECT_LABEL}={project}"], all_containers=not running_only)

    def service_container(self, project: str, service: str, running_only: bool = True) -> str | None:
        """Name of a project's service container, or None."""
        names = self._list_containers(
            [f"label={PROJECT_LABEL}={project}", f"label={SERVICE_LABEL}={service}"],
            all_containers=not running_only,
        )
        return names[0] if names else None

    def project_container_details(self, project: str) -> list[dict]:
        """``docker ps -a`` JSON rows for a project's containers (status display)."""
        result = self.runner.run(
            [
                "docker",
                "ps",
                "-a",
                "--filter",
                f"label={PROJECT_LABEL}={project}",
                "--format",
                "{{json .}}",
            ],
            check=False,
        )
        if not result.ok:
            return []

        rows = []
        for line in result.lines:
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug(f"Skipping unparseable container row: {line}")
        return rows

    def published_port(self, container: str, container_port: int) -> int | None:
        """Host port published for a container port, or None when not running."""
        result = self.runner.run(["docker", "port", container, f"{container_port}/tcp"], check=False)
        if not result.ok:
            return None
        for line in result.lines:
            # "0.0.0.0:8080" or "[::]:8080"
            _, _, port = line.rpartition(":")
            if port.isdigit():
                return int(port)
        return None

    # ------------------------------------------------------------------
    # Networks and volumes
    # ------------------------------------------------------------------

    def network_exists(self, name: str) -> bool:
        result = self.runner.run(
            ["docker", "network", "ls", "--filter", f"name=^{name}$", "--format", "{{.Name}}"],
            check=False,
        )
        return result.ok and name in result.lines

    def network_members(self, name: str) -> set[str]:
        """Names of containers attached to a network; empty when it is absent."""
        result = self.runner.run(
            ["docker", "network", "inspect", "--format", "{{json .Containers}}", name],
            check=False,
        )
        if not result.ok or not result.stdout.strip():
            return set()
        try:
            containers = json.loads(result.stdout) or {}
        except json.JSONDecodeError:
            logger.debug(f"Could not parse membership of network {name}")
            return set()
        return {info.get("Name", "") for info in containers.values() if info.get("Name")}

    def project_volumes(self, project: str) -> list[str]:
        result = self.runner.run(
            ["docker", "volume", "ls", "-q", "--filter", f"label={PROJECT_LABEL}={project}"],
            check=False,
        )
        return result.lines if result.ok else []

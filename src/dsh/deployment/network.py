"""Network Coordinator.

Owns the project-scoped network and the reverse proxy's membership in it.

The network is created with compose's own labels so that ``compose up``
adopts it instead of refusing a network it did not create. Attaching is
guarded by a membership probe because connecting an already-connected
container is an error in the runtime. Teardown is best-effort and
order-sensitive: the proxy is disconnected before the network is removed.
"""

from dsh.deployment.probes import NETWORK_LABEL, PROJECT_LABEL, ResourceProbes
from dsh.deployment.process import ProcessRunner
from dsh.utils.logger import get_logger

logger = get_logger("network")


class NetworkCoordinator:
    """Ensure, attach and tear down one project network."""

    def __init__(self, runner: ProcessRunner, probes: ResourceProbes, project: str, name: str):
        self.runner = runner
        self.probes = probes
        self.project = project
        self.name = name

    def ensure_network(self) -> bool:
        """Create the network if absent. Returns True when it was created."""
        if self.probes.network_exists(self.name):
            logger.debug(f"Network {self.name} already exists")
            return False

        logger.info(f"Creating network {self.name}")
        self.runner.run(
            [
                "docker",
                "network",
                "create",
                "--label",
                f"{PROJECT_LABEL}={self.project}",
                "--label",
                f"{NETWORK_LABEL}=default",
                self.name,
            ]
        )
        return True

    def attach(self, container: str) -> bool:
        """Connect a container unless it is already a member. Returns True when connected."""
        if container in self.probes.network_members(self.name):
            logger.debug(f"{container} already attached to {self.name}")
            return False

        logger.info(f"Connecting {container} to {self.name}")
        self.runner.run(["docker", "network", "connect", self.name, container])
        return True

    def teardown(self, container: str) -> None:
        """Disconnect a foreign member and remove the network, ignoring failures."""
        disconnect = self.runner.run(["docker", "network", "disconnect", self.name, container], check=False)
        if not disconnect.ok:
            logger.debug(f"{container} was not attached to {self.name}")

        remove = self.runner.run(["docker", "network", "rm", self.name], check=False)
        if remove.ok:
            logger.info(f"Removed network {self.name}")
        else:
            logger.debug(f"Network {self.name} not removed: {remove.stderr.strip() or 'absent'}")

"""Container runtime and compose tool detection.

Detects which compose front-end is available and its version, and checks
that the Docker daemon actually answers before anything is provisioned.

Examples:
    Basic usage::

        from dsh.deployment.runtime_helper import get_compose_command

        cmd = get_compose_command(runner)
        # Returns: ['docker', 'compose'] or ['docker-compose']
"""

import re
import shutil

from dsh.deployment.exceptions import RequiredToolMissingError
from dsh.deployment.process import ProcessRunner

# Compose releases before this sanitised project names by dropping '-' and '_'
LEGACY_NAMING_VERSION = (1, 21, 0)

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


def get_compose_command(runner: ProcessRunner) -> list[str]:
    """Get the compose command prefix.

    Prefers the ``docker compose`` plugin and falls back to the standalone
    ``docker-compose`` binary.

    Returns:
        Command list: ['docker', 'compose'] or ['docker-compose']

    Raises:
        RequiredToolMissingError: If neither docker nor a compose front-end is installed
    """
    if not shutil.which("docker"):
        raise RequiredToolMissingError(
            "docker",
            hint="Install Docker: https://docs.docker.com/get-docker/",
        )

    plugin = runner.run(["docker", "compose", "version", "--short"], check=False)
    if plugin.ok:
        return ["docker", "compose"]

    if shutil.which("docker-compose"):
        return ["docker-compose"]

    raise RequiredToolMissingError(
        "docker compose",
        hint="Install the compose plugin: https://docs.docker.com/compose/install/",
    )


def get_compose_version(runner: ProcessRunner, compose_cmd: list[str]) -> tuple[int, int, int]:
    """Return the compose tool version, or (0, 0, 0) when it cannot be parsed."""
    result = runner.run([*compose_cmd, "version", "--short"], check=False)
    return parse_version(result.stdout) if result.ok else (0, 0, 0)


def parse_version(text: str) -> tuple[int, int, int]:
    """Parse the first ``X.Y[.Z]`` occurrence in text (a leading 'v' is fine)."""
    match = _VERSION_RE.search(text or "")
    if not match:
        return (0, 0, 0)
    major, minor, patch = match.groups()
    return (int(major), int(minor), int(patch or 0))


def uses_legacy_naming(version: tuple[int, int, int]) -> bool:
    """Whether this compose version strips '-' and '_' from project names.

    An unparseable version (0, 0, 0) is treated as modern.
    """
    return version != (0, 0, 0) and version < LEGACY_NAMING_VERSION


def verify_runtime_is_running(runner: ProcessRunner, is_mac: bool = False) -> tuple[bool, str]:
    """Verify that the Docker daemon is reachable.

    Returns:
        Tuple of (is_running, error_message); error_message is "" when running
    """
    result = runner.run(["docker", "info", "--format", "{{.ServerVersion}}"], check=False)
    if result.ok:
        return True, ""

    stderr = result.stderr.lower()
    if "permission denied" in stderr:
        return False, (
            "Docker is running but this user cannot reach it.\n\n"
            "Add your user to the docker group:\n"
            "sudo usermod -aG docker $USER\n"
            "(then log out and back in)"
        )
    return False, _get_docker_not_running_message(is_mac)


def _get_docker_not_running_message(is_mac: bool) -> str:
    """Get platform-specific message for Docker not running."""
    if is_mac:
        return (
            "Docker Desktop is not running.\n\n"
            "To fix this:\n"
            "1. Open Docker Desktop from Applications\n"
            "2. Wait for Docker to start (whale icon in menu bar should be steady)\n"
            "3. Try your command again"
        )
    return (
        "Docker daemon is not running.\n\n"
        "To fix this:\n"
        "1. Start Docker: sudo systemctl start docker\n"
        "2. Enable on boot: sudo systemctl enable docker\n"
        "3. Check status: sudo systemctl status docker"
    )

"""Host-side helpers: dependency check, wildcard DNS and image pre-fetch."""

import shutil

from dsh.deployment.environment import Environment, HostType
from dsh.deployment.exceptions import DshError, RequiredToolMissingError
from dsh.deployment.process import ProcessRunner
from dsh.utils.logger import get_logger

logger = get_logger("host")

DNSMASQ_DIR = "/etc/NetworkManager/dnsmasq.d"
RESOLVER_DIR = "/etc/resolver"
LOOPBACK = "127.0.0.1"

# (tool, remediation) checked by `dsh install` on macOS
MAC_REQUIRED_TOOLS = [
    ("brew", "Install Homebrew: https://brew.sh"),
    ("docker", "Install Docker Desktop: brew install --cask docker"),
    ("ssh-add", "ssh-add ships with macOS; check your PATH"),
]
COMPOSE_HINT = "Docker Desktop ships the compose plugin; or install it: brew install docker-compose"


class UnsupportedHostError(DshError):
    """The command only supports a different host class."""


def check_install(host_type: HostType, runner: ProcessRunner, which=shutil.which) -> list[str]:
    """Verify required host tools, including a compose front-end. Returns the tools found.

    :raises UnsupportedHostError: On hosts other than macOS
    :raises RequiredToolMissingError: For the first missing tool
    """
    if host_type is not HostType.MAC:
        raise UnsupportedHostError(
            "dsh install only supports macOS hosts",
            hint="On Linux install docker and the compose plugin with your package manager",
        )

    found = []
    for tool, hint in MAC_REQUIRED_TOOLS:
        if not which(tool):
            raise RequiredToolMissingError(tool, hint=hint)
        logger.info(f"Found {tool}")
        found.append(tool)

    if runner.run(["docker", "compose", "version", "--short"], check=False).ok:
        compose = "docker compose"
    elif which("docker-compose"):
        compose = "docker-compose"
    else:
        raise RequiredToolMissingError("docker compose", hint=COMPOSE_HINT)
    logger.info(f"Found {compose}")
    found.append(compose)
    return found


def dns_config(domain: str, host_type: HostType) -> tuple[str, str, list[list[str]]]:
    """(config path, file contents, follow-up commands) for wildcard DNS."""
    if host_type is HostType.MAC:
        return f"{RESOLVER_DIR}/{domain}", f"nameserver {LOOPBACK}\n", []
    return (
        f"{DNSMASQ_DIR}/{domain}.conf",
        f"address=/{domain}/{LOOPBACK}\n",
        [["sudo", "systemctl", "restart", "NetworkManager"]],
    )


def setup_dns(domain: str, host_type: HostType, runner: ProcessRunner, which=shutil.which) -> str:
    """Resolve *.<domain> to the loopback address. Returns the file written."""
    if not which("sudo"):
        raise RequiredToolMissingError("sudo", hint="Run as root or install sudo")

    path, contents, followups = dns_config(domain, host_type)
    directory = path.rsplit("/", 1)[0]

    logger.key_info(f"Resolving *.{domain} to {LOOPBACK} via {path}")
    runner.run(["sudo", "mkdir", "-p", directory])
    runner.run(["sudo", "tee", path], input=contents)
    for command in followups:
        runner.run(command)
    return path


def pull_images(env: Environment, runner: ProcessRunner) -> list[str]:
    """Pre-fetch project images and the shared singleton images."""
    logger.key_info("Pulling project images")
    runner.interactive(env.compose("pull"), env=env.compose_env(), check=True)

    images = [env.config.proxy_image]
    if env.is_mac:
        images.append(env.config.ssh_agent_image)
    for image in images:
        logger.info(f"Pulling {image}")
        runner.interactive(["docker", "pull", image], check=True)
    return images

"""Environment Resolver.

Derives every run-time parameter from the host and the working directory
into one immutable :class:`Environment`. Components receive this value and
never read ``os.environ`` themselves.

Resolution order:

1. Project directory, ``dsh.yml`` and ``.env`` (see :mod:`dsh.utils.config`)
2. Host class (:class:`HostType`), always exactly one
3. Compose front-end and version, which decide project-name sanitising
4. Project identity, domain and SSH-agent socket paths
5. Reverse-proxy published port, probed from the live proxy container

The proxy port is stale when the proxy is not running yet; the lifecycle
controller calls :meth:`Environment.with_proxy_port` after ensuring it.
"""

import getpass
import os
import platform
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path, PurePosixPath

from dsh.deployment.exceptions import EnvironmentResolutionError
from dsh.deployment.process import ProcessRunner
from dsh.deployment.probes import ResourceProbes
from dsh.deployment.runtime_helper import (
    get_compose_command,
    get_compose_version,
    uses_legacy_naming,
)
from dsh.utils.config import ProjectConfig, load_project_config
from dsh.utils.logger import get_logger

logger = get_logger("environment")

# Shared singletons: fixed names so every project converges on one instance
PROXY_CONTAINER = "nginx-proxy"
SSH_AGENT_CONTAINER = "ssh-agent"
SSH_AGENT_VOLUME = "ssh-agent"

# In-container mount point for the agent socket directory
CONTAINER_SSH_DIR = "/ssh"
DEFAULT_WEB_PORT = 80


class HostType(Enum):
    """Closed set of supported host classes."""

    MAC = "mac"
    LINUX = "linux"


def detect_host_type(system: str | None = None) -> HostType:
    """Classify the host from its kernel name.

    Darwin is MAC; every other kernel (Linux, WSL, BSDs) is treated as LINUX.
    """
    system = system if system is not None else platform.system()
    return HostType.MAC if system == "Darwin" else HostType.LINUX


def normalize_project_name(basename: str, compose_version: tuple[int, int, int]) -> str:
    """Turn a directory name into a compose-safe project identity.

    >>> normalize_project_name("My-Site_2", (2, 24, 0))
    'my-site_2'
    >>> normalize_project_name("My-Site_2", (1, 8, 0))
    'mysite2'
    """
    name = re.sub(r"[^a-z0-9_-]", "", basename.lower())
    if uses_legacy_naming(compose_version):
        name = re.sub(r"[-_]", "", name)
    return name.lstrip("-_")


@dataclass(frozen=True)
class Environment:
    """Everything a single invocation needs to know about its world."""

    project_dir: Path
    project: str
    domain: str
    host_type: HostType
    proxy_port: int | None
    ssh_auth_sock_dir: str
    container_ssh_auth_sock: str
    user: str
    uid: int
    home: Path
    compose_command: tuple[str, ...]
    compose_version: tuple[int, int, int]
    config: ProjectConfig = field(default_factory=ProjectConfig)
    environ: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_mac(self) -> bool:
        return self.host_type is HostType.MAC

    @property
    def network_name(self) -> str:
        return f"{self.project}_default"

    @property
    def hostname(self) -> str:
        return f"{self.project}.{self.domain}"

    @property
    def url(self) -> str:
        """Access URL; the port suffix is omitted for the default web port."""
        port = self.proxy_port or self.config.proxy_port
        if port == DEFAULT_WEB_PORT:
            return f"http://{self.hostname}"
        return f"http://{self.hostname}:{port}"

    def with_proxy_port(self, port: int | None) -> "Environment":
        return replace(self, proxy_port=port)

    def compose(self, *args: str) -> list[str]:
        """Compose command line pinned to this project's name."""
        return [*self.compose_command, "-p", self.project, *args]

    def compose_env(self) -> dict[str, str]:
        """Child environment for compose: caller's variables plus ours."""
        env = dict(self.environ)
        env.update(
            {
                "PROJECT": self.project,
                "COMPOSE_PROJECT_NAME": self.project,
                "DOMAIN": self.domain,
                "HOST_SSH_AUTH_SOCK_DIR": self.ssh_auth_sock_dir,
                "CONTAINER_SSH_AUTH_SOCK": self.container_ssh_auth_sock,
            }
        )
        return env


def resolve_domain(environ: Mapping[str, str], config: ProjectConfig) -> str:
    """DOMAIN wins, then <MACHINE_NAME>.localhost, then dsh.yml / default."""
    if environ.get("DOMAIN"):
        return environ["DOMAIN"]
    if environ.get("MACHINE_NAME"):
        return f"{environ['MACHINE_NAME']}.localhost"
    return config.domain


def load_config(project_dir: Path, environ: Mapping[str, str]) -> tuple[ProjectConfig, dict[str, str]]:
    """Load dsh.yml/.env, reporting malformed files as resolution errors."""
    try:
        return load_project_config(project_dir, environ)
    except ValueError as e:
        raise EnvironmentResolutionError(str(e)) from e


def resolve_project_domain(cwd: Path | None = None, environ: Mapping[str, str] | None = None) -> str:
    """Domain only, for commands that must work before docker is installed."""
    project_dir = Path(cwd or Path.cwd()).resolve()
    config, environ = load_config(project_dir, dict(os.environ if environ is None else environ))
    return resolve_domain(environ, config)


def resolve_ssh_agent_paths(
    host_type: HostType, environ: Mapping[str, str], required: bool = True
) -> tuple[str, str]:
    """Return (host socket dir or volume, container-visible socket path).

    :raises EnvironmentResolutionError: On LINUX without SSH_AUTH_SOCK when required
    """
    if host_type is HostType.MAC:
        # Socket lives in the ssh-agent proxy's named volume
        return SSH_AGENT_VOLUME, f"{CONTAINER_SSH_DIR}/socket"

    sock = environ.get("SSH_AUTH_SOCK")
    if not sock:
        if required:
            raise EnvironmentResolutionError(
                "SSH_AUTH_SOCK is not set; cannot forward the SSH agent into containers",
                hint="Start an agent first: eval $(ssh-agent) && ssh-add",
            )
        return "", ""

    sock_path = PurePosixPath(sock)
    return str(sock_path.parent), f"{CONTAINER_SSH_DIR}/{sock_path.name}"


def resolve_environment(
    runner: ProcessRunner,
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
    require_ssh_agent: bool = True,
    system: str | None = None,
) -> Environment:
    """Resolve the Environment for this invocation.

    :param runner: Process runner used for compose detection and proxy probing
    :param cwd: Project directory, defaults to the current directory
    :param environ: Caller environment, defaults to os.environ
    :param require_ssh_agent: Fail when the agent socket cannot be located
    :param system: Kernel name override, defaults to platform.system()
    :raises EnvironmentResolutionError: When the project or agent cannot be resolved
    """
    project_dir = Path(cwd or Path.cwd()).resolve()
    environ = dict(os.environ if environ is None else environ)

    config, environ = load_config(project_dir, environ)

    host_type = detect_host_type(system)
    compose_command = get_compose_command(runner)
    compose_version = get_compose_version(runner, compose_command)

    project = normalize_project_name(project_dir.name, compose_version)
    if not project:
        raise EnvironmentResolutionError(
            f"Cannot derive a project name from directory '{project_dir.name}'",
            hint="Rename the directory to start with a letter or digit",
        )

    ssh_dir, container_sock = resolve_ssh_agent_paths(host_type, environ, required=require_ssh_agent)

    user = environ.get("USER") or getpass.getuser()
    home = Path(environ.get("HOME") or Path.home())

    proxy_port = ResourceProbes(runner).published_port(PROXY_CONTAINER, DEFAULT_WEB_PORT)

    env = Environment(
        project_dir=project_dir,
        project=project,
        domain=resolve_domain(environ, config),
        host_type=host_type,
        proxy_port=proxy_port,
        ssh_auth_sock_dir=ssh_dir,
        container_ssh_auth_sock=container_sock,
        user=user,
        uid=os.getuid(),
        home=home,
        compose_command=tuple(compose_command),
        compose_version=compose_version,
        config=config,
        environ=environ,
    )
    logger.debug(
        f"Resolved project={env.project} domain={env.domain} host={env.host_type.value} "
        f"compose={' '.join(env.compose_command)} {'.'.join(map(str, compose_version))}"
    )
    return env

"""
Pytest configuration and shared test utilities.

Provides an in-memory stand-in for the Docker CLI so lifecycle behaviour can
be tested end to end without a container runtime.
"""

import json
from unittest.mock import patch

import pytest

from dsh.deployment.environment import resolve_environment
from dsh.deployment.exceptions import CommandError
from dsh.deployment.process import CommandResult

# ===================================================================
# Fake container runtime
# ===================================================================

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"


class FakeDocker:
    """Scripted runner that interprets the docker commands dsh issues.

    State (containers, networks, volumes) lives in plain dicts so tests can
    seed it and assert on it. Every call is recorded in ``calls``.
    """

    def __init__(self, services=("web", "db", "mail")):
        self.services = list(services)
        self.containers = {}  # name -> {"running", "labels", "image", "port"}
        self.networks = {}  # name -> {"labels", "members"}
        self.volumes = {}  # name -> labels
        self.compose_volumes = set()  # volumes declared in the compose file
        self.users = {}  # container -> set of users
        self.calls = []
        self.interactive_calls = []

        self.compose_version = "2.24.5"
        self.compose_plugin = True
        self.daemon_running = True
        self.start_fails = set()
        self.ssh_keys_output = ""
        self.host_ip_output = "192.168.1.20 172.17.0.1"
        self.php_version = "7.4"
        self.xdebug_remote_host_line = True
        self.key_fingerprints = {}  # public key path -> fingerprint
        self.shell_exit_code = 0
        self.compose_up_fails = False

    # -- seeding helpers ------------------------------------------------

    def add_container(self, name, running=True, labels=None, image="image", port=None):
        self.containers[name] = {
            "running": running,
            "labels": dict(labels or {}),
            "image": image,
            "port": port,
        }

    def add_project(self, project, running=True):
        """Seed containers as if `compose up` had run for a project."""
        self._compose_up(project)
        for name in self._project_container_names(project):
            self.containers[name]["running"] = running

    # -- query helpers for assertions ----------------------------------

    def commands(self, *prefix):
        """All recorded calls (run and interactive) starting with prefix."""
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]

    def _project_container_names(self, project):
        return [n for n, c in self.containers.items() if c["labels"].get(PROJECT_LABEL) == project]

    # -- runner interface -----------------------------------------------

    def run(self, args, check=True, env=None, input=None):
        args = list(args)
        self.calls.append(args)
        returncode, stdout, stderr = self._dispatch(args, input)
        result = CommandResult(tuple(args), returncode, stdout, stderr)
        if check and returncode != 0:
            raise CommandError(args, returncode, stderr)
        return result

    def interactive(self, args, env=None, check=False):
        args = list(args)
        self.calls.append(args)
        self.interactive_calls.append((args, env))
        returncode, _, stderr = self._dispatch(args, None)
        if check and returncode != 0:
            raise CommandError(args, returncode, stderr)
        return returncode

    # -- command interpretation ------------------------------------------

    def _dispatch(self, args, input):
        if args[:2] == ["docker", "compose"] and args[2:3] == ["version"]:
            if not self.compose_plugin:
                return 1, "", "docker: 'compose' is not a docker command."
            return 0, f"{self.compose_version}\n", ""
        if args[:2] == ["docker", "compose"] and args[2:3] == ["-p"]:
            return self._compose(args[3], args[4:])
        if args[:2] == ["docker", "info"]:
            return (0, "24.0.7\n", "") if self.daemon_running else (1, "", "Cannot connect to the Docker daemon")
        if args[:2] == ["docker", "ps"]:
            return self._ps(args[2:])
        if args[:2] == ["docker", "port"]:
            container = self.containers.get(args[2])
            if not container or not container["running"] or not container["port"]:
                return 1, "", "no public port"
            return 0, f"0.0.0.0:{container['port']}\n[::]:{container['port']}\n", ""
        if args[:2] == ["docker", "start"]:
            return self._start(args[2])
        if args[:2] == ["docker", "run"]:
            return self._run_container(args[2:])
        if args[:2] == ["docker", "network"]:
            return self._network(args[2], args[3:])
        if args[:3] == ["docker", "volume", "ls"]:
            label = args[args.index("--filter") + 1].removeprefix("label=")
            key, _, value = label.partition("=")
            names = [n for n, labels in self.volumes.items() if labels.get(key) == value]
            return 0, "".join(f"{n}\n" for n in names), ""
        if args[:3] == ["docker", "volume", "rm"]:
            if self.volumes.pop(args[3], None) is None:
                return 1, "", "no such volume"
            return 0, "", ""
        if args[:2] == ["docker", "exec"]:
            return self._exec(args[2:])
        if args[:2] in (["docker", "cp"], ["docker", "logs"], ["docker", "pull"]):
            return 0, "", ""
        if args[:2] == ["hostname", "-I"] or args[:3] == ["ipconfig", "getifaddr", "en0"]:
            return (0, f"{self.host_ip_output}\n", "") if self.host_ip_output else (1, "", "")
        if args[:2] == ["ssh-keygen", "-lf"]:
            fingerprint = self.key_fingerprints.get(args[2])
            if not fingerprint:
                return 1, "", f"{args[2]} is not a public key file."
            return 0, f"256 {fingerprint} key-comment (ED25519)\n", ""
        if args[:2] == ["ssh-add", "-l"]:
            return (0, self.ssh_keys_output, "") if self.ssh_keys_output else (1, "The agent has no identities.\n", "")
        if args[:1] == ["sudo"]:
            return 0, "", ""
        raise AssertionError(f"FakeDocker does not understand: {args}")

    def _ps(self, args):
        show_all = "-a" in args
        filters = [args[i + 1] for i, a in enumerate(args) if a == "--filter"]
        fmt = args[args.index("--format") + 1]

        matched = []
        for name, container in self.containers.items():
            if not show_all and not container["running"]:
                continue
            ok = True
            for flt in filters:
                if flt.startswith("name="):
                    pattern = flt.removeprefix("name=").removeprefix("^").removeprefix("/?").removesuffix("$")
                    ok = ok and name == pattern
                elif flt.startswith("label="):
                    key, _, value = flt.removeprefix("label=").partition("=")
                    ok = ok and container["labels"].get(key) == value
            if ok:
                matched.append((name, container))

        if fmt == "{{.Names}}":
            return 0, "".join(f"{n}\n" for n, _ in matched), ""
        rows = [
            json.dumps(
                {
                    "Names": n,
                    "State": "running" if c["running"] else "exited",
                    "Image": c["image"],
                    "Ports": f"0.0.0.0:{c['port']}->80/tcp" if c["port"] else "",
                }
            )
            for n, c in matched
        ]
        return 0, "".join(f"{r}\n" for r in rows), ""

    def _start(self, name):
        if name not in self.containers:
            return 1, "", f"No such container: {name}"
        if name not in self.start_fails:
            self.containers[name]["running"] = True
        return 0, f"{name}\n", ""

    def _run_container(self, args):
        if "--rm" in args:
            return 0, "", ""
        name = args[args.index("--name") + 1]
        if name in self.containers:
            return 125, "", f'Conflict. The container name "/{name}" is already in use'
        port = None
        if "-p" in args:
            port = int(args[args.index("-p") + 1].split(":")[0])
        self.add_container(name, running=name not in self.start_fails, image=args[-1], port=port)
        return 0, "abc123\n", ""

    def _network(self, action, args):
        if action == "ls":
            pattern = args[args.index("--filter") + 1].removeprefix("name=^").removesuffix("$")
            return 0, (f"{pattern}\n" if pattern in self.networks else ""), ""
        if action == "create":
            name = args[-1]
            if name in self.networks:
                return 1, "", f"network with name {name} already exists"
            labels = dict(args[i + 1].split("=", 1) for i, a in enumerate(args) if a == "--label")
            self.networks[name] = {"labels": labels, "members": set()}
            return 0, "netid\n", ""
        if action == "inspect":
            name = args[-1]
            if name not in self.networks:
                return 1, "[]\n", f"Error: No such network: {name}"
            members = {f"id-{m}": {"Name": m} for m in sorted(self.networks[name]["members"])}
            return 0, json.dumps(members) + "\n", ""
        if action == "connect":
            name, container = args
            if name not in self.networks:
                return 1, "", "no such network"
            if container in self.networks[name]["members"]:
                return 1, "", f"endpoint with name {container} already exists in network {name}"
            self.networks[name]["members"].add(container)
            return 0, "", ""
        if action == "disconnect":
            name, container = args
            if name not in self.networks or container not in self.networks[name]["members"]:
                return 1, "", "is not connected to network"
            self.networks[name]["members"].discard(container)
            return 0, "", ""
        if action == "rm":
            name = args[0]
            if name not in self.networks:
                return 1, "", "no such network"
            if self.networks[name]["members"]:
                return 1, "", f"error while removing network: network {name} has active endpoints"
            del self.networks[name]
            return 0, "", ""
        raise AssertionError(f"FakeDocker does not understand network {action}")

    def _exec(self, args):
        # Skip exec options to find the container argument
        i = 0
        while args[i].startswith("-"):
            i += 1 if args[i] in ("-it", "-i", "-t") else 2
        container, command = args[i], args[i + 1 :]
        if container not in self.containers or not self.containers[container]["running"]:
            return 1, "", f"container {container} is not running"

        if command[:2] == ["id", "-u"]:
            return (0, "1000\n", "") if command[2] in self.users.get(container, set()) else (1, "", "no such user")
        if command[:1] == ["useradd"]:
            self.users.setdefault(container, set()).add(command[-1])
            return 0, "", ""
        if command[:2] == ["php", "-r"]:
            return (0, self.php_version, "") if self.php_version else (1, "", "php: not found")
        if command[:2] == ["grep", "-q"]:
            return (0, "", "") if self.xdebug_remote_host_line else (1, "", "")
        if command[:1] in (["sed"], ["apachectl"], ["chown"], ["sh"]):
            return 0, "", ""
        return self.shell_exit_code, "", ""

    def _compose(self, project, args):
        if args[:1] == ["up"]:
            if self.compose_up_fails:
                return 1, "", "compose up failed"
            self._compose_up(project)
            return 0, "", ""
        if args[:1] == ["stop"]:
            for name in self._project_container_names(project):
                self.containers[name]["running"] = False
            return 0, "", ""
        if args[:1] == ["down"]:
            for name in self._project_container_names(project):
                del self.containers[name]
            network = f"{project}_default"
            if network in self.networks:
                # compose only removes networks nothing else is attached to
                if not self.networks[network]["members"]:
                    del self.networks[network]
            if "--volumes" in args:
                for volume in [v for v in self.compose_volumes if self.volumes.get(v, {}).get(PROJECT_LABEL) == project]:
                    del self.volumes[volume]
                    self.compose_volumes.discard(volume)
            return 0, "", ""
        if args[:1] == ["pull"]:
            return 0, "", ""
        raise AssertionError(f"FakeDocker does not understand compose {args}")

    def _compose_up(self, project):
        network = f"{project}_default"
        self.networks.setdefault(network, {"labels": {PROJECT_LABEL: project}, "members": set()})
        for service in self.services:
            name = f"{project}-{service}-1"
            if name not in self.containers:
                self.add_container(name, labels={PROJECT_LABEL: project, SERVICE_LABEL: service}, image=f"{service}:latest")
            self.containers[name]["running"] = True
        self.volumes.setdefault(f"{project}_shared", {PROJECT_LABEL: project})
        self.compose_volumes.add(f"{project}_shared")


# ===================================================================
# Fixtures
# ===================================================================


@pytest.fixture
def docker():
    """Fresh fake runtime with nothing running."""
    return FakeDocker()


@pytest.fixture(autouse=True)
def docker_installed():
    """Pretend docker and docker-compose binaries are on PATH."""
    with patch("dsh.deployment.runtime_helper.shutil.which", side_effect=lambda tool: f"/usr/bin/{tool}"):
        yield


@pytest.fixture
def home_dir(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def environ(home_dir):
    """Minimal host environment for a Linux developer machine."""
    return {
        "HOME": str(home_dir),
        "USER": "dev",
        "SSH_AUTH_SOCK": "/tmp/ssh-XXXX/agent.123",
        "PATH": "/usr/bin:/bin",
    }


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "demo"
    path.mkdir()
    return path


@pytest.fixture
def make_env(docker, environ):
    """Factory resolving an Environment against the fake runtime."""

    def _make(directory, system="Linux", **overrides):
        return resolve_environment(docker, cwd=directory, environ={**environ, **overrides}, system=system)

    return _make

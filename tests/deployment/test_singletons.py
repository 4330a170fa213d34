"""Tests for the shared reverse proxy and SSH agent containers."""

from unittest.mock import patch

import pytest

from dsh.deployment.exceptions import ProvisioningError
from dsh.deployment.probes import ResourceProbes
from dsh.deployment.singletons import CREATED, RUNNING, STARTED, ReverseProxy, SshAgentProxy


@pytest.fixture
def proxy(docker):
    return ReverseProxy(docker, ResourceProbes(docker), "jwilder/nginx-proxy", 80)


@pytest.fixture
def agent(docker, environ, home_dir):
    return SshAgentProxy(docker, ResourceProbes(docker), "nardeas/ssh-agent", environ, home_dir)


class TestReverseProxy:
    def test_creates_when_absent(self, docker, proxy):
        assert proxy.ensure() == CREATED

        created = docker.commands("docker", "run")
        assert created == [
            [
                "docker", "run", "-d", "--name", "nginx-proxy", "--restart", "unless-stopped",
                "-p", "80:80", "-v", "/var/run/docker.sock:/tmp/docker.sock:ro", "jwilder/nginx-proxy",
            ]
        ]  # fmt: skip
        assert docker.containers["nginx-proxy"]["running"]

    def test_starts_when_stopped(self, docker, proxy):
        docker.add_container("nginx-proxy", running=False, port=80)

        assert proxy.ensure() == STARTED
        assert docker.commands("docker", "start") == [["docker", "start", "nginx-proxy"]]
        assert docker.commands("docker", "run") == []

    def test_nothing_to_do_when_running(self, docker, proxy):
        docker.add_container("nginx-proxy", port=80)

        assert proxy.ensure() == RUNNING
        assert docker.commands("docker", "start") == []
        assert docker.commands("docker", "run") == []

    def test_repeated_ensure_keeps_one_instance(self, docker, proxy):
        proxy.ensure()
        proxy.ensure()
        proxy.ensure()

        assert len(docker.commands("docker", "run")) == 1
        assert [n for n in docker.containers if n == "nginx-proxy"] == ["nginx-proxy"]

    def test_custom_port(self, docker):
        ReverseProxy(docker, ResourceProbes(docker), "jwilder/nginx-proxy", 8080).ensure()

        assert "8080:80" in docker.commands("docker", "run")[0]

    def test_not_running_after_start(self, docker, proxy):
        docker.add_container("nginx-proxy", running=False)
        docker.start_fails.add("nginx-proxy")

        with pytest.raises(ProvisioningError) as exc_info:
            proxy.ensure()
        assert "docker logs nginx-proxy" in exc_info.value.hint

    def test_create_failure_is_provisioning_error(self, docker, proxy):
        # Another invocation created it between probe and create
        with patch.object(proxy.probes, "container_exists", return_value=False):
            docker.add_container("nginx-proxy", running=False)
            with pytest.raises(ProvisioningError):
                proxy.ensure()


class TestSshAgentProxy:
    def test_creates_with_agent_volume(self, docker, agent):
        assert agent.ensure() == CREATED

        created = docker.commands("docker", "run", "-d")[0]
        assert "ssh-agent:/.ssh-agent" in created
        assert created[-1] == "nardeas/ssh-agent"

    def test_host_keys_parsed(self, docker, agent):
        docker.ssh_keys_output = (
            "4096 SHA256:abc /home/dev/.ssh/id_rsa (RSA)\n"
            "256 SHA256:def dev@laptop (ED25519)\n"
        )

        assert agent.host_keys() == [
            ("SHA256:abc", "/home/dev/.ssh/id_rsa"),
            ("SHA256:def", "dev@laptop"),
        ]

    def test_no_agent_means_no_keys(self, agent):
        assert agent.host_keys() == []

    def test_keys_seeded_on_creation(self, docker, agent, tmp_path):
        key = tmp_path / "id_ed25519"
        key.write_text("PRIVATE")
        docker.ssh_keys_output = f"256 SHA256:def {key} (ED25519)\n256 SHA256:ghi agent-only-key (ED25519)\n"

        agent.ensure()

        seeds = [args for args, _ in docker.interactive_calls]
        assert len(seeds) == 1
        assert "--volumes-from=ssh-agent" in seeds[0]
        assert f"{key}:/root/.ssh/id_ed25519:ro" in seeds[0]
        assert seeds[0][-2:] == ["ssh-add", "/root/.ssh/id_ed25519"]

    def test_keys_not_reseeded_when_existing(self, docker, agent, tmp_path):
        key = tmp_path / "id_rsa"
        key.write_text("PRIVATE")
        docker.ssh_keys_output = f"4096 SHA256:abc {key} (RSA)\n"
        docker.add_container("ssh-agent", running=False)

        assert agent.ensure() == STARTED
        assert docker.interactive_calls == []

    def test_key_with_comment_found_by_fingerprint(self, docker, agent, home_dir):
        ssh_dir = home_dir / ".ssh"
        ssh_dir.mkdir(exist_ok=True)
        (ssh_dir / "id_ed25519").write_text("PRIVATE")
        (ssh_dir / "id_ed25519.pub").write_text("ssh-ed25519 AAAA dev@laptop")
        (ssh_dir / "stale.pub").write_text("ssh-ed25519 BBBB old@laptop")
        docker.key_fingerprints[str(ssh_dir / "id_ed25519.pub")] = "SHA256:def"
        docker.ssh_keys_output = "256 SHA256:def dev@laptop (ED25519)\n"

        agent.ensure()

        seeds = [args for args, _ in docker.interactive_calls]
        assert len(seeds) == 1
        assert f"{ssh_dir / 'id_ed25519'}:/root/.ssh/id_ed25519:ro" in seeds[0]
        # A .pub without its private key is never fingerprinted
        assert ["ssh-keygen", "-lf", str(ssh_dir / "stale.pub")] not in docker.calls

    def test_unmatched_key_is_skipped(self, docker, agent):
        docker.ssh_keys_output = "256 SHA256:zzz dev@laptop (ED25519)\n"

        assert agent.ensure() == CREATED
        assert docker.interactive_calls == []

    def test_seed_without_terminal_drops_tty_flag(self, docker, agent, tmp_path):
        key = tmp_path / "id_rsa"
        key.write_text("PRIVATE")
        docker.ssh_keys_output = f"4096 SHA256:abc {key} (RSA)\n"

        with patch("dsh.deployment.process.sys.stdin") as stdin:
            stdin.isatty.return_value = False
            agent.ensure()

        seed = docker.interactive_calls[0][0]
        assert "-i" in seed
        assert "-it" not in seed

    def test_seed_with_terminal_allocates_tty(self, docker, agent, tmp_path):
        key = tmp_path / "id_rsa"
        key.write_text("PRIVATE")
        docker.ssh_keys_output = f"4096 SHA256:abc {key} (RSA)\n"

        with patch("dsh.deployment.process.sys.stdin") as stdin:
            stdin.isatty.return_value = True
            agent.ensure()

        assert "-it" in docker.interactive_calls[0][0]

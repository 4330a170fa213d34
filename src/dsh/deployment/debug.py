"""Debug Reconfigurer.

After the project starts, points the in-container Xdebug at this host and
gracefully reloads Apache so the setting takes effect.
"""

import re

from dsh.deployment.environment import HostType
from dsh.deployment.process import ProcessRunner
from dsh.utils.logger import get_logger

logger = get_logger("debug")

XDEBUG_INI = "/etc/php/{version}/mods-available/xdebug.ini"
PHP_VERSION_SNIPPET = 'echo PHP_MAJOR_VERSION.".".PHP_MINOR_VERSION;'

_IPV4_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


def detect_host_ip(runner: ProcessRunner, host_type: HostType) -> str | None:
    """First non-loopback IPv4 address of this host, or None."""
    if host_type is HostType.MAC:
        result = runner.run(["ipconfig", "getifaddr", "en0"], check=False)
    else:
        result = runner.run(["hostname", "-I"], check=False)
    if not result.ok:
        return None

    for candidate in result.stdout.split():
        if _IPV4_RE.match(candidate) and not candidate.startswith("127."):
            return candidate
    return None


class DebugReconfigurer:
    """Rewrites xdebug.remote_host in a running web container."""

    def __init__(self, runner: ProcessRunner, host_type: HostType):
        self.runner = runner
        self.host_type = host_type

    def php_version(self, container: str) -> str | None:
        result = self.runner.run(["docker", "exec", container, "php", "-r", PHP_VERSION_SNIPPET], check=False)
        version = result.stdout.strip()
        return version if result.ok and re.fullmatch(r"\d+\.\d+", version) else None

    def reconfigure(self, container: str) -> bool:
        """Point Xdebug at the host. Returns False when the step was skipped."""
        host_ip = detect_host_ip(self.runner, self.host_type)
        if not host_ip:
            logger.warning("Could not detect the host IP; Xdebug not reconfigured")
            return False

        version = self.php_version(container)
        if not version:
            logger.warning(f"Could not detect the PHP version in {container}; Xdebug not reconfigured")
            return False

        ini = XDEBUG_INI.format(version=version)
        has_setting = self.runner.run(
            ["docker", "exec", container, "grep", "-q", "^xdebug\\.remote_host=", ini],
            check=False,
        )
        if not has_setting.ok:
            logger.warning(f"No xdebug.remote_host setting in {ini} in {container}; Xdebug not reconfigured")
            return False

        rewrite = self.runner.run(
            [
                "docker",
                "exec",
                "-u",
                "root",
                container,
                "sed",
                "-i",
                f"s/^xdebug\\.remote_host=.*/xdebug.remote_host={host_ip}/",
                ini,
            ],
            check=False,
        )
        if not rewrite.ok:
            logger.warning(f"Could not update {ini} in {container}; is Xdebug installed?")
            return False

        reload = self.runner.run(["docker", "exec", "-u", "root", container, "apachectl", "graceful"], check=False)
        if not reload.ok:
            logger.warning(f"Apache reload failed in {container}; restart it to apply Xdebug settings")
        logger.info(f"Xdebug remote host set to {host_ip} (PHP {version})")
        return True

"""External command execution with strict and tolerant modes.

Every interaction with docker, the compose tool and host utilities goes
through :class:`ProcessRunner`. Commands are argument lists, never shell
strings.

Two modes:

- **strict** (``check=True``): a non-zero exit raises :class:`CommandError`
  and stops the invocation. Used for provisioning steps.
- **tolerant** (``check=False``): the result is returned and inspected by the
  caller. Used for idempotency probes and best-effort teardown.

Examples:
    Probe then act::

        runner = ProcessRunner()
        probe = runner.run(["docker", "network", "inspect", "demo_default"], check=False)
        if not probe.ok:
            runner.run(["docker", "network", "create", "demo_default"])
"""

import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass

from dsh.deployment.exceptions import CommandError, RequiredToolMissingError
from dsh.utils.logger import get_logger

logger = get_logger("process")


def tty_flags() -> list[str]:
    """`docker exec`/`docker run` flags for an attached session; no -t without a terminal."""
    return ["-it"] if sys.stdin.isatty() else ["-i"]


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a captured command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        """Non-empty, stripped stdout lines."""
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


class ProcessRunner:
    """Runs host commands and captures their output."""

    def run(
        self,
        args: list[str],
        check: bool = True,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> CommandResult:
        """Run a command to completion with captured output.

        :param args: Command and arguments
        :param check: Strict mode; raise CommandError on non-zero exit
        :param env: Full environment for the child, inherits ours when None
        :param input: Text written to the child's stdin
        :raises CommandError: In strict mode when the command fails
        :raises RequiredToolMissingError: When the executable does not exist
        """
        logger.debug(f"Running: {' '.join(args)}")
        try:
            completed = subprocess.run(
                list(args),
                capture_output=True,
                text=True,
                env=dict(env) if env is not None else None,
                input=input,
            )
        except FileNotFoundError as e:
            raise RequiredToolMissingError(args[0]) from e

        result = CommandResult(
            args=tuple(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise CommandError(list(args), result.returncode, result.stderr)
        return result

    def interactive(
        self,
        args: list[str],
        env: Mapping[str, str] | None = None,
        check: bool = False,
    ) -> int:
        """Run a command attached to our terminal and return its exit code.

        Used for ``docker exec -it``, ``docker logs -f`` and compose commands
        whose progress output the user should see.
        """
        logger.debug(f"Running (attached): {' '.join(args)}")
        try:
            completed = subprocess.run(list(args), env=dict(env) if env is not None else None)
        except FileNotFoundError as e:
            raise RequiredToolMissingError(args[0]) from e

        if check and completed.returncode != 0:
            raise CommandError(list(args), completed.returncode)
        return completed.returncode

"""Exception hierarchy for environment orchestration.

Errors are split by how the CLI reacts to them:

**Environment errors**: the host cannot be described well enough to provision
anything (no SSH agent socket, unreadable project directory). Raised before
any container is touched.

**Tool errors**: a host-side executable the current command depends on is not
installed. Carries a remediation hint.

**Provisioning errors**: a shared singleton or project resource did not reach
the desired state. Downstream steps assume these resources are live, so the
whole invocation stops.

**Command errors**: a strict-mode external command exited non-zero.

Idempotency probes never raise; a missing resource is a normal answer.

Examples:
    Reporting a fatal error at the CLI boundary::

        >>> try:
        ...     controller.start()
        ... except DshError as e:
        ...     console.print(Messages.error(e.message))
        ...     raise click.exceptions.Exit(e.exit_code)
"""


class DshError(Exception):
    """Base class for all fatal orchestration errors.

    :param message: Short diagnostic printed to the user
    :param hint: Optional remediation printed below the diagnostic
    """

    exit_code = 1

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        return self.message


class EnvironmentResolutionError(DshError):
    """The host environment could not be resolved into run-time parameters."""


class RequiredToolMissingError(DshError):
    """A host executable needed by the current command is not installed."""

    def __init__(self, tool: str, hint: str | None = None):
        super().__init__(f"Required tool '{tool}' was not found on this host", hint)
        self.tool = tool


class ProvisioningError(DshError):
    """A shared or project resource failed to reach its desired state."""


class CommandError(DshError):
    """A strict-mode command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = ""):
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        message = f"Command failed ({returncode}): {' '.join(args)}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr

"""Container orchestration for local dsh environments.

This package resolves the host environment, probes the container runtime and
reconciles shared and project-scoped resources.
"""

from .container_manager import LifecycleController
from .environment import Environment, HostType, resolve_environment
from .exceptions import (
    CommandError,
    DshError,
    EnvironmentResolutionError,
    ProvisioningError,
    RequiredToolMissingError,
)
from .process import CommandResult, ProcessRunner

__all__ = [
    "LifecycleController",
    "Environment",
    "HostType",
    "resolve_environment",
    "ProcessRunner",
    "CommandResult",
    "DshError",
    "CommandError",
    "EnvironmentResolutionError",
    "ProvisioningError",
    "RequiredToolMissingError",
]

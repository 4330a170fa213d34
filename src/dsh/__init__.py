"""
dsh - local Docker development environments.

Brings up a project's containers behind a shared reverse proxy, wires them
into a private network and tears them down again, re-deriving state from the
container runtime on every invocation.
"""

__version__ = "1.0.0"

from .deployment import Environment, LifecycleController, ProcessRunner, resolve_environment

__all__ = [
    "Environment",
    "LifecycleController",
    "ProcessRunner",
    "resolve_environment",
]

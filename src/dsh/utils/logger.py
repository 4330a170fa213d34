"""
Component Logger Framework

Provides colored logging for dsh components with:
- Unified API for all components (resolver, probes, lifecycle, host tools)
- Rich terminal output with component-specific colors
- Graceful fallbacks when configuration is unavailable

Usage:
    logger = get_logger("lifecycle")
    logger.key_info("Starting project containers")
    logger.info("Network demo_default already exists")
    logger.debug("Running: docker ps -a ...")
    logger.success("Project is up")
    logger.warning("Could not detect host IP")

    # Custom loggers with explicit parameters
    logger = get_logger(name="custom_component", color="blue")
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# Default component colors; overridden by logging.colors in dsh.yml
DEFAULT_COLORS = {
    "environment": "cyan",
    "process": "grey62",
    "probes": "blue",
    "proxy": "magenta",
    "ssh_agent": "magenta",
    "network": "blue",
    "lifecycle": "green",
    "debug": "yellow",
    "host": "cyan",
    "config": "white",
}

_component_colors: dict[str, str] = dict(DEFAULT_COLORS)


class ComponentLogger:
    """
    Rich-formatted logger for dsh components with color coding and message hierarchy.

    Message Types:
    - key_info: Important operational information
    - info: Normal operational messages
    - debug: Detailed tracing information (commands being run)
    - warning: Warning messages
    - success: Success messages
    """

    def __init__(self, base_logger: logging.Logger, component_name: str, color: str | None = None):
        """
        Initialize component logger.

        Args:
            base_logger: Underlying Python logger
            component_name: Name of the component (e.g., 'proxy', 'network', 'lifecycle')
            color: Rich color name for this component; looked up per message when None
        """
        self.base_logger = base_logger
        self.component_name = component_name
        self._color = color

    @property
    def color(self) -> str:
        # Module-level loggers exist before dsh.yml is read, so resolve lazily
        return self._color or _component_colors.get(self.component_name, "white")

    def _format_message(self, message: str, style: str, emoji: str = "") -> str:
        """Format message with Rich markup and emoji prefix."""
        prefix = f"{emoji}{self.component_name.replace('_', ' ').title()}: "
        if style:
            return f"[{style}]{prefix}{message}[/{style}]"
        return f"{prefix}{message}"

    def key_info(self, message: str) -> None:
        """Important operational information."""
        style = f"bold {self.color}" if self.color != "white" else "bold white"
        self.base_logger.info(self._format_message(message, style))

    def info(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, self.color))

    def debug(self, message: str) -> None:
        """Debug message, used for every external command that is run."""
        style = f"dim {self.color}" if self.color != "white" else "dim white"
        self.base_logger.debug(self._format_message(message, style, "🔍 "))

    def warning(self, message: str) -> None:
        self.base_logger.warning(self._format_message(message, "bold yellow", "⚠️  "))

    def success(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, "bold green", "✅ "))


def _setup_rich_logging(level: int = logging.INFO) -> None:
    """Configure Rich logging for the root logger (called once)."""
    root_logger = logging.getLogger()

    # Prevent duplicate handler registration
    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler):
            return

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    if os.getenv("DSH_DEBUG"):
        level = logging.DEBUG
    root_logger.setLevel(level)

    # Log to stderr so command output (status tables, URLs) stays pipeable
    console = Console(stderr=True)

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=True,  # Enable [bold], [green], etc. in log messages
        show_path=False,
        show_time=False,
        show_level=True,
        tracebacks_show_locals=False,
    )

    root_logger.addHandler(handler)


def configure_logging(level: int | str | None = None, colors: dict[str, str] | None = None) -> None:
    """Apply logging settings loaded from project configuration.

    Args:
        level: Root log level (name or number); DSH_DEBUG still wins
        colors: Component color overrides keyed by component name
    """
    _setup_rich_logging()

    if colors:
        _component_colors.update({str(k): str(v) for k, v in colors.items()})

    if os.getenv("DSH_DEBUG"):
        level = logging.DEBUG
    if level is not None:
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
        if isinstance(level, int):
            logging.getLogger().setLevel(level)


def get_logger(
    component_name: str = None,
    level: int = logging.INFO,
    *,
    name: str = None,
    color: str = None,
) -> ComponentLogger:
    """
    Get a component logger.

    Args:
        component_name: Component name (e.g., 'lifecycle', 'proxy')
        level: Initial root logging level when logging is not yet configured
        name: Direct logger name (keyword-only), bypasses color lookup
        color: Direct color specification (keyword-only)

    Returns:
        ComponentLogger instance

    Examples:
        logger = get_logger("network")
        logger.info("Connecting nginx-proxy to demo_default")

        logger = get_logger(name="test_logger", color="blue")
    """
    _setup_rich_logging(level)

    if name is not None:
        return ComponentLogger(logging.getLogger(name), name, color or "white")

    if component_name is None:
        raise ValueError(
            "Component name is required. Usage: get_logger('component_name') or "
            "get_logger(name='custom_name', color='blue')"
        )

    base_logger = logging.getLogger(f"dsh.{component_name}")
    return ComponentLogger(base_logger, component_name, color)

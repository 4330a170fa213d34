"""
Configuration System

Project-level configuration for dsh. Features:
- Optional single-file YAML loading (``dsh.yml`` in the project directory)
- Environment variable resolution with bash-style defaults
- ``.env`` loading through python-dotenv, never overriding the caller's environment
- Typed ``ProjectConfig`` value built once and carried on the resolved Environment

The loader never reads ``os.environ`` itself; the caller hands it the
environment mapping so that resolution stays explicit and testable.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

# Use standard logging (not get_logger) to avoid circular imports with logger.py
logger = logging.getLogger("dsh.config")

CONFIG_FILENAME = "dsh.yml"
DOTENV_FILENAME = ".env"

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(.*?))?\}|\$([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class ProjectConfig:
    """Typed view over dsh.yml with defaults for every key."""

    domain: str = "localhost"
    proxy_image: str = "jwilder/nginx-proxy"
    proxy_port: int = 80
    ssh_agent_image: str = "nardeas/ssh-agent"
    web_service: str = "web"
    web_workdir: str = "/code"
    xdebug_enabled: bool = True
    log_level: str | None = None
    log_colors: dict[str, str] = field(default_factory=dict)


class ConfigBuilder:
    """
    Configuration builder for a single project directory.

    - Missing ``dsh.yml`` is not an error: every key has a default
    - Malformed YAML or a non-mapping document fails fast with ValueError
    - ``${VAR}``, ``${VAR:-default}`` and ``$VAR`` are expanded against the
      supplied environment merged with the project's ``.env``
    """

    def __init__(self, project_dir: Path, environ: Mapping[str, str]):
        """
        Initialize configuration builder.

        Args:
            project_dir: Directory holding dsh.yml / .env
            environ: Caller environment used for variable expansion
        """
        self.project_dir = Path(project_dir)
        self.config_path = self.project_dir / CONFIG_FILENAME
        self.environ = self._merge_dotenv(environ)
        self.raw_config = self._load_config()

    def _merge_dotenv(self, environ: Mapping[str, str]) -> dict[str, str]:
        """Overlay the project's .env beneath the caller's environment."""
        merged = dict(environ)
        dotenv_path = self.project_dir / DOTENV_FILENAME
        if dotenv_path.exists():
            for key, value in dotenv_values(dotenv_path).items():
                if value is not None and key not in merged:
                    merged[key] = value
            logger.debug(f"Loaded .env file from {dotenv_path}")
        return merged

    def _load_yaml_file(self, file_path: Path) -> dict[str, Any]:
        """Load and validate a YAML configuration file."""
        try:
            with open(file_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML configuration {file_path}: {e}") from e

        if config is None:
            logger.warning(f"Configuration file is empty: {file_path}")
            return {}

        if not isinstance(config, dict):
            raise ValueError(f"Configuration file must contain a mapping: {file_path}")

        return config

    def _resolve_env_vars(self, data: Any) -> Any:
        """Recursively resolve environment variables in configuration data."""
        if isinstance(data, dict):
            return {key: self._resolve_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._resolve_env_vars(item) for item in data]
        elif isinstance(data, str):

            def replace_env_var(match):
                if match.group(1):
                    var_name = match.group(1)
                    default_value = match.group(2)
                else:
                    var_name = match.group(3)
                    default_value = None

                env_value = self.environ.get(var_name)
                if env_value is None:
                    if default_value is not None:
                        return default_value
                    logger.debug(f"Environment variable '{var_name}' not found, keeping original value")
                    return match.group(0)
                return env_value

            return _ENV_PATTERN.sub(replace_env_var, data)
        else:
            return data

    def _load_config(self) -> dict[str, Any]:
        if not self.config_path.exists():
            logger.debug(f"No {CONFIG_FILENAME} in {self.project_dir}, using defaults")
            return {}

        return self._resolve_env_vars(self._load_yaml_file(self.config_path))

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation path."""
        value = self.raw_config
        try:
            for key in path.split("."):
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def build(self) -> ProjectConfig:
        """Build the typed configuration value."""
        defaults = ProjectConfig()
        try:
            proxy_port = int(self.get("proxy.port", defaults.proxy_port))
        except (TypeError, ValueError) as e:
            raise ValueError(f"proxy.port must be an integer in {self.config_path}") from e

        xdebug_enabled = self.get("xdebug.enabled", defaults.xdebug_enabled)
        if isinstance(xdebug_enabled, str):
            xdebug_enabled = xdebug_enabled.strip().lower() in ("1", "true", "yes", "on")

        return ProjectConfig(
            domain=str(self.get("domain", defaults.domain)),
            proxy_image=str(self.get("proxy.image", defaults.proxy_image)),
            proxy_port=proxy_port,
            ssh_agent_image=str(self.get("ssh_agent.image", defaults.ssh_agent_image)),
            web_service=str(self.get("web.service", defaults.web_service)),
            web_workdir=str(self.get("web.workdir", defaults.web_workdir)),
            xdebug_enabled=bool(xdebug_enabled),
            log_level=self.get("logging.level"),
            log_colors=dict(self.get("logging.colors", {}) or {}),
        )


def load_project_config(project_dir: Path, environ: Mapping[str, str]) -> tuple[ProjectConfig, dict[str, str]]:
    """Load the project configuration and the effective environment.

    Returns:
        Tuple of (ProjectConfig, environment merged with .env)
    """
    builder = ConfigBuilder(project_dir, environ)
    return builder.build(), builder.environ

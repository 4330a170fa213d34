"""Centralized color and style management for the dsh CLI.

Semantic style names (success, error, warning) are mapped onto a single
color theme so every command prints with the same look.
"""

from dataclasses import dataclass

from rich.console import Console
from rich.theme import Theme

# ============================================================================
# THEME CONFIGURATION
# ============================================================================


@dataclass
class ColorTheme:
    """Defines a complete color theme for the CLI.

    1. Fixed standard colors (error, warning) - UI conventions
    2. Theme colors (primary, accent, etc.)
    3. Neutral infrastructure colors
    """

    # === FIXED STANDARD COLORS (UI Conventions) ===
    error: str = "#ff0000"
    warning: str = "#ffaa00"

    # === THEME COLORS ===
    primary: str = "#2d9cdb"
    success: str = "#27ae60"
    accent: str = "#56ccf2"
    command: str = "#f2994a"
    path: str = "#a2ae9d"
    info: str = "#2d9cdb"

    # === NEUTRAL COLORS ===
    text_secondary: str = "#888888"
    text_dim: str = "#666666"
    border_default: str = "#555555"


def _build_rich_theme(theme: ColorTheme) -> Theme:
    """Build a Rich Theme from a ColorTheme."""
    return Theme(
        {
            # Status styles
            "success": f"bold {theme.success}",
            "error": f"bold {theme.error}",
            "warning": f"bold {theme.warning}",
            "info": f"bold {theme.info}",
            # Text styles
            "primary": f"bold {theme.primary}",
            "secondary": theme.text_secondary,
            "dim": theme.text_dim,
            "bold_primary": f"bold {theme.primary}",
            # Component-specific styles
            "header": f"bold {theme.primary}",
            "label": "bold",
            "value": theme.success,
            "path": theme.path,
            "command": theme.command,
            "accent": theme.accent,
            "border": theme.border_default,
        }
    )


DSH_THEME = ColorTheme()

# Singleton console instance with theme
console = Console(theme=_build_rich_theme(DSH_THEME))


# ============================================================================
# STYLE HELPERS
# ============================================================================


class Styles:
    """Reusable style names defined in the Rich theme."""

    # Status indicators
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"

    # Text styles
    DIM = "dim"
    PRIMARY = "primary"
    BOLD_PRIMARY = "bold_primary"
    ACCENT = "accent"


class Messages:
    """Pre-formatted message helpers for common patterns."""

    @staticmethod
    def success(text: str) -> str:
        """Format a success message with checkmark."""
        return f"[success]✓ {text}[/success]"

    @staticmethod
    def error(text: str) -> str:
        """Format an error message with X mark."""
        return f"[error]✗ {text}[/error]"

    @staticmethod
    def info(text: str) -> str:
        """Format an info message with info symbol."""
        return f"[info]ℹ️  {text}[/info]"


__all__ = [
    "ColorTheme",
    "DSH_THEME",
    "console",
    "Styles",
    "Messages",
]

"""Command-line interface for dsh."""

from .main import cli, main

__all__ = ["cli", "main"]

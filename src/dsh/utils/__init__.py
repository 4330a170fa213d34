"""Shared utilities: configuration loading and component logging."""

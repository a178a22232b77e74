"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class InvalidConfigurationError(ConfigurationError, ValueError):
    """Raised when an environment override cannot be interpreted."""

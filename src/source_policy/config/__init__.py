"""Application configuration helpers."""

from __future__ import annotations

from .env import first_env, get_env, get_env_float, get_env_int
from .errors import ConfigurationError, InvalidConfigurationError
from .git import GitConfig, get_git_config
from .http_client import HttpClientConfig, RateLimit
from .http_source import (
    BUILD_ENGINE_HEADERS,
    GitHubConfig,
    HttpSourceConfig,
    get_github_config,
    get_http_source_config,
)
from .logging import configure_logging
from .pin import DEFAULT_CONCURRENCY, PinConfig, get_pin_config
from .registry import (
    RegistryConfig,
    discover_auth_files,
    get_insecure_hosts,
    get_registry_config,
    load_insecure_hosts,
)

__all__ = [
    "BUILD_ENGINE_HEADERS",
    "DEFAULT_CONCURRENCY",
    "ConfigurationError",
    "GitConfig",
    "GitHubConfig",
    "HttpClientConfig",
    "HttpSourceConfig",
    "InvalidConfigurationError",
    "PinConfig",
    "RateLimit",
    "RegistryConfig",
    "configure_logging",
    "discover_auth_files",
    "first_env",
    "get_env",
    "get_env_float",
    "get_env_int",
    "get_git_config",
    "get_github_config",
    "get_http_source_config",
    "get_insecure_hosts",
    "get_pin_config",
    "get_registry_config",
    "load_insecure_hosts",
]

"""Run-level settings for a pin invocation."""

from __future__ import annotations

from dataclasses import dataclass

from .env import get_env_int
from .git import GitConfig, get_git_config
from .http_source import HttpSourceConfig, get_http_source_config
from .registry import RegistryConfig, get_registry_config

DEFAULT_CONCURRENCY = 8


@dataclass(frozen=True, slots=True)
class PinConfig:
    registry: RegistryConfig
    http: HttpSourceConfig
    git: GitConfig
    concurrency: int = DEFAULT_CONCURRENCY


def get_pin_config(*, hardened: bool = False, concurrency: int | None = None) -> PinConfig:
    """Assemble the configuration for one run from the environment."""

    if concurrency is not None and concurrency < 1:
        raise ValueError("Concurrency must be at least 1")
    return PinConfig(
        registry=get_registry_config(hardened=hardened),
        http=get_http_source_config(),
        git=get_git_config(),
        concurrency=concurrency
        or get_env_int("SOURCE_POLICY_CONCURRENCY", default=DEFAULT_CONCURRENCY),
    )

"""Settings for resolving git sources."""

from __future__ import annotations

from dataclasses import dataclass

from .env import get_env, get_env_float
from .http_client import DEFAULT_TIMEOUT_SECONDS, HttpClientConfig

GIT_USER_AGENT = "git/2.45.0"


@dataclass(frozen=True, slots=True)
class GitConfig:
    client: HttpClientConfig
    executable: str = "git"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def get_git_config() -> GitConfig:
    timeout = get_env_float("SOURCE_POLICY_TIMEOUT", default=DEFAULT_TIMEOUT_SECONDS)
    return GitConfig(
        client=HttpClientConfig(
            name="git",
            timeout_seconds=timeout,
            default_headers={"User-Agent": GIT_USER_AGENT},
        ),
        executable=get_env("SOURCE_POLICY_GIT") or "git",
        timeout_seconds=timeout,
    )

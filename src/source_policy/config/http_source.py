"""Settings for pinning plain HTTP(S) sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from .env import first_env, get_env, get_env_float
from .http_client import DEFAULT_TIMEOUT_SECONDS, HttpClientConfig, RateLimit

if TYPE_CHECKING:
    from collections.abc import Mapping

GITHUB_API_URL = "https://api.github.com"
RAW_CONTENT_HOSTS = frozenset({"raw.githubusercontent.com", "gist.githubusercontent.com"})
RELEASE_HOSTS = frozenset({"github.com"})
GITHUB_API_RATELIMIT = RateLimit(max_calls=10, per_seconds=1.0)

# Headers the build engine sends when it downloads an ADD source. The fallback
# checksum and any Vary-derived attributes are computed from these values.
BUILD_ENGINE_HEADERS: Mapping[str, str] = MappingProxyType(
    {
        "Accept": "*/*",
        "Accept-Encoding": "identity",
        "User-Agent": "buildkit",
    }
)


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    api_url: str = GITHUB_API_URL
    token: str | None = field(default=None, repr=False)
    client: HttpClientConfig = field(
        default_factory=lambda: HttpClientConfig(
            name="github-api", ratelimit=GITHUB_API_RATELIMIT
        )
    )


@dataclass(frozen=True, slots=True)
class HttpSourceConfig:
    client: HttpClientConfig
    github: GitHubConfig = field(default_factory=GitHubConfig)
    raw_content_hosts: frozenset[str] = RAW_CONTENT_HOSTS
    release_hosts: frozenset[str] = RELEASE_HOSTS
    fetch_headers: Mapping[str, str] = BUILD_ENGINE_HEADERS


def get_github_config(*, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> GitHubConfig:
    return GitHubConfig(
        api_url=get_env("GITHUB_API_URL") or GITHUB_API_URL,
        token=first_env(("GITHUB_TOKEN", "GH_TOKEN")),
        client=HttpClientConfig(
            name="github-api",
            timeout_seconds=timeout_seconds,
            ratelimit=GITHUB_API_RATELIMIT,
        ),
    )


def get_http_source_config() -> HttpSourceConfig:
    timeout = get_env_float("SOURCE_POLICY_TIMEOUT", default=DEFAULT_TIMEOUT_SECONDS)
    return HttpSourceConfig(
        client=HttpClientConfig(name="http-source", timeout_seconds=timeout),
        github=get_github_config(timeout_seconds=timeout),
    )

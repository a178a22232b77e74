"""Configuration types for the shared async HTTP client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class HttpClientConfig:
    name: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    ratelimit: RateLimit | None = None
    default_headers: Mapping[str, str] | None = None
    follow_redirects: bool = True

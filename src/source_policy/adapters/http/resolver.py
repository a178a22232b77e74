"""Resolve HTTP(S) sources to content checksums."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from source_policy.domain.errors import HttpResolutionError
from source_policy.domain.policy import HTTP_CHECKSUM_ATTR
from source_policy.domain.types import ResolvedPin, SourceKind

from .headers import vary_header_attrs, volatility_reason
from .strategies import DEFAULT_STRATEGIES, ChecksumStrategy, StrategyContext, StrategyResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from source_policy.adapters.http_client import PolicyHttpClient
    from source_policy.config.http_source import HttpSourceConfig
    from source_policy.domain.ports.resolving import HttpResolver

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class HttpSourceResolver:
    client: PolicyHttpClient
    config: HttpSourceConfig
    api_client: PolicyHttpClient | None = None
    strategies: Sequence[ChecksumStrategy] = DEFAULT_STRATEGIES
    clock: Callable[[], datetime] = _utcnow

    async def resolve(self, original: str) -> ResolvedPin:
        try:
            url = httpx.URL(original)
        except httpx.InvalidURL as exc:
            raise HttpResolutionError(f"invalid URL: {exc}", reference=original) from exc
        if url.scheme not in {"http", "https"}:
            raise HttpResolutionError(f"unsupported URL scheme {url.scheme!r}", reference=original)

        try:
            result = await self._checksum(url)
        except httpx.HTTPError as exc:
            raise HttpResolutionError(
                f"request for {original} failed: {exc}", reference=original
            ) from exc
        except HttpResolutionError as exc:
            raise HttpResolutionError(str(exc), reference=original) from exc

        # a HEAD/GET on the URL itself already answered the probe
        observed = result.headers if result.headers is not None else await self._probe(url)

        attrs = {HTTP_CHECKSUM_ATTR: result.checksum}
        volatility: str | None = None
        if observed is not None:
            attrs.update(vary_header_attrs(observed, self.config.fetch_headers))
            volatility = volatility_reason(observed, now=self.clock())
        log.debug("Checksum for %s via %s strategy", original, result.strategy)
        return ResolvedPin(
            original=original,
            kind=SourceKind.HTTP,
            identifier=original,
            attrs=attrs,
            volatility=volatility,
        )

    async def _checksum(self, url: httpx.URL) -> StrategyResult:
        context = StrategyContext(
            client=self.client,
            config=self.config,
            api_client=self.api_client or self.client,
        )
        for strategy in self.strategies:
            result = await strategy(context, url)
            if result is not None:
                return result
        raise HttpResolutionError(f"no checksum strategy applies to {url}", reference=str(url))

    async def _probe(self, url: httpx.URL) -> httpx.Headers | None:
        """HEAD the URL for ``Vary`` and cache headers; failures here are not fatal."""

        try:
            response = await self.client.head(url, headers=dict(self.config.fetch_headers))
        except httpx.HTTPError as exc:
            log.debug("Header probe for %s failed: %s", url, exc)
            return None
        if not response.is_success:
            log.debug("Header probe for %s returned HTTP %s", url, response.status_code)
            return None
        return response.headers


if TYPE_CHECKING:
    _resolver_check: type[HttpResolver] = HttpSourceResolver

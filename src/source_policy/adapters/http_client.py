from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable
    from types import TracebackType

    from httpx._client import UseClientDefault
    from httpx._types import (
        AuthTypes,
        HeaderTypes,
        QueryParamTypes,
        TimeoutTypes,
        URLTypes,
    )

    from source_policy.config.http_client import HttpClientConfig


class RequestOptions(TypedDict, total=False):
    params: QueryParamTypes | None
    headers: HeaderTypes | None
    auth: AuthTypes | UseClientDefault | None
    follow_redirects: bool | UseClientDefault
    timeout: TimeoutTypes | UseClientDefault


class AsyncClientOptions(TypedDict, total=False):
    timeout: TimeoutTypes
    headers: HeaderTypes
    follow_redirects: bool
    transport: httpx.AsyncBaseTransport


class PolicyHttpClient:
    """Async HTTP client shared by the resolvers of one run.

    Requests are never retried and responses are never cached.
    """

    def __init__(
        self,
        config: HttpClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )

        client_kwargs: AsyncClientOptions = {
            "timeout": config.timeout_seconds,
            "follow_redirects": config.follow_redirects,
        }
        if config.default_headers is not None:
            client_kwargs["headers"] = dict(config.default_headers)
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self) -> PolicyHttpClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        async def do_request() -> httpx.Response:
            return await self._client.request(method, url, **kwargs)

        return await self._send(do_request)

    async def get(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def head(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> AsyncIterator[httpx.Response]:
        """Stream a response body without buffering it in memory."""

        if self._limiter is not None:
            await self._limiter.acquire()
        async with self._client.stream(method, url, **kwargs) as response:
            yield response

    async def _send(self, func: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        if self._limiter is None:
            return await func()
        async with self._limiter:
            return await func()


type ClientFactory = Callable[[HttpClientConfig], PolicyHttpClient]


def default_client_factory(config: HttpClientConfig) -> PolicyHttpClient:
    return PolicyHttpClient(config)


__all__ = ["ClientFactory", "PolicyHttpClient", "RequestOptions", "default_client_factory"]

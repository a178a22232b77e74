"""Checksum strategies for HTTP sources, cheapest first.

Each strategy is an async function ``(context, url) -> StrategyResult | None``;
``None`` means "not applicable here, try the next one". Only the final
download strategy always produces a checksum.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from source_policy.domain.errors import HttpResolutionError

from .schema import Release

if TYPE_CHECKING:
    from source_policy.adapters.http_client import PolicyHttpClient
    from source_policy.config.http_source import HttpSourceConfig

log = getLogger(__name__)

GITHUB_API_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}

_SHA256_HEX_RE = re.compile(r"[0-9a-f]{64}")
_RELEASE_PATH_RE = re.compile(
    r"/(?P<owner>[^/]+)/(?P<repo>[^/]+)/releases/download/(?P<tag>[^/]+)/(?P<asset>[^/]+)"
)
_S3_HOST_RE = re.compile(
    r"^(?:[a-z0-9.-]+\.)?s3(?:[.-](?:dualstack\.)?[a-z0-9-]+)?\.amazonaws\.com$"
)


@dataclass(frozen=True, slots=True)
class StrategyResult:
    checksum: str
    strategy: str
    headers: httpx.Headers | None = None


@dataclass(frozen=True, slots=True)
class StrategyContext:
    client: PolicyHttpClient
    config: HttpSourceConfig
    api_client: PolicyHttpClient

    @property
    def fetch_headers(self) -> dict[str, str]:
        return dict(self.config.fetch_headers)


type ChecksumStrategy = Callable[[StrategyContext, httpx.URL], Awaitable[StrategyResult | None]]


def _bare_etag(value: str | None) -> str | None:
    if value is None or value.startswith("W/"):
        return None
    etag = value.strip().strip('"').lower()
    return etag if _SHA256_HEX_RE.fullmatch(etag) else None


async def raw_content_etag(context: StrategyContext, url: httpx.URL) -> StrategyResult | None:
    """Raw-content hosts publish the sha256 of the file as its ETag."""

    if url.host not in context.config.raw_content_hosts:
        return None
    response = await context.client.head(url, headers=context.fetch_headers)
    if not response.is_success:
        log.debug("HEAD %s returned HTTP %s", url, response.status_code)
        return None
    etag = _bare_etag(response.headers.get("etag"))
    if etag is None:
        return None
    return StrategyResult(checksum=f"sha256:{etag}", strategy="etag", headers=response.headers)


async def release_asset_digest(context: StrategyContext, url: httpx.URL) -> StrategyResult | None:
    """Release downloads: read the asset digest published by the releases API."""

    if url.host not in context.config.release_hosts:
        return None
    match = _RELEASE_PATH_RE.fullmatch(url.path)
    if match is None:
        return None

    github = context.config.github
    api_url = (
        f"{github.api_url.rstrip('/')}/repos/{match['owner']}/{match['repo']}"
        f"/releases/tags/{quote(match['tag'], safe='')}"
    )
    headers = dict(GITHUB_API_HEADERS)
    if github.token:
        headers["Authorization"] = f"Bearer {github.token}"
    response = await context.api_client.get(api_url, headers=headers)
    if not response.is_success:
        log.debug("Release lookup %s returned HTTP %s", api_url, response.status_code)
        return None
    try:
        release = Release.model_validate_json(response.content)
    except ValidationError:
        log.debug("Unexpected release payload from %s", api_url)
        return None

    asset = release.find_asset(match["asset"])
    if asset is None or not asset.digest:
        return None
    algorithm, _, value = asset.digest.partition(":")
    value = value.lower()
    if algorithm != "sha256" or not _SHA256_HEX_RE.fullmatch(value):
        return None
    return StrategyResult(checksum=f"sha256:{value}", strategy="release-api")


async def object_store_checksum(context: StrategyContext, url: httpx.URL) -> StrategyResult | None:
    """Object stores can return a stored full-object sha256 on request."""

    if not _S3_HOST_RE.match(url.host):
        return None
    headers = context.fetch_headers
    headers["x-amz-checksum-mode"] = "ENABLED"
    response = await context.client.head(url, headers=headers)
    if not response.is_success:
        log.debug("HEAD %s returned HTTP %s", url, response.status_code)
        return None

    value = response.headers.get("x-amz-checksum-sha256")
    checksum_type = response.headers.get("x-amz-checksum-type", "FULL_OBJECT").upper()
    # multipart uploads carry a checksum of part checksums ("<b64>-<parts>")
    if not value or "-" in value or checksum_type != "FULL_OBJECT":
        return None
    try:
        raw = base64.b64decode(value, validate=True)
    except binascii.Error:
        return None
    if len(raw) != hashlib.sha256().digest_size:
        return None
    return StrategyResult(
        checksum=f"sha256:{raw.hex()}", strategy="object-store", headers=response.headers
    )


async def download_checksum(context: StrategyContext, url: httpx.URL) -> StrategyResult:
    """Download the body exactly as the build engine will and hash it."""

    digest = hashlib.sha256()
    async with context.client.stream("GET", url, headers=context.fetch_headers) as response:
        if not response.is_success:
            raise HttpResolutionError(
                f"GET {url} returned HTTP {response.status_code}", reference=str(url)
            )
        async for chunk in response.aiter_bytes():
            digest.update(chunk)
    return StrategyResult(
        checksum=f"sha256:{digest.hexdigest()}", strategy="download", headers=response.headers
    )


DEFAULT_STRATEGIES: tuple[ChecksumStrategy, ...] = (
    raw_content_etag,
    release_asset_digest,
    object_store_checksum,
    download_checksum,
)


__all__ = [
    "DEFAULT_STRATEGIES",
    "ChecksumStrategy",
    "StrategyContext",
    "StrategyResult",
    "download_checksum",
    "object_store_checksum",
    "raw_content_etag",
    "release_asset_digest",
]

"""Client for the OCI distribution API (manifest lookups only)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from .auth import CredentialStore
from .schema import RegistryErrorResponse, TokenResponse

if TYPE_CHECKING:
    from source_policy.adapters.http_client import PolicyHttpClient
    from source_policy.domain.references import ImageReference

log = getLogger(__name__)

MANIFEST_MEDIA_TYPES = (
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
)

_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')


class RegistryError(RuntimeError):
    """Raised when a registry request fails; ``status_code`` is set for HTTP errors."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class Manifest:
    content: bytes
    media_type: str | None
    claimed_digest: str | None


def _hostname(host: str) -> str:
    if host.startswith("["):
        return host.split("]", 1)[0] + "]"
    return host.split(":", 1)[0]


def _describe_failure(ref: ImageReference, response: httpx.Response) -> str:
    detail = response.reason_phrase or "request failed"
    try:
        payload = RegistryErrorResponse.model_validate_json(response.content)
    except ValidationError:
        text = response.text.strip()
        if text:
            detail = text[:200]
    else:
        messages = [error.message or error.code or "" for error in payload.errors]
        if any(messages):
            detail = "; ".join(message for message in messages if message)
    return f"HTTP {response.status_code} fetching manifest for {ref}: {detail}"


class RegistryClient:
    """Fetches manifests, negotiating Basic or Bearer token auth per repository."""

    def __init__(
        self,
        *,
        http: PolicyHttpClient,
        credentials: CredentialStore | None = None,
        insecure_hosts: frozenset[str] = frozenset(),
    ) -> None:
        self._http = http
        self._credentials = credentials or CredentialStore()
        self._insecure_hosts = insecure_hosts
        self._authorizations: dict[tuple[str, str], str] = {}

    def _base_url(self, host: str) -> str:
        scheme = "http" if _hostname(host) in self._insecure_hosts else "https"
        return f"{scheme}://{host}"

    async def fetch_manifest(self, ref: ImageReference) -> Manifest:
        ref = ref.with_default_tag()
        url = (
            f"{self._base_url(ref.registry_host)}/v2/{ref.path}"
            f"/manifests/{ref.manifest_reference}"
        )
        log.debug("Fetching manifest %s", url)
        accept = ", ".join(MANIFEST_MEDIA_TYPES)
        response = await self._get(url, ref=ref, headers={"Accept": accept})
        if not response.is_success:
            raise RegistryError(_describe_failure(ref, response), status_code=response.status_code)
        return Manifest(
            content=response.content,
            media_type=response.headers.get("content-type"),
            claimed_digest=response.headers.get("docker-content-digest"),
        )

    async def _get(
        self,
        url: str,
        *,
        ref: ImageReference,
        headers: dict[str, str],
    ) -> httpx.Response:
        scope = f"repository:{ref.path}:pull"
        key = (ref.registry_host, scope)
        request_headers = dict(headers)
        authorization = self._authorizations.get(key)
        if authorization is not None:
            request_headers["Authorization"] = authorization
        try:
            response = await self._http.get(url, headers=request_headers)
            challenge = response.headers.get("www-authenticate")
            if response.status_code == 401 and authorization is None and challenge:
                authorization = await self._authorize(challenge, ref=ref, scope=scope)
                if authorization is not None:
                    self._authorizations[key] = authorization
                    request_headers["Authorization"] = authorization
                    response = await self._http.get(url, headers=request_headers)
        except httpx.HTTPError as exc:
            raise RegistryError(f"request to {ref.registry_host} failed: {exc}") from exc
        return response

    async def _authorize(self, challenge: str, *, ref: ImageReference, scope: str) -> str | None:
        scheme, _, params_text = challenge.partition(" ")
        params = dict(_CHALLENGE_PARAM_RE.findall(params_text))
        credentials = self._credentials.lookup(ref.domain)

        if scheme.lower() == "basic":
            return credentials.basic_header() if credentials is not None else None
        if scheme.lower() != "bearer":
            log.debug("Unsupported auth scheme %r from %s", scheme, ref.registry_host)
            return None

        realm = params.get("realm")
        if not realm:
            raise RegistryError(f"{ref.registry_host} sent a bearer challenge without a realm")
        query = {"scope": params.get("scope") or scope}
        if "service" in params:
            query["service"] = params["service"]
        auth = (
            httpx.BasicAuth(credentials.username, credentials.password)
            if credentials is not None
            else None
        )

        response = await self._http.get(realm, params=query, auth=auth)
        if not response.is_success:
            raise RegistryError(
                f"token request for {ref.name} failed with HTTP {response.status_code}: "
                f"{response.text.strip()[:200] or response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            payload = TokenResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise RegistryError(f"invalid token response from {realm}") from exc
        token = payload.token or payload.access_token
        if not token:
            raise RegistryError(f"token response from {realm} carried no token")
        return f"Bearer {token}"


__all__ = ["MANIFEST_MEDIA_TYPES", "Manifest", "RegistryClient", "RegistryError"]

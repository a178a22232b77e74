from __future__ import annotations

import asyncio
import hashlib
from typing import TYPE_CHECKING

import httpx
import pytest

from source_policy.adapters.registry import (
    CredentialStore,
    Credentials,
    RegistryClient,
    RegistryImageResolver,
)
from source_policy.domain.errors import ImageResolutionError

if TYPE_CHECKING:
    from source_policy.domain.types import ResolvedPin
    from tests.support.http import FakeServer, Handler

MANIFEST = (
    b'{"schemaVersion":2,"mediaType":"application/vnd.oci.image.index.v1+json","manifests":[]}'
)
MANIFEST_DIGEST = "sha256:" + hashlib.sha256(MANIFEST).hexdigest()
HARDENED_MANIFEST = b'{"schemaVersion":2,"mediaType":"application/vnd.oci.image.manifest.v1+json"}'
HARDENED_DIGEST = "sha256:" + hashlib.sha256(HARDENED_MANIFEST).hexdigest()

HUB_GOLANG = "https://registry-1.docker.io/v2/library/golang/manifests/1.23"
DHI_GOLANG = "https://dhi.io/v2/golang/manifests/1.23"
TOKEN_REALM = "https://auth.docker.io/token"


def _resolve(
    server: FakeServer,
    original: str,
    *,
    hardened: bool = False,
    credentials: CredentialStore | None = None,
) -> ResolvedPin:
    async def run() -> ResolvedPin:
        async with server.client() as http:
            client = RegistryClient(
                http=http,
                credentials=credentials,
                insecure_hosts=frozenset({"localhost"}),
            )
            return await RegistryImageResolver(client, hardened=hardened).resolve(original)

    return asyncio.run(run())


def _manifest_response(content: bytes = MANIFEST, digest: str | None = None) -> httpx.Response:
    headers = {"Content-Type": "application/vnd.oci.image.index.v1+json"}
    if digest is not None:
        headers["Docker-Content-Digest"] = digest
    return httpx.Response(200, content=content, headers=headers)


def _bearer_protected(token: str, content: bytes = MANIFEST) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") != f"Bearer {token}":
            return httpx.Response(
                401,
                json={"errors": [{"code": "UNAUTHORIZED", "message": "authentication required"}]},
                headers={
                    "WWW-Authenticate": (
                        f'Bearer realm="{TOKEN_REALM}",service="registry.docker.io",'
                        f'scope="repository:{request.url.path.split("/manifests")[0][4:]}:pull"'
                    )
                },
            )
        return _manifest_response(content)

    return handler


def test_token_flow_and_recomputed_digest(server: FakeServer) -> None:
    server.route_handler("GET", HUB_GOLANG, _bearer_protected("hub-token"))
    server.route("GET", TOKEN_REALM, content=b'{"token": "hub-token"}')

    pin = _resolve(server, "golang:1.23")

    assert pin.identifier == f"docker.io/library/golang:1.23@{MANIFEST_DIGEST}"
    token_request = next(r for r in server.requests if str(r.url).startswith(TOKEN_REALM))
    assert token_request.url.params["service"] == "registry.docker.io"
    assert token_request.url.params["scope"] == "repository:library/golang:pull"
    assert "authorization" not in token_request.headers
    manifest_request = server.requests[-1]
    assert "application/vnd.oci.image.index.v1+json" in manifest_request.headers["accept"]


def test_token_is_reused_for_the_same_repository(server: FakeServer) -> None:
    server.route_handler("GET", HUB_GOLANG, _bearer_protected("hub-token"))
    server.route_handler(
        "GET",
        "https://registry-1.docker.io/v2/library/golang/manifests/1.22",
        _bearer_protected("hub-token"),
    )
    server.route("GET", TOKEN_REALM, content=b'{"access_token": "hub-token"}')

    async def run() -> list[str]:
        async with server.client() as http:
            resolver = RegistryImageResolver(RegistryClient(http=http))
            pins = [await resolver.resolve("golang:1.23"), await resolver.resolve("golang:1.22")]
            return [pin.identifier for pin in pins]

    identifiers = asyncio.run(run())

    assert identifiers[1] == f"docker.io/library/golang:1.22@{MANIFEST_DIGEST}"
    assert server.count("GET", TOKEN_REALM) == 1


def test_credentials_are_sent_to_the_token_realm(server: FakeServer) -> None:
    server.route_handler("GET", HUB_GOLANG, _bearer_protected("private-token"))
    server.route_handler(
        "GET",
        TOKEN_REALM,
        lambda request: httpx.Response(
            200 if request.headers.get("authorization", "").startswith("Basic ") else 401,
            json={"token": "private-token"},
        ),
    )
    credentials = CredentialStore({"docker.io": Credentials("hub-user", "s3cret")})

    pin = _resolve(server, "golang:1.23", credentials=credentials)

    assert pin.identifier.endswith(MANIFEST_DIGEST)


def test_basic_challenge_uses_stored_credentials(server: FakeServer) -> None:
    url = "https://registry.example.com/v2/team/app/manifests/1.0"
    credentials = Credentials("bot", "pw")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") != credentials.basic_header():
            return httpx.Response(401, headers={"WWW-Authenticate": 'Basic realm="registry"'})
        return _manifest_response()

    server.route_handler("GET", url, handler)

    pin = _resolve(
        server,
        "registry.example.com/team/app:1.0",
        credentials=CredentialStore({"registry.example.com": credentials}),
    )

    assert pin.identifier == f"registry.example.com/team/app:1.0@{MANIFEST_DIGEST}"


def test_untagged_reference_looks_up_latest(server: FakeServer) -> None:
    server.route(
        "GET",
        "https://registry-1.docker.io/v2/library/alpine/manifests/latest",
        content=MANIFEST,
    )

    pin = _resolve(server, "alpine")

    assert pin.original == "alpine"
    assert pin.identifier == f"docker.io/library/alpine@{MANIFEST_DIGEST}"


def test_insecure_hosts_use_plain_http(server: FakeServer) -> None:
    server.route("GET", "http://localhost/v2/app/manifests/dev", content=MANIFEST)

    pin = _resolve(server, "localhost/app:dev")

    assert pin.identifier == f"localhost/app:dev@{MANIFEST_DIGEST}"


def test_matching_announced_digest_is_accepted(server: FakeServer) -> None:
    server.route_handler(
        "GET", HUB_GOLANG, lambda _request: _manifest_response(digest=MANIFEST_DIGEST)
    )

    assert _resolve(server, "golang:1.23").identifier.endswith(MANIFEST_DIGEST)


def test_mismatching_announced_digest_is_fatal(server: FakeServer) -> None:
    server.route_handler(
        "GET", HUB_GOLANG, lambda _request: _manifest_response(digest="sha256:" + "0" * 64)
    )

    with pytest.raises(ImageResolutionError, match="digest mismatch"):
        _resolve(server, "golang:1.23")


def test_missing_image_is_fatal(server: FakeServer) -> None:
    with pytest.raises(ImageResolutionError, match="HTTP 404") as exc:
        _resolve(server, "golang:1.23")

    assert exc.value.reference == "golang:1.23"


def test_registry_error_payload_is_reported(server: FakeServer) -> None:
    server.route(
        "GET",
        HUB_GOLANG,
        status=404,
        content=b'{"errors": [{"code": "MANIFEST_UNKNOWN", "message": "manifest unknown"}]}',
    )

    with pytest.raises(ImageResolutionError, match="manifest unknown"):
        _resolve(server, "golang:1.23")


def test_invalid_reference_is_fatal(server: FakeServer) -> None:
    with pytest.raises(ImageResolutionError):
        _resolve(server, "Not/A:valid ref")
    assert server.requests == []


def test_hardened_mirror_falls_back_on_not_found(server: FakeServer) -> None:
    server.route("GET", DHI_GOLANG, status=404, content=b"not found")
    server.route("GET", HUB_GOLANG, content=MANIFEST)

    pin = _resolve(server, "golang:1.23", hardened=True)

    assert pin.identifier == f"docker.io/library/golang:1.23@{MANIFEST_DIGEST}"
    assert server.count("GET", DHI_GOLANG) == 1
    assert server.count("GET", HUB_GOLANG) == 1


def test_hardened_mirror_falls_back_on_denied(server: FakeServer) -> None:
    server.route("GET", DHI_GOLANG, status=403, content=b"denied: requested access is denied")
    server.route("GET", HUB_GOLANG, content=MANIFEST)

    assert _resolve(server, "golang:1.23", hardened=True).identifier.startswith("docker.io/")


def test_hardened_mirror_is_preferred_when_available(server: FakeServer) -> None:
    server.route("GET", DHI_GOLANG, content=HARDENED_MANIFEST)

    pin = _resolve(server, "golang:1.23", hardened=True)

    assert pin.original == "golang:1.23"
    assert pin.identifier == f"dhi.io/golang:1.23@{HARDENED_DIGEST}"
    assert server.count("GET", HUB_GOLANG) == 0


def test_hardened_server_error_is_fatal(server: FakeServer) -> None:
    server.route("GET", DHI_GOLANG, status=500, content=b"internal error")
    server.route("GET", HUB_GOLANG, content=MANIFEST)

    with pytest.raises(ImageResolutionError, match="hardened image lookup"):
        _resolve(server, "golang:1.23", hardened=True)
    assert server.count("GET", HUB_GOLANG) == 0


def test_hardened_mode_ignores_non_official_images(server: FakeServer) -> None:
    server.route(
        "GET", "https://registry-1.docker.io/v2/bitnami/redis/manifests/7", content=MANIFEST
    )

    pin = _resolve(server, "bitnami/redis:7", hardened=True)

    assert pin.identifier == f"docker.io/bitnami/redis:7@{MANIFEST_DIGEST}"
    assert all(request.url.host != "dhi.io" for request in server.requests)

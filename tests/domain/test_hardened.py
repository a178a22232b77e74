from __future__ import annotations

import pytest

from source_policy.adapters.registry.client import RegistryError
from source_policy.domain.hardened import (
    can_use_hardened_mirror,
    is_not_found_or_auth_error,
    to_hardened_reference,
)
from source_policy.domain.references import ImageReference


@pytest.mark.parametrize(
    ("text", "eligible"),
    [
        ("alpine", True),
        ("golang:1.23", True),
        ("docker.io/library/python:3.12-slim", True),
        ("index.docker.io/library/node:20", True),
        ("bitnami/redis:7", False),
        ("ghcr.io/org/app:v1", False),
        ("dhi.io/alpine:3.18", False),
    ],
)
def test_only_official_hub_images_are_eligible(text: str, eligible: bool) -> None:  # noqa: FBT001
    assert can_use_hardened_mirror(ImageReference.parse(text)) is eligible


def test_hardened_reference_keeps_tag() -> None:
    mirror = to_hardened_reference(ImageReference.parse("alpine:3.18"))

    assert str(mirror) == "dhi.io/alpine:3.18"
    assert mirror.registry_host == "dhi.io"


def test_hardened_reference_rejects_ineligible_image() -> None:
    with pytest.raises(ValueError, match="not eligible"):
        to_hardened_reference(ImageReference.parse("bitnami/redis:7"))


@pytest.mark.parametrize("status_code", [401, 403, 404])
def test_typed_status_codes_fall_back(status_code: int) -> None:
    assert is_not_found_or_auth_error(RegistryError("lookup failed", status_code=status_code))


@pytest.mark.parametrize(
    "message",
    [
        "MANIFEST_UNKNOWN: manifest unknown",
        "NAME_UNKNOWN: repository name unknown",
        "requested access to the resource is denied",
        "UNAUTHORIZED: authentication required",
        "repository does not exist",
    ],
)
def test_error_text_markers_fall_back(message: str) -> None:
    assert is_not_found_or_auth_error(RuntimeError(message))


def test_server_errors_do_not_fall_back() -> None:
    error = RegistryError("HTTP 500 fetching manifest: internal error", status_code=500)

    assert not is_not_found_or_auth_error(error)
    assert not is_not_found_or_auth_error(RegistryError("connection reset by peer"))

"""Mapping of official Docker Hub images onto the hardened image registry."""

from __future__ import annotations

from dataclasses import replace
from typing import Final

from .references import DEFAULT_DOMAIN, OFFICIAL_REPOSITORY_PREFIX, ImageReference

HARDENED_REGISTRY: Final[str] = "dhi.io"

FALLBACK_STATUS_CODES: Final[frozenset[int]] = frozenset({401, 403, 404})
FALLBACK_MARKERS: Final[tuple[str, ...]] = (
    "manifest unknown",
    "name unknown",
    "denied",
    "unauthorized",
    "does not exist",
)


def can_use_hardened_mirror(ref: ImageReference) -> bool:
    """Only single-segment official images (``docker.io/library/<name>``) qualify."""

    if ref.domain == HARDENED_REGISTRY or ref.domain != DEFAULT_DOMAIN:
        return False
    if not ref.path.startswith(OFFICIAL_REPOSITORY_PREFIX):
        return False
    return "/" not in ref.path.removeprefix(OFFICIAL_REPOSITORY_PREFIX)


def to_hardened_reference(ref: ImageReference) -> ImageReference:
    """``docker.io/library/alpine:3.18`` -> ``dhi.io/alpine:3.18``."""

    if not can_use_hardened_mirror(ref):
        raise ValueError(f"{ref} is not eligible for the hardened registry")
    return replace(
        ref,
        domain=HARDENED_REGISTRY,
        path=ref.path.removeprefix(OFFICIAL_REPOSITORY_PREFIX),
    )


def is_not_found_or_auth_error(exc: BaseException) -> bool:
    """Whether a failed mirror lookup should fall back to the original image.

    A typed ``status_code`` on the error is consulted first; the message text is
    only matched when the status does not already decide it.
    """

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int) and status_code in FALLBACK_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in FALLBACK_MARKERS)


__all__ = [
    "FALLBACK_MARKERS",
    "FALLBACK_STATUS_CODES",
    "HARDENED_REGISTRY",
    "can_use_hardened_mirror",
    "is_not_found_or_auth_error",
    "to_hardened_reference",
]

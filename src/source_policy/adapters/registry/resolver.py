"""Resolve image references to manifest digests."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from source_policy.domain.errors import ImageResolutionError, InvalidReferenceError
from source_policy.domain.hardened import (
    can_use_hardened_mirror,
    is_not_found_or_auth_error,
    to_hardened_reference,
)
from source_policy.domain.references import ImageReference
from source_policy.domain.types import ResolvedPin, SourceKind

from .client import RegistryError

if TYPE_CHECKING:
    from source_policy.domain.ports.resolving import ImageResolver

    from .client import RegistryClient

log = getLogger(__name__)


@dataclass(slots=True)
class RegistryImageResolver:
    """Pins ``FROM``/``--from`` images to the digest of their current manifest."""

    client: RegistryClient
    hardened: bool = False

    async def resolve(self, original: str) -> ResolvedPin:
        try:
            ref = ImageReference.parse(original)
        except InvalidReferenceError as exc:
            raise ImageResolutionError(str(exc), reference=original) from exc

        if self.hardened and can_use_hardened_mirror(ref):
            mirror = to_hardened_reference(ref)
            try:
                digest = await self.digest(mirror)
            except RegistryError as exc:
                if not is_not_found_or_auth_error(exc):
                    raise ImageResolutionError(
                        f"hardened image lookup for {mirror} failed: {exc}", reference=original
                    ) from exc
                log.debug("No hardened image for %s (%s), using %s", original, exc, ref)
            else:
                log.info("Using hardened image %s for %s", mirror, original)
                return self._pin(original, mirror, digest)

        try:
            digest = await self.digest(ref)
        except RegistryError as exc:
            raise ImageResolutionError(str(exc), reference=original) from exc
        return self._pin(original, ref, digest)

    async def digest(self, ref: ImageReference) -> str:
        """Return ``sha256:<hex>`` computed over the raw manifest bytes.

        A digest announced by the registry is never trusted on its own; if it
        disagrees with the bytes actually received the lookup fails.
        """

        manifest = await self.client.fetch_manifest(ref)
        computed = "sha256:" + hashlib.sha256(manifest.content).hexdigest()
        claimed = manifest.claimed_digest
        if claimed and claimed.startswith("sha256:") and claimed.lower() != computed:
            raise RegistryError(
                f"manifest digest mismatch for {ref}: registry announced {claimed}, "
                f"content hashes to {computed}"
            )
        return computed

    @staticmethod
    def _pin(original: str, ref: ImageReference, digest: str) -> ResolvedPin:
        return ResolvedPin(
            original=original,
            kind=SourceKind.IMAGE,
            identifier=str(ref.with_digest(digest)),
        )


if TYPE_CHECKING:
    _resolver_check: type[ImageResolver] = RegistryImageResolver

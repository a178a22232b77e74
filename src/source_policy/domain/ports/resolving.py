"""Ports implemented by the protocol-specific resolvers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from source_policy.domain.types import ResolvedPin


@runtime_checkable
class ImageResolver(Protocol):
    """Resolve an image reference to its digest-qualified form."""

    async def resolve(self, original: str) -> ResolvedPin: ...


@runtime_checkable
class HttpResolver(Protocol):
    """Resolve a URL to a content checksum."""

    async def resolve(self, original: str) -> ResolvedPin: ...


@runtime_checkable
class GitResolver(Protocol):
    """Resolve a git remote and ref to a full commit id."""

    async def resolve(self, original: str) -> ResolvedPin: ...


__all__ = ["GitResolver", "HttpResolver", "ImageResolver"]

"""Error taxonomy for reference resolution and policy generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import RawReference


class SourcePolicyError(RuntimeError):
    """Base class for all fatal errors raised while building a policy."""


class InvalidReferenceError(SourcePolicyError, ValueError):
    """Raised when a reference string cannot be parsed."""


class ExtractionError(SourcePolicyError):
    """Raised when a build file cannot be read or is ill-formed."""


class SerializationError(SourcePolicyError):
    """Raised when the policy document cannot be serialized."""


class ResolutionError(SourcePolicyError):
    """A resolver could not turn a reference into an immutable identifier."""

    def __init__(self, message: str, *, reference: str) -> None:
        super().__init__(message)
        self.reference = reference


class ImageResolutionError(ResolutionError):
    """Raised when a registry lookup fails."""


class HttpResolutionError(ResolutionError):
    """Raised when a URL cannot be checksummed."""


class GitResolutionError(ResolutionError):
    """Raised when a git ref cannot be resolved to a commit."""


class PolicyGenerationError(SourcePolicyError):
    """Fatal error enriched with the reference and the file it came from."""

    def __init__(self, message: str, *, reference: RawReference) -> None:
        super().__init__(message)
        self.reference = reference


__all__ = [
    "ExtractionError",
    "GitResolutionError",
    "HttpResolutionError",
    "ImageResolutionError",
    "InvalidReferenceError",
    "PolicyGenerationError",
    "ResolutionError",
    "SerializationError",
    "SourcePolicyError",
]

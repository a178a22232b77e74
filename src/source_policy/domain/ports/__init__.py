"""Domain port definitions for adapters."""

from __future__ import annotations

from .extraction import ReferenceExtractor
from .resolving import GitResolver, HttpResolver, ImageResolver

__all__ = [
    "GitResolver",
    "HttpResolver",
    "ImageResolver",
    "ReferenceExtractor",
]

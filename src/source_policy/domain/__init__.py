"""Reference model, classification and policy assembly."""

from __future__ import annotations

from .classification import classify, has_unexpanded_variable, is_digest_qualified, is_git_url
from .errors import (
    ExtractionError,
    GitResolutionError,
    HttpResolutionError,
    ImageResolutionError,
    InvalidReferenceError,
    PolicyGenerationError,
    ResolutionError,
    SerializationError,
    SourcePolicyError,
)
from .pinning import PolicyResult, Resolvers, generate_policy, plan_references
from .policy import PolicyDocument, PolicyRule
from .references import GitSource, ImageReference
from .types import Disposition, RawReference, ResolvedPin, SourceKind, VolatileContentWarning

__all__ = [
    "Disposition",
    "ExtractionError",
    "GitResolutionError",
    "GitSource",
    "HttpResolutionError",
    "ImageReference",
    "ImageResolutionError",
    "InvalidReferenceError",
    "PolicyDocument",
    "PolicyGenerationError",
    "PolicyResult",
    "PolicyRule",
    "RawReference",
    "ResolutionError",
    "ResolvedPin",
    "Resolvers",
    "SerializationError",
    "SourceKind",
    "SourcePolicyError",
    "VolatileContentWarning",
    "classify",
    "generate_policy",
    "has_unexpanded_variable",
    "is_digest_qualified",
    "is_git_url",
    "plan_references",
]

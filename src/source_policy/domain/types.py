"""Value types shared by the extractor, the resolvers and the assembler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class SourceKind(StrEnum):
    IMAGE = "image"
    HTTP = "http"
    GIT = "git"


class Disposition(StrEnum):
    """What the assembler should do with an extracted reference."""

    SKIP = "skip"
    RESOLVE_IMAGE = "resolve-image"
    RESOLVE_HTTP = "resolve-http"
    RESOLVE_GIT = "resolve-git"


@dataclass(frozen=True, slots=True)
class RawReference:
    """A source reference exactly as written in a build file."""

    original: str
    kind: SourceKind
    instruction: str
    source: str
    line: int | None = None
    stage_names: frozenset[str] = frozenset()
    checksum: str | None = None

    @property
    def location(self) -> str:
        if self.line is None:
            return self.source
        return f"{self.source}:{self.line}"


@dataclass(frozen=True, slots=True)
class ResolvedPin:
    """Immutable rewrite of one original reference."""

    original: str
    kind: SourceKind
    identifier: str
    attrs: dict[str, str] = field(default_factory=dict[str, str])
    volatility: str | None = None


@dataclass(frozen=True, slots=True)
class VolatileContentWarning:
    """Non-fatal advisory: the pinned content is served as non-cacheable."""

    url: str
    reason: str
    source: str | None = None

    def __str__(self) -> str:
        where = f" (referenced in {self.source})" if self.source else ""
        return f"{self.url}{where} may change upstream: {self.reason}"


__all__ = [
    "Disposition",
    "RawReference",
    "ResolvedPin",
    "SourceKind",
    "VolatileContentWarning",
]

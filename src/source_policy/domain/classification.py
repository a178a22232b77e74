"""Pure classification of extracted references."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from .types import Disposition, SourceKind

if TYPE_CHECKING:
    from .types import RawReference

NO_BASE_IMAGE: Final[str] = "scratch"
GIT_SCHEMES: Final[tuple[str, ...]] = ("git://", "git+ssh://", "ssh://")

_VARIABLE_RE = re.compile(r"\$(?:\{[^}]*\}|[A-Za-z_][A-Za-z0-9_]*)")
_DIGEST_SUFFIX_RE = re.compile(
    r"@[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$"
)
_SCP_RE = re.compile(r"^[A-Za-z0-9._~+-]+@[A-Za-z0-9.-]+:(?!//)")


def has_unexpanded_variable(text: str) -> bool:
    """Return ``True`` for ``${NAME}`` / ``$NAME`` tokens left by the extractor."""

    return _VARIABLE_RE.search(text) is not None


def is_digest_qualified(image: str) -> bool:
    return _DIGEST_SUFFIX_RE.search(image) is not None


def is_scp_like(url: str) -> bool:
    """``user@host:path`` as accepted by git and ssh."""

    return _SCP_RE.match(url) is not None


def is_git_url(url: str) -> bool:
    """Decide between git and plain HTTP for a remote source URL."""

    if url.startswith(GIT_SCHEMES) or is_scp_like(url):
        return True
    base = url.split("#", 1)[0].split("?", 1)[0].rstrip("/")
    return base.endswith(".git")


def _classify_image(ref: RawReference) -> Disposition:
    text = ref.original
    if text.lower() == NO_BASE_IMAGE:
        return Disposition.SKIP
    if text.lower() in {name.lower() for name in ref.stage_names}:
        return Disposition.SKIP
    if text.isdigit():
        return Disposition.SKIP
    if has_unexpanded_variable(text) or is_digest_qualified(text):
        return Disposition.SKIP
    return Disposition.RESOLVE_IMAGE


def classify(ref: RawReference) -> Disposition:
    """Return the disposition for ``ref`` without touching the network."""

    match ref.kind:
        case SourceKind.IMAGE:
            return _classify_image(ref)
        case SourceKind.HTTP | SourceKind.GIT:
            if has_unexpanded_variable(ref.original) or ref.checksum:
                return Disposition.SKIP
            if ref.kind is SourceKind.GIT or is_git_url(ref.original):
                return Disposition.RESOLVE_GIT
            return Disposition.RESOLVE_HTTP


__all__ = [
    "GIT_SCHEMES",
    "NO_BASE_IMAGE",
    "classify",
    "has_unexpanded_variable",
    "is_digest_qualified",
    "is_git_url",
    "is_scp_like",
]

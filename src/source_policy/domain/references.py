"""Parsing for container image references and git source URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Final

from .errors import InvalidReferenceError

DEFAULT_DOMAIN: Final[str] = "docker.io"
LEGACY_DEFAULT_DOMAIN: Final[str] = "index.docker.io"
DEFAULT_REGISTRY_HOST: Final[str] = "registry-1.docker.io"
OFFICIAL_REPOSITORY_PREFIX: Final[str] = "library/"
DEFAULT_TAG: Final[str] = "latest"
NAME_TOTAL_LENGTH_MAX: Final[int] = 255

_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]+)[a-z0-9]+)*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN_RE = re.compile(
    rf"(?:{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*|\[[a-fA-F0-9:]+\])(?::[0-9]+)?"
)
_PATH_RE = re.compile(rf"{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*")
_TAG_RE = re.compile(r"[\w][\w.-]{0,127}")
_DIGEST_RE = re.compile(r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def _split_domain(name: str) -> tuple[str, str]:
    slash = name.find("/")
    head = name[:slash]
    if slash == -1 or (
        not any(char in head for char in ".:") and head != "localhost" and head.lower() == head
    ):
        domain, path = DEFAULT_DOMAIN, name
    else:
        domain, path = head, name[slash + 1 :]
    if domain == LEGACY_DEFAULT_DOMAIN:
        domain = DEFAULT_DOMAIN
    if domain == DEFAULT_DOMAIN and "/" not in path:
        path = OFFICIAL_REPOSITORY_PREFIX + path
    return domain, path


@dataclass(frozen=True, slots=True)
class ImageReference:
    """Normalized image reference (``domain/path[:tag][@digest]``)."""

    domain: str
    path: str
    tag: str | None = None
    digest: str | None = None

    @classmethod
    def parse(cls, text: str) -> ImageReference:
        """Parse and normalize a reference the way ``docker pull`` does.

        ``alpine`` becomes ``docker.io/library/alpine``; ``index.docker.io`` is
        folded into ``docker.io``. No default tag is added here, see
        :meth:`with_default_tag`.
        """

        if not text:
            raise InvalidReferenceError("empty image reference")

        remainder = text
        digest: str | None = None
        if "@" in remainder:
            remainder, digest = remainder.split("@", 1)
            if not _DIGEST_RE.fullmatch(digest):
                raise InvalidReferenceError(f"invalid digest in image reference {text!r}")

        tag: str | None = None
        colon = remainder.rfind(":")
        if colon > remainder.rfind("/"):
            remainder, tag = remainder[:colon], remainder[colon + 1 :]
            if not _TAG_RE.fullmatch(tag):
                raise InvalidReferenceError(f"invalid tag in image reference {text!r}")

        domain, path = _split_domain(remainder)
        if not _DOMAIN_RE.fullmatch(domain):
            raise InvalidReferenceError(f"invalid registry domain in image reference {text!r}")
        if path.lower() != path:
            raise InvalidReferenceError(f"repository name must be lowercase: {text!r}")
        if not _PATH_RE.fullmatch(path):
            raise InvalidReferenceError(f"invalid repository name in image reference {text!r}")
        if len(domain) + 1 + len(path) > NAME_TOTAL_LENGTH_MAX:
            raise InvalidReferenceError(
                f"repository name must not be more than {NAME_TOTAL_LENGTH_MAX} characters"
            )
        return cls(domain=domain, path=path, tag=tag, digest=digest)

    @property
    def name(self) -> str:
        return f"{self.domain}/{self.path}"

    @property
    def registry_host(self) -> str:
        """Host that serves the distribution API for :attr:`domain`."""

        return DEFAULT_REGISTRY_HOST if self.domain == DEFAULT_DOMAIN else self.domain

    @property
    def manifest_reference(self) -> str:
        """Tag or digest used in the ``/manifests/<reference>`` endpoint."""

        return self.digest or self.tag or DEFAULT_TAG

    def with_default_tag(self) -> ImageReference:
        if self.tag is None and self.digest is None:
            return replace(self, tag=DEFAULT_TAG)
        return self

    def with_digest(self, digest: str) -> ImageReference:
        return replace(self, digest=digest)

    def __str__(self) -> str:
        text = self.name
        if self.tag is not None:
            text += f":{self.tag}"
        if self.digest is not None:
            text += f"@{self.digest}"
        return text


@dataclass(frozen=True, slots=True)
class GitSource:
    """Git source in the build engine's ``<remote>#<ref>[:<subdir>]`` syntax."""

    remote: str
    ref: str = ""
    subdir: str | None = None

    @classmethod
    def parse(cls, text: str) -> GitSource:
        remote, _, fragment = text.partition("#")
        if not remote:
            raise InvalidReferenceError(f"missing remote in git source {text!r}")
        ref, _, subdir = fragment.partition(":")
        return cls(remote=remote, ref=ref, subdir=subdir or None)

    @property
    def fragment(self) -> str:
        if self.subdir:
            return f"{self.ref}:{self.subdir}"
        return self.ref

    @property
    def identifier(self) -> str:
        """Build-engine identifier: ``git://<host>/<path>[#<fragment>]``."""

        identifier = "git://" + _SCHEME_RE.sub("", self.remote)
        if self.fragment:
            identifier += f"#{self.fragment}"
        return identifier


__all__ = [
    "DEFAULT_DOMAIN",
    "DEFAULT_TAG",
    "OFFICIAL_REPOSITORY_PREFIX",
    "GitSource",
    "ImageReference",
]

"""Resolve git sources to full commit ids."""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from source_policy.domain.errors import GitResolutionError, InvalidReferenceError
from source_policy.domain.policy import GIT_CHECKSUM_ATTR
from source_policy.domain.references import GitSource
from source_policy.domain.types import ResolvedPin, SourceKind

from .remote import PEELED_SUFFIX, GitRemoteError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from source_policy.domain.ports.resolving import GitResolver

    from .remote import RefLister

log = getLogger(__name__)

_COMMIT_RE = re.compile(r"[0-9a-fA-F]{40}")


def match_ref(refs: Mapping[str, str], ref: str) -> str | None:
    """Branch first, then tag (peeled to its commit); ``""`` means ``HEAD``.

    Abbreviated commit ids are never matched.
    """

    if not ref:
        return refs.get("HEAD")
    candidates = [ref] if ref.startswith("refs/") else [f"refs/heads/{ref}", f"refs/tags/{ref}"]
    for name in candidates:
        if name.startswith("refs/tags/"):
            peeled = refs.get(name + PEELED_SUFFIX)
            if peeled is not None:
                return peeled
        if name in refs:
            return refs[name]
    return None


@dataclass(slots=True)
class RemoteGitResolver:
    http_lister: RefLister
    command_lister: RefLister

    async def resolve(self, original: str) -> ResolvedPin:
        try:
            source = GitSource.parse(original)
        except InvalidReferenceError as exc:
            raise GitResolutionError(str(exc), reference=original) from exc
        commit = await self.resolve_commit(source.remote, source.ref, reference=original)
        return ResolvedPin(
            original=original,
            kind=SourceKind.GIT,
            identifier=original,
            attrs={GIT_CHECKSUM_ATTR: commit},
        )

    async def resolve_commit(self, remote: str, ref: str, *, reference: str | None = None) -> str:
        if _COMMIT_RE.fullmatch(ref):
            return ref
        is_http = remote.startswith(("https://", "http://"))
        lister = self.http_lister if is_http else self.command_lister
        try:
            refs = await lister.list_refs(remote)
        except GitRemoteError as exc:
            raise GitResolutionError(str(exc), reference=reference or remote) from exc
        commit = match_ref(refs, ref)
        if commit is None:
            raise GitResolutionError(
                f"no branch or tag named {ref or 'HEAD'!r} on {remote}",
                reference=reference or remote,
            )
        log.debug("Resolved %s#%s to %s", remote, ref, commit)
        return commit


if TYPE_CHECKING:
    _resolver_check: type[GitResolver] = RemoteGitResolver

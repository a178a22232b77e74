"""Public interface for the git adapter."""

from __future__ import annotations

from .remote import (
    CommandRefLister,
    GitRemoteError,
    RefLister,
    SmartHttpRefLister,
    parse_advertisement,
    parse_ls_remote,
)
from .resolver import RemoteGitResolver, match_ref

__all__ = [
    "CommandRefLister",
    "GitRemoteError",
    "RefLister",
    "RemoteGitResolver",
    "SmartHttpRefLister",
    "match_ref",
    "parse_advertisement",
    "parse_ls_remote",
]

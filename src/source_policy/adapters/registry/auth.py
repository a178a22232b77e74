"""Registry credentials discovered from docker / containers auth files."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from source_policy.domain.references import DEFAULT_DOMAIN

from .schema import AuthEntry, AuthFile

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

log = getLogger(__name__)

DOCKER_HUB_ALIASES = frozenset(
    {"index.docker.io", "registry-1.docker.io", "registry.hub.docker.com", DEFAULT_DOMAIN}
)


@dataclass(frozen=True, slots=True)
class Credentials:
    username: str
    password: str = field(repr=False)

    def basic_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode("ascii")
        return f"Basic {token}"


def normalize_registry_key(key: str) -> str:
    """``https://index.docker.io/v1/`` -> ``docker.io``; ``ghcr.io/`` -> ``ghcr.io``."""

    host = key.strip().lower()
    if "://" in host:
        host = host.split("://", 1)[1]
    host = host.split("/", 1)[0]
    if host in DOCKER_HUB_ALIASES:
        return DEFAULT_DOMAIN
    return host


def _decode_entry(key: str, entry: AuthEntry) -> Credentials | None:
    if entry.username and entry.password:
        return Credentials(username=entry.username, password=entry.password)
    if not entry.auth:
        return None
    try:
        decoded = base64.b64decode(entry.auth, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        log.warning("Ignoring malformed credentials for %s", key)
        return None
    username, sep, password = decoded.partition(":")
    if not sep or not username:
        log.warning("Ignoring malformed credentials for %s", key)
        return None
    return Credentials(username=username, password=password)


def _load_auth_file(path: Path) -> AuthFile | None:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        log.warning("Cannot read credentials file %s: %s", path, exc)
        return None
    try:
        return AuthFile.model_validate_json(text)
    except ValidationError as exc:
        log.warning("Ignoring invalid credentials file %s: %s", path, exc.errors()[:1])
        return None


class CredentialStore:
    """Read-only lookup of registry credentials by registry domain."""

    def __init__(self, entries: Mapping[str, Credentials] | None = None) -> None:
        self._entries = dict(entries or {})

    @classmethod
    def from_files(cls, paths: Iterable[Path]) -> CredentialStore:
        """Load credentials; files earlier in ``paths`` take precedence."""

        entries: dict[str, Credentials] = {}
        for path in paths:
            auth_file = _load_auth_file(path)
            if auth_file is None:
                continue
            log.debug("Loaded registry credentials from %s", path)
            for key, entry in auth_file.auths.items():
                registry = normalize_registry_key(key)
                if registry in entries:
                    continue
                credentials = _decode_entry(key, entry)
                if credentials is not None:
                    entries[registry] = credentials
        return cls(entries)

    def lookup(self, domain: str) -> Credentials | None:
        return self._entries.get(normalize_registry_key(domain))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CredentialStore", "Credentials", "normalize_registry_key"]

"""Public interface for the registry adapter."""

from __future__ import annotations

from .auth import CredentialStore, Credentials, normalize_registry_key
from .client import MANIFEST_MEDIA_TYPES, Manifest, RegistryClient, RegistryError
from .resolver import RegistryImageResolver

__all__ = [
    "MANIFEST_MEDIA_TYPES",
    "CredentialStore",
    "Credentials",
    "Manifest",
    "RegistryClient",
    "RegistryError",
    "RegistryImageResolver",
    "normalize_registry_key",
]

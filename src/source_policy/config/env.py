"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def get_env(name: str) -> str | None:
    """Return a stripped environment value, treating blanks as unset."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def first_env(names: Sequence[str]) -> str | None:
    """Return the first non-blank value among ``names``."""

    for name in names:
        value = get_env(name)
        if value is not None:
            return value
    return None


def get_env_int(name: str, *, default: int, minimum: int = 1) -> int:
    raw = get_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise InvalidConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_env_float(name: str, *, default: float) -> float:
    raw = get_env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise InvalidConfigurationError(f"{name} must be positive, got {value}")
    return value

"""Port for turning build files into raw references."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from source_policy.domain.types import RawReference


@runtime_checkable
class ReferenceExtractor(Protocol):
    def extract(self, text: str, *, source: str) -> list[RawReference]: ...


__all__ = ["ReferenceExtractor"]

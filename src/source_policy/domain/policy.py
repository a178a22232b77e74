"""Source policy document consumed by the build engine."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import PydanticSerializationError

from .errors import SerializationError
from .references import GitSource
from .types import ResolvedPin, SourceKind

IMAGE_SCHEME = "docker-image"
HTTP_CHECKSUM_ATTR = "http.checksum"
HTTP_HEADER_ATTR_PREFIX = "http.header."
GIT_CHECKSUM_ATTR = "git.checksum"


def source_identifier(kind: SourceKind, text: str) -> str:
    """Render ``text`` as a build-engine source identifier for ``kind``."""

    match kind:
        case SourceKind.IMAGE:
            return f"{IMAGE_SCHEME}://{text}"
        case SourceKind.HTTP:
            return text
        case SourceKind.GIT:
            return GitSource.parse(text).identifier


class PolicyBaseModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Selector(PolicyBaseModel):
    identifier: str


class Update(PolicyBaseModel):
    identifier: str
    attrs: dict[str, str] | None = None


class PolicyRule(PolicyBaseModel):
    action: Literal["CONVERT"] = "CONVERT"
    selector: Selector
    updates: Update

    @classmethod
    def convert(cls, pin: ResolvedPin) -> PolicyRule:
        return cls(
            selector=Selector(identifier=source_identifier(pin.kind, pin.original)),
            updates=Update(
                identifier=source_identifier(pin.kind, pin.identifier),
                attrs=dict(pin.attrs) or None,
            ),
        )


class PolicyDocument(PolicyBaseModel):
    rules: list[PolicyRule] = Field(default_factory=list["PolicyRule"])

    def to_json(self) -> str:
        """Two-space indented JSON with a trailing newline."""

        try:
            return self.model_dump_json(indent=2, exclude_none=True) + "\n"
        except PydanticSerializationError as exc:
            raise SerializationError(f"failed to serialize source policy: {exc}") from exc


__all__ = [
    "GIT_CHECKSUM_ATTR",
    "HTTP_CHECKSUM_ATTR",
    "HTTP_HEADER_ATTR_PREFIX",
    "IMAGE_SCHEME",
    "PolicyDocument",
    "PolicyRule",
    "Selector",
    "Update",
    "source_identifier",
]

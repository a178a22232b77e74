"""Line-oriented extraction of source references from Dockerfiles."""

from __future__ import annotations

import json
import re
import shlex
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from source_policy.domain.classification import GIT_SCHEMES, is_git_url, is_scp_like
from source_policy.domain.errors import ExtractionError
from source_policy.domain.types import RawReference, SourceKind

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from source_policy.domain.ports.extraction import ReferenceExtractor

log = getLogger(__name__)

DEFAULT_ESCAPE = "\\"
REMOTE_PREFIXES = ("http://", "https://")
HEREDOC_INSTRUCTIONS = frozenset({"RUN", "COPY", "ADD"})

_DIRECTIVE_RE = re.compile(r"^#\s*([A-Za-z][A-Za-z0-9_-]*)\s*=\s*(\S+)\s*$")
_HEREDOC_RE = re.compile(r"(\d*)<<(-?)([\"']?)(\w+)\3")
_VARIABLE_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")
_FLAG_RE = re.compile(r"--(\S+)\s*(.*)", re.DOTALL)


@dataclass(frozen=True, slots=True)
class Instruction:
    """One logical instruction, continuations already joined."""

    keyword: str
    arguments: str
    line: int


def escape_character(lines: list[str]) -> str:
    """Read the ``# escape=`` parser directive from the head of the file."""

    for line in lines:
        match = _DIRECTIVE_RE.match(line.strip())
        if match is None:
            break
        if match[1].lower() == "escape" and match[2] in ("\\", "`"):
            return match[2]
    return DEFAULT_ESCAPE


def _instruction(logical: str, line: int) -> Instruction:
    keyword, *rest = logical.split(maxsplit=1)
    return Instruction(keyword.upper(), rest[0].strip() if rest else "", line)


def heredoc_terminators(arguments: str) -> list[str]:
    """Terminators of the heredocs opened by shell words starting with ``<<``."""

    try:
        words = shlex.split(arguments, posix=False)
    except ValueError:
        words = arguments.split()
    return [match[4] for word in words if (match := _HEREDOC_RE.fullmatch(word))]


def iter_instructions(text: str) -> Iterator[Instruction]:
    lines = text.splitlines()
    escape = escape_character(lines)
    index = 0
    buffer: list[str] = []
    start = 0
    while index < len(lines):
        raw = lines[index]
        index += 1
        stripped = raw.strip()
        # comments and blank lines are dropped, also inside continuations
        if not stripped or stripped.startswith("#"):
            continue
        if not buffer:
            start = index
        trimmed = raw.rstrip()
        if trimmed.endswith(escape):
            buffer.append(trimmed[: -len(escape)])
            continue
        buffer.append(trimmed)
        logical = "".join(buffer).strip()
        buffer = []

        instruction = _instruction(logical, start)
        if instruction.keyword in HEREDOC_INSTRUCTIONS:
            for terminator in heredoc_terminators(instruction.arguments):
                while index < len(lines) and lines[index].strip() != terminator:
                    index += 1
                index += 1
        yield instruction
    if buffer:
        yield _instruction("".join(buffer).strip(), start)


def parse_arguments(arguments: str) -> tuple[dict[str, list[str]], list[str]]:
    """Split leading ``--flag=value`` options from the operands.

    Operands in JSON (exec) form are decoded; anything else is split on whitespace.
    """

    flags: dict[str, list[str]] = {}
    remaining = arguments.strip()
    while remaining.startswith("--"):
        match = _FLAG_RE.match(remaining)
        if match is None:
            break
        name, _, value = match[1].partition("=")
        flags.setdefault(name.lower(), []).append(value)
        remaining = match[2]
    if remaining.startswith("["):
        try:
            parsed = json.loads(remaining)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
            return flags, list(parsed)
    return flags, remaining.split()


def parse_arg_declaration(
    arguments: str, known: dict[str, str] | None = None
) -> dict[str, str]:
    """``ARG NAME=value OTHER`` -> declared defaults, expanded against ``known``."""

    declared: dict[str, str] = {}
    for token in arguments.split():
        name, sep, value = token.partition("=")
        if not sep:
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        declared[name] = expand_variables(value, {**(known or {}), **declared})
    return declared


def expand_variables(text: str, values: dict[str, str]) -> str:
    """Substitute known variables; unknown ones stay literal."""

    def substitute(match: re.Match[str]) -> str:
        name = match[1] or match[2]
        return values.get(name, match[0])

    return _VARIABLE_RE.sub(substitute, text)


def mount_options(spec: str) -> dict[str, str]:
    options: dict[str, str] = {}
    for part in spec.split(","):
        key, _, value = part.partition("=")
        options[key.strip().lower()] = value.strip()
    return options


def is_remote_source(source: str) -> bool:
    return source.startswith(REMOTE_PREFIXES + GIT_SCHEMES) or is_scp_like(source)


class DockerfileExtractor:
    """Collects FROM, COPY --from, RUN --mount from= and remote ADD sources."""

    def extract(self, text: str, *, source: str) -> list[RawReference]:
        references: list[RawReference] = []
        stage_names: set[str] = set()
        global_args: dict[str, str] = {}
        seen_from = False

        def image(original: str, instruction: Instruction) -> RawReference:
            return RawReference(
                original=original,
                kind=SourceKind.IMAGE,
                instruction=instruction.keyword,
                source=source,
                line=instruction.line,
                stage_names=frozenset(stage_names),
            )

        for instruction in iter_instructions(text):
            flags, operands = parse_arguments(instruction.arguments)
            match instruction.keyword:
                case "ARG" if not seen_from:
                    global_args.update(parse_arg_declaration(instruction.arguments, global_args))
                case "FROM":
                    seen_from = True
                    if not operands:
                        raise ExtractionError(
                            f"{source}:{instruction.line}: FROM requires an image reference"
                        )
                    base = expand_variables(operands[0], global_args)
                    references.append(image(base, instruction))
                    if len(operands) >= 3 and operands[1].lower() == "as":
                        stage_names.add(operands[2].lower())
                case "COPY":
                    references.extend(
                        image(value, instruction) for value in flags.get("from", []) if value
                    )
                case "RUN":
                    for spec in flags.get("mount", []):
                        value = mount_options(spec).get("from")
                        if value:
                            references.append(image(value, instruction))
                case "ADD":
                    checksums = [value for value in flags.get("checksum", []) if value]
                    checksum = checksums[-1] if checksums else None
                    references.extend(
                        RawReference(
                            original=operand,
                            kind=SourceKind.GIT if is_git_url(operand) else SourceKind.HTTP,
                            instruction=instruction.keyword,
                            source=source,
                            line=instruction.line,
                            stage_names=frozenset(stage_names),
                            checksum=checksum,
                        )
                        for operand in operands[:-1]
                        if is_remote_source(operand)
                    )
                case _:
                    pass

        log.debug("Extracted %s references from %s", len(references), source)
        return references

    def extract_file(self, path: Path) -> list[RawReference]:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ExtractionError(f"cannot read {path}: {exc}") from exc
        return self.extract(text, source=str(path))


if TYPE_CHECKING:
    _extractor_check: ReferenceExtractor = DockerfileExtractor()


__all__ = [
    "DockerfileExtractor",
    "Instruction",
    "escape_character",
    "expand_variables",
    "heredoc_terminators",
    "iter_instructions",
    "parse_arguments",
]

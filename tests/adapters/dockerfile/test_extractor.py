from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from source_policy.adapters.dockerfile import DockerfileExtractor, iter_instructions
from source_policy.adapters.dockerfile.extractor import heredoc_terminators, parse_arguments
from source_policy.domain.errors import ExtractionError
from source_policy.domain.types import SourceKind

if TYPE_CHECKING:
    from pathlib import Path

    from source_policy.domain.types import RawReference

DOCKERFILE = """\
# syntax=docker/dockerfile:1
ARG GO_VERSION=1.23
ARG BASE="alpine:3.18"

FROM --platform=$BUILDPLATFORM golang:${GO_VERSION} AS Builder
ADD https://github.com/cli/cli.git#v2.40.0 /src/cli
ADD --checksum=sha256:0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef \\
    https://example.com/pinned.tar.gz /tmp/
ADD https://example.com/tool.tar.gz \\
    https://example.com/other.tar.gz \\
    /opt/
RUN --mount=type=cache,target=/root/.cache \\
    --mount=type=bind,from=ghcr.io/org/assets:1,source=/,target=/assets \\
    go build ./...

FROM ${BASE}
COPY --from=builder /out/app /usr/bin/app
COPY --from=docker.io/library/busybox:1.36 /bin/busybox /bin/
COPY <<EOF /etc/motd
FROM this-is-not-an-image
EOF
ADD ["https://example.com/json form.txt", "/json/"]
"""


def _extract(text: str = DOCKERFILE) -> list[RawReference]:
    return DockerfileExtractor().extract(text, source="Dockerfile")


def test_references_in_file_order() -> None:
    refs = _extract()

    assert [(ref.instruction, ref.original) for ref in refs] == [
        ("FROM", "golang:1.23"),
        ("ADD", "https://github.com/cli/cli.git#v2.40.0"),
        ("ADD", "https://example.com/pinned.tar.gz"),
        ("ADD", "https://example.com/tool.tar.gz"),
        ("ADD", "https://example.com/other.tar.gz"),
        ("RUN", "ghcr.io/org/assets:1"),
        ("FROM", "alpine:3.18"),
        ("COPY", "builder"),
        ("COPY", "docker.io/library/busybox:1.36"),
        ("ADD", "https://example.com/json form.txt"),
    ]


def test_line_numbers_point_at_instruction_start() -> None:
    refs = {ref.original: ref for ref in _extract()}

    assert refs["golang:1.23"].line == 5
    assert refs["https://example.com/pinned.tar.gz"].line == 7
    assert refs["https://example.com/other.tar.gz"].line == 9
    assert refs["ghcr.io/org/assets:1"].line == 12
    assert refs["golang:1.23"].location == "Dockerfile:5"


def test_kinds_and_checksums() -> None:
    refs = {ref.original: ref for ref in _extract()}

    assert refs["https://github.com/cli/cli.git#v2.40.0"].kind is SourceKind.GIT
    assert refs["https://example.com/tool.tar.gz"].kind is SourceKind.HTTP
    assert refs["https://example.com/tool.tar.gz"].checksum is None
    assert refs["https://example.com/pinned.tar.gz"].checksum == (
        "sha256:0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
    )


def test_stage_names_are_tracked_in_lowercase() -> None:
    refs = {ref.original: ref for ref in _extract()}

    assert refs["golang:1.23"].stage_names == frozenset()
    assert refs["builder"].stage_names == frozenset({"builder"})


def test_heredoc_bodies_are_not_instructions() -> None:
    originals = [ref.original for ref in _extract()]

    assert "this-is-not-an-image" not in originals


def test_unknown_variables_stay_literal() -> None:
    refs = _extract("FROM ${REGISTRY}/app:${TAG}\nARG LATE=1\nFROM app:$LATE\n")

    assert [ref.original for ref in refs] == ["${REGISTRY}/app:${TAG}", "app:$LATE"]


def test_local_add_sources_are_ignored() -> None:
    refs = _extract("FROM scratch\nADD vendor.git /src\nADD ./archive.tar.gz /opt/\n")

    assert [ref.original for ref in refs] == ["scratch"]


def test_scp_style_git_source() -> None:
    refs = _extract("FROM scratch\nADD git@github.com:org/repo.git#main /src\n")

    assert refs[1].kind is SourceKind.GIT
    assert refs[1].original == "git@github.com:org/repo.git#main"


def test_escape_directive_changes_continuation_character() -> None:
    text = "# escape=`\nFROM mcr.microsoft.com/windows/servercore:ltsc2022 `\n    AS base\n"

    refs = _extract(text)

    assert [ref.original for ref in refs] == ["mcr.microsoft.com/windows/servercore:ltsc2022"]


def test_comments_inside_continuations_are_dropped() -> None:
    text = "FROM alpine:3.18 \\\n# a comment\n  AS base\nFROM base\n"

    refs = _extract(text)

    assert [ref.original for ref in refs] == ["alpine:3.18", "base"]
    assert refs[1].stage_names == frozenset({"base"})


def test_instruction_keywords_are_case_insensitive() -> None:
    instructions = list(iter_instructions("from alpine\nrun echo hi\n"))

    assert [instruction.keyword for instruction in instructions] == ["FROM", "RUN"]


def test_parse_arguments_splits_flags() -> None:
    flags, operands = parse_arguments("--chmod=644 --link https://example.com/a /a")

    assert flags == {"chmod": ["644"], "link": [""]}
    assert operands == ["https://example.com/a", "/a"]


def test_from_without_image_is_an_error() -> None:
    with pytest.raises(ExtractionError, match="Dockerfile:1"):
        _extract("FROM\n")


def test_extract_file_reports_unreadable_paths(tmp_path: Path) -> None:
    with pytest.raises(ExtractionError, match="cannot read"):
        DockerfileExtractor().extract_file(tmp_path / "missing.Dockerfile")


def test_extract_file_uses_path_as_source(tmp_path: Path) -> None:
    path = tmp_path / "Dockerfile"
    path.write_text("FROM alpine:3.18\n", encoding="utf-8")

    refs = DockerfileExtractor().extract_file(path)

    assert refs[0].source == str(path)


def test_shell_arithmetic_is_not_a_heredoc() -> None:
    text = (
        "FROM alpine:3.18 AS build\n"
        "RUN echo $((1<<BITS)) > /n\n"
        "FROM golang:1.23\n"
        "ADD https://example.com/a.tgz /a\n"
    )

    refs = _extract(text)

    assert [ref.original for ref in refs] == [
        "alpine:3.18",
        "golang:1.23",
        "https://example.com/a.tgz",
    ]


def test_quoted_heredoc_marker_is_not_a_heredoc() -> None:
    text = 'FROM alpine:3.18\nRUN echo "use <<EOF for heredocs"\nFROM golang:1.23\n'

    refs = _extract(text)

    assert [ref.original for ref in refs] == ["alpine:3.18", "golang:1.23"]


def test_heredoc_terminators_only_match_whole_words() -> None:
    assert heredoc_terminators('<<-"END" /etc/a <<EOF2 /etc/b') == ["END", "EOF2"]
    assert heredoc_terminators("echo $((1<<BITS))") == []


def test_global_arg_defaults_expand_earlier_args() -> None:
    text = "ARG V=3.18\nARG IMG=alpine:${V}\nFROM ${IMG}\n"

    refs = _extract(text)

    assert [ref.original for ref in refs] == ["alpine:3.18"]

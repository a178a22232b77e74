"""Listing the references advertised by a git remote."""

from __future__ import annotations

import asyncio
import os
import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

if TYPE_CHECKING:
    from collections.abc import Iterator

    from source_policy.adapters.http_client import PolicyHttpClient

log = getLogger(__name__)

ADVERTISEMENT_CONTENT_TYPE = "application/x-git-upload-pack-advertisement"
PEELED_SUFFIX = "^{}"

_OID_RE = re.compile(r"[0-9a-f]{40}")


class GitRemoteError(RuntimeError):
    """Raised when a remote cannot be listed."""


@runtime_checkable
class RefLister(Protocol):
    async def list_refs(self, remote: str) -> dict[str, str]: ...


def iter_pkt_lines(data: bytes) -> Iterator[bytes | None]:
    """Split a pkt-line stream; flush and delimiter packets yield ``None``."""

    offset = 0
    while offset < len(data):
        header = data[offset : offset + 4]
        try:
            length = int(header, 16)
        except ValueError as exc:
            raise GitRemoteError(f"malformed pkt-line header {header!r}") from exc
        if length < 4:
            offset += 4
            yield None
            continue
        payload = data[offset + 4 : offset + length]
        if len(payload) != length - 4:
            raise GitRemoteError("truncated pkt-line stream")
        offset += length
        yield payload


def parse_advertisement(data: bytes) -> dict[str, str]:
    """Parse a smart-HTTP ``info/refs`` advertisement into ``{ref: oid}``."""

    refs: dict[str, str] = {}
    for line in iter_pkt_lines(data):
        if line is None:
            continue
        text = line.rstrip(b"\n").decode("utf-8", "replace")
        if text.startswith("# service="):
            continue
        if text.startswith("ERR "):
            raise GitRemoteError(text[4:])
        oid, _, name = text.split("\0", 1)[0].partition(" ")
        if name and name != "capabilities" + PEELED_SUFFIX and _OID_RE.fullmatch(oid):
            refs[name] = oid
    return refs


def parse_ls_remote(output: str) -> dict[str, str]:
    """Parse ``<oid>\\t<ref>`` lines as printed by ``git ls-remote``."""

    refs: dict[str, str] = {}
    for line in output.splitlines():
        oid, _, name = line.strip().partition("\t")
        if name and _OID_RE.fullmatch(oid):
            refs[name] = oid
    return refs


@dataclass(slots=True)
class SmartHttpRefLister:
    """Lists refs of http(s) remotes through ``info/refs`` discovery."""

    client: PolicyHttpClient

    async def list_refs(self, remote: str) -> dict[str, str]:
        url = remote.rstrip("/") + "/info/refs"
        try:
            response = await self.client.get(url, params={"service": "git-upload-pack"})
        except httpx.HTTPError as exc:
            raise GitRemoteError(f"listing refs of {remote} failed: {exc}") from exc
        if not response.is_success:
            raise GitRemoteError(
                f"listing refs of {remote} failed with HTTP {response.status_code}"
            )
        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip()
        if content_type == ADVERTISEMENT_CONTENT_TYPE:
            return parse_advertisement(response.content)
        # dumb HTTP servers answer with a plain ls-remote listing
        log.debug("%s is not a smart HTTP remote (%s)", remote, content_type or "no content type")
        return parse_ls_remote(response.text)


@dataclass(slots=True)
class CommandRefLister:
    """Lists refs with ``git ls-remote`` for ssh, scp-style and git:// remotes."""

    executable: str = "git"
    timeout_seconds: float = 30.0

    async def list_refs(self, remote: str) -> dict[str, str]:
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                "ls-remote",
                "--",
                remote,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise GitRemoteError(f"cannot run {self.executable}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except TimeoutError as exc:
            await _terminate(process)
            raise GitRemoteError(f"git ls-remote {remote} timed out") from exc
        except asyncio.CancelledError:
            await _terminate(process)
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", "replace").strip() or f"exit {process.returncode}"
            raise GitRemoteError(f"git ls-remote {remote} failed: {message}")
        return parse_ls_remote(stdout.decode("utf-8", "replace"))


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        process.kill()
        await process.wait()


__all__ = [
    "CommandRefLister",
    "GitRemoteError",
    "RefLister",
    "SmartHttpRefLister",
    "iter_pkt_lines",
    "parse_advertisement",
    "parse_ls_remote",
]

"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import sys
from contextlib import AsyncExitStack
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from source_policy.adapters.dockerfile import DockerfileExtractor
from source_policy.adapters.git import CommandRefLister, RemoteGitResolver, SmartHttpRefLister
from source_policy.adapters.http import HttpSourceResolver
from source_policy.adapters.http_client import default_client_factory
from source_policy.adapters.registry import CredentialStore, RegistryClient, RegistryImageResolver
from source_policy.config import get_pin_config
from source_policy.domain.pinning import PolicyResult, Resolvers, generate_policy

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from typing import TextIO

    from source_policy.adapters.http_client import ClientFactory
    from source_policy.config import PinConfig
    from source_policy.domain.types import RawReference

log = getLogger(__name__)

STDIN_SOURCE = "-"
STDIN_NAME = "<stdin>"


def read_references(
    sources: Sequence[str],
    *,
    extractor: DockerfileExtractor | None = None,
    stdin: TextIO | None = None,
) -> list[RawReference]:
    """Extract references from every source in order; ``-`` reads standard input."""

    effective_extractor = extractor or DockerfileExtractor()
    references: list[RawReference] = []
    for source in sources:
        if source == STDIN_SOURCE:
            stream = stdin if stdin is not None else sys.stdin
            references.extend(effective_extractor.extract(stream.read(), source=STDIN_NAME))
        else:
            references.extend(effective_extractor.extract_file(Path(source)))
    return references


async def pin_references(
    references: Iterable[RawReference],
    *,
    config: PinConfig,
    client_factory: ClientFactory = default_client_factory,
) -> PolicyResult:
    """Wire the resolvers for one run and build the policy document."""

    async with AsyncExitStack() as stack:
        registry_http = await stack.enter_async_context(client_factory(config.registry.client))
        source_http = await stack.enter_async_context(client_factory(config.http.client))
        github_http = await stack.enter_async_context(client_factory(config.http.github.client))
        git_http = await stack.enter_async_context(client_factory(config.git.client))

        credentials = CredentialStore.from_files(config.registry.auth_files)
        log.debug("Loaded credentials for %s registries", len(credentials))
        registry = RegistryClient(
            http=registry_http,
            credentials=credentials,
            insecure_hosts=config.registry.insecure_hosts,
        )
        resolvers = Resolvers(
            image=RegistryImageResolver(registry, hardened=config.registry.hardened),
            http=HttpSourceResolver(
                client=source_http, config=config.http, api_client=github_http
            ),
            git=RemoteGitResolver(
                http_lister=SmartHttpRefLister(git_http),
                command_lister=CommandRefLister(
                    executable=config.git.executable,
                    timeout_seconds=config.git.timeout_seconds,
                ),
            ),
        )
        return await generate_policy(references, resolvers, concurrency=config.concurrency)


def pin_dockerfiles(
    sources: Sequence[str],
    *,
    hardened: bool = False,
    concurrency: int | None = None,
    config: PinConfig | None = None,
    client_factory: ClientFactory = default_client_factory,
    stdin: TextIO | None = None,
) -> PolicyResult:
    """Pin every reference found in ``sources`` using the configured adapters."""

    effective_config = config or get_pin_config(hardened=hardened, concurrency=concurrency)
    references = read_references(sources, stdin=stdin)
    log.info(
        "Starting pin run: sources=%s, references=%s, hardened=%s, concurrency=%s",
        len(sources),
        len(references),
        effective_config.registry.hardened,
        effective_config.concurrency,
    )

    result = asyncio.run(
        pin_references(references, config=effective_config, client_factory=client_factory)
    )

    log.info(
        f"Finished pin run: rules={len(result.document.rules)}, warnings={len(result.warnings)}"
    )
    return result


__all__ = ["STDIN_NAME", "pin_dockerfiles", "pin_references", "read_references"]

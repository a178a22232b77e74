"""Assemble a source policy from extracted references."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .classification import classify
from .errors import PolicyGenerationError, ResolutionError
from .policy import PolicyDocument, PolicyRule
from .types import Disposition, VolatileContentWarning

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .ports.resolving import GitResolver, HttpResolver, ImageResolver
    from .types import RawReference, ResolvedPin

log = getLogger(__name__)

DEFAULT_CONCURRENCY = 8


@dataclass(slots=True)
class Resolvers:
    """The three protocol resolvers a run dispatches to."""

    image: ImageResolver
    http: HttpResolver
    git: GitResolver


@dataclass(slots=True)
class PolicyResult:
    """A complete policy document plus out-of-band advisories."""

    document: PolicyDocument
    warnings: list[VolatileContentWarning] = field(
        default_factory=list["VolatileContentWarning"]
    )


def plan_references(
    references: Iterable[RawReference],
) -> list[tuple[RawReference, Disposition]]:
    """First occurrence of each original wins; skipped references produce no work."""

    seen: dict[str, RawReference] = {}
    planned: list[tuple[RawReference, Disposition]] = []
    for ref in references:
        if ref.original in seen:
            continue
        seen[ref.original] = ref
        disposition = classify(ref)
        if disposition is Disposition.SKIP:
            log.debug("Skipping %s (%s)", ref.original, ref.location)
            continue
        planned.append((ref, disposition))
    return planned


async def _dispatch(
    resolvers: Resolvers,
    ref: RawReference,
    disposition: Disposition,
) -> ResolvedPin:
    match disposition:
        case Disposition.RESOLVE_IMAGE:
            resolver = resolvers.image
        case Disposition.RESOLVE_HTTP:
            resolver = resolvers.http
        case Disposition.RESOLVE_GIT:
            resolver = resolvers.git
        case Disposition.SKIP:
            raise ValueError(f"{ref.original} was planned although it is skipped")

    try:
        pin = await resolver.resolve(ref.original)
    except ResolutionError as exc:
        message = f"failed to resolve {ref.original} in {ref.location}: {exc}"
        raise PolicyGenerationError(message, reference=ref) from exc
    log.info("Pinned %s -> %s", ref.original, pin.attrs or pin.identifier)
    return pin


async def _resolve_all(
    planned: Sequence[tuple[RawReference, Disposition]],
    resolvers: Resolvers,
    concurrency: int,
) -> list[ResolvedPin]:
    semaphore = asyncio.Semaphore(concurrency)

    async def run(ref: RawReference, disposition: Disposition) -> ResolvedPin:
        async with semaphore:
            return await _dispatch(resolvers, ref, disposition)

    tasks = [asyncio.create_task(run(ref, disposition)) for ref, disposition in planned]
    if not tasks:
        return []
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # report the earliest failing reference in input order, not the first to finish
    for task in tasks:
        if task.cancelled():
            continue
        error = task.exception()
        if error is not None:
            raise error
    return [task.result() for task in tasks]


async def generate_policy(
    references: Iterable[RawReference],
    resolvers: Resolvers,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> PolicyResult:
    """Resolve every unique reference and build the policy document.

    Resolutions run concurrently, but rules keep the first-seen order of their
    originals. The first fatal error cancels the outstanding resolutions and is
    raised as :class:`PolicyGenerationError`; no partial document is returned.
    """

    if concurrency < 1:
        raise ValueError("Concurrency must be at least 1")

    planned = plan_references(references)
    log.info("Resolving %s unique source references", len(planned))
    pins = await _resolve_all(planned, resolvers, concurrency)

    rules: list[PolicyRule] = []
    warnings: list[VolatileContentWarning] = []
    for (ref, _), pin in zip(planned, pins, strict=True):
        rules.append(PolicyRule.convert(pin))
        if pin.volatility is not None:
            warnings.append(
                VolatileContentWarning(url=pin.original, reason=pin.volatility, source=ref.location)
            )
    return PolicyResult(document=PolicyDocument(rules=rules), warnings=warnings)


__all__ = [
    "DEFAULT_CONCURRENCY",
    "PolicyResult",
    "Resolvers",
    "generate_policy",
    "plan_references",
]

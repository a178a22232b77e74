"""Response-header analysis: content negotiation and cacheability."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING

import httpx

from source_policy.domain.policy import HTTP_HEADER_ATTR_PREFIX

if TYPE_CHECKING:
    from collections.abc import Mapping

_NON_CACHEABLE_DIRECTIVES = ("no-store", "no-cache")


def _canonical_header_name(name: str) -> str:
    return "-".join(part.capitalize() for part in name.strip().split("-"))


def vary_header_attrs(
    response_headers: httpx.Headers,
    request_headers: Mapping[str, str],
) -> dict[str, str]:
    """Record the request-header values a negotiated response depends on.

    Every header listed in ``Vary`` that the build engine sends becomes an
    ``http.header.<Name>`` attribute holding the value that was sent.
    """

    sent = httpx.Headers(dict(request_headers))
    attrs: dict[str, str] = {}
    for name in response_headers.get_list("vary", split_commas=True):
        name = name.strip()
        if not name or name == "*":
            continue
        value = sent.get(name)
        if value is None:
            continue
        attrs[HTTP_HEADER_ATTR_PREFIX + _canonical_header_name(name)] = value
    return dict(sorted(attrs.items()))


def _cache_control(headers: httpx.Headers) -> dict[str, str | None]:
    directives: dict[str, str | None] = {}
    for item in headers.get_list("cache-control", split_commas=True):
        name, sep, value = item.strip().partition("=")
        if name:
            directives[name.strip().lower()] = value.strip().strip('"') if sep else None
    return directives


def _parse_http_date(value: str) -> datetime | None:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def volatility_reason(headers: httpx.Headers, *, now: datetime) -> str | None:
    """Return why the response is non-cacheable or already expired, else ``None``."""

    directives = _cache_control(headers)
    for directive in _NON_CACHEABLE_DIRECTIVES:
        if directive in directives:
            return f"Cache-Control: {directive}"
    max_age = directives.get("max-age")
    if max_age is not None:
        if max_age.strip() == "0":
            return "Cache-Control: max-age=0"
        # an explicit max-age overrides Expires
        return None

    expires = headers.get("expires")
    if expires is None:
        return None
    expires_at = _parse_http_date(expires)
    if expires_at is None:
        return f"Expires: {expires} (invalid date, already expired)"
    date_header = headers.get("date")
    reference = (_parse_http_date(date_header) if date_header else None) or now
    if expires_at <= reference:
        return f"Expires: {expires} (already expired)"
    return None


__all__ = ["vary_header_attrs", "volatility_reason"]

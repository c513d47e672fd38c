"""
HTTP validators for badge responses.

The entity tag is ``"<normalized username>-<last modified epoch ms>"`` and
``Last-Modified`` carries the same instant at second precision. When a request
sends ``If-None-Match`` it is evaluated on its own and ``If-Modified-Since`` is
ignored, as RFC 7232 requires.
"""
from __future__ import annotations

from datetime import timezone
from email.utils import formatdate, parsedate_to_datetime

from .cache import DEFAULT_TTL, normalize_username


def make_etag(username: str, last_modified: int) -> str:
    return f'"{normalize_username(username)}-{last_modified}"'


def format_http_date(last_modified: int) -> str:
    return formatdate(last_modified / 1000, usegmt=True)


def _etag_matches(if_none_match: str, etag: str) -> bool:
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == etag:
            return True
    return False


def _parse_http_date(value: str) -> int | None:
    """Return the epoch second of an HTTP date, or ``None`` if unparseable."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def is_not_modified(
    if_none_match: str | None,
    if_modified_since: str | None,
    username: str,
    last_modified: int,
) -> bool:
    """True when the client's cached copy is still current and a 304 applies."""
    if if_none_match:
        return _etag_matches(if_none_match, make_etag(username, last_modified))
    if if_modified_since:
        client_seconds = _parse_http_date(if_modified_since)
        if client_seconds is None:
            return False
        return client_seconds >= last_modified // 1000
    return False


def badge_cache_headers(
    username: str,
    last_modified: int,
    ttl: int = DEFAULT_TTL,
) -> dict[str, str]:
    """CDN-friendly caching headers for a badge response."""
    return {
        "Content-Type": "image/svg+xml; charset=utf-8",
        "Cache-Control": f"public, max-age={ttl}, s-maxage={ttl}",
        "CDN-Cache-Control": f"max-age={ttl}",
        "Surrogate-Control": f"max-age={ttl}",
        "ETag": make_etag(username, last_modified),
        "Last-Modified": format_http_date(last_modified),
    }

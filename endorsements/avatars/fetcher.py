from __future__ import annotations

import asyncio
import base64
import logging
from urllib.parse import quote

import httpx

from .config import DEFAULT_AVATAR_CONFIG, AvatarConfig

logger = logging.getLogger(__name__)

_DEFAULT_AVATAR_SVG = """\
<svg width="30" height="30" viewBox="0 0 30 30" fill="none" xmlns="http://www.w3.org/2000/svg">
<circle cx="15" cy="15" r="15" fill="#f0f0f0"/>
<circle cx="15" cy="15" r="12" fill="#ccc"/>
</svg>"""

DEFAULT_AVATAR_DATA_URI = "data:image/svg+xml;base64," + base64.b64encode(
    _DEFAULT_AVATAR_SVG.encode("utf-8")
).decode("ascii")


class AvatarFetchError(Exception):
    """Base class for every way an avatar fetch can fail."""


class AvatarFetchTimeout(AvatarFetchError):
    pass


class AvatarTooManyRedirects(AvatarFetchError):
    pass


class AvatarFetchFailed(AvatarFetchError):
    def __init__(self, status_code: int, url: str = "") -> None:
        super().__init__(f"Failed to fetch avatar: HTTP {status_code} {url}".strip())
        self.status_code = status_code


def avatar_url_for(username: str | None, config: AvatarConfig = DEFAULT_AVATAR_CONFIG) -> str:
    """Return the avatar URL for a username, ``unknown`` when missing."""
    handle = username or "unknown"
    return f"{config.base_url.rstrip('/')}/{quote(handle, safe='')}.png"


def make_avatar_client(
    config: AvatarConfig = DEFAULT_AVATAR_CONFIG,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the HTTP client used for avatar fetches."""
    return httpx.AsyncClient(
        timeout=config.timeout,
        follow_redirects=True,
        max_redirects=config.max_redirects,
        transport=transport,
    )


async def fetch_avatar_data_uri(
    url: str,
    client: httpx.AsyncClient | None = None,
    config: AvatarConfig = DEFAULT_AVATAR_CONFIG,
) -> str:
    """
    Fetch ``url`` and return it as ``data:<content-type>;base64,<payload>``.

    Redirects (absolute or relative) are followed up to
    ``config.max_redirects``. Raises an :class:`AvatarFetchError` subclass on
    timeout, too many redirects, a non-2xx final response or a network error.
    """
    if client is None:
        async with make_avatar_client(config) as own_client:
            return await fetch_avatar_data_uri(url, own_client, config)

    try:
        response = await client.get(
            url,
            headers={"User-Agent": config.user_agent, "Accept": config.accept},
            follow_redirects=True,
        )
    except httpx.TimeoutException as exc:
        raise AvatarFetchTimeout(f"Request timeout: {url}") from exc
    except httpx.TooManyRedirects as exc:
        raise AvatarTooManyRedirects(f"Too many redirects: {url}") from exc
    except httpx.HTTPError as exc:
        raise AvatarFetchError(f"Network error fetching {url}: {exc}") from exc

    for hop in response.history:
        logger.debug("Redirected from %s to %s", hop.url, hop.headers.get("location"))

    if not response.is_success:
        raise AvatarFetchFailed(response.status_code, url)

    content_type = response.headers.get("content-type") or config.default_content_type
    payload = base64.b64encode(response.content).decode("ascii")
    return f"data:{content_type};base64,{payload}"


async def fetch_avatar_or_default(
    url: str,
    client: httpx.AsyncClient | None = None,
    config: AvatarConfig = DEFAULT_AVATAR_CONFIG,
) -> str:
    """Like :func:`fetch_avatar_data_uri` but returns the placeholder on failure."""
    try:
        return await fetch_avatar_data_uri(url, client, config)
    except AvatarFetchError as exc:
        logger.warning("Failed to fetch avatar %s: %s", url, exc)
        return DEFAULT_AVATAR_DATA_URI


async def fetch_avatars(
    urls: list[str],
    config: AvatarConfig = DEFAULT_AVATAR_CONFIG,
) -> list[str]:
    """Fetch every avatar concurrently, returning data URIs in input order."""
    if not urls:
        return []
    async with make_avatar_client(config) as client:
        return list(
            await asyncio.gather(
                *(fetch_avatar_or_default(url, client, config) for url in urls)
            )
        )

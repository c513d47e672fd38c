from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..badge.renderer import RenderedBadge, render_badge
from .models import RecommendationRow

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300  # 5 minutes

FetchRows = Callable[[str], Awaitable[list[RecommendationRow]]]
Render = Callable[[str, list[RecommendationRow]], Awaitable[RenderedBadge]]


@dataclass(frozen=True)
class CacheEntry:
    markup: str
    last_modified: int  # epoch milliseconds
    expires_at: float  # epoch seconds

    @property
    def badge(self) -> RenderedBadge:
        return RenderedBadge(markup=self.markup, last_modified=self.last_modified)


def normalize_username(username: str) -> str:
    return username.strip().casefold()


class RenderCacheStore:
    """
    Rendered badges and in-flight renders, keyed by normalized username.

    One instance lives for the whole process. Every mutation happens between
    awaits on the event loop, so no locking is needed.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._pending: dict[str, asyncio.Task[RenderedBadge]] = {}
        self._hits = 0
        self._misses = 0
        self._coalesced = 0

    # ── Rendered badges ──────────────────────────────────────────────────

    def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry and self._clock() < entry.expires_at:
            self._hits += 1
            return entry
        if entry:
            del self._entries[key]
        self._misses += 1
        return None

    def set(self, key: str, badge: RenderedBadge) -> CacheEntry:
        entry = CacheEntry(
            markup=badge.markup,
            last_modified=badge.last_modified,
            expires_at=self._clock() + self.ttl,
        )
        self._entries[key] = entry
        return entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate(self, username: str) -> None:
        """Drop the cached badge for ``username``. In-flight renders are left alone."""
        key = normalize_username(username)
        if key in self._entries:
            logger.info("[%s] Cache invalidated", username)
        self.delete(key)

    # ── In-flight renders ────────────────────────────────────────────────

    def get_pending(self, key: str) -> asyncio.Task[RenderedBadge] | None:
        return self._pending.get(key)

    def set_pending(self, key: str, task: asyncio.Task[RenderedBadge]) -> None:
        self._pending[key] = task

    def delete_pending(self, key: str, task: asyncio.Task[RenderedBadge] | None = None) -> None:
        if task is None or self._pending.get(key) is task:
            self._pending.pop(key, None)

    def record_coalesced(self) -> None:
        self._coalesced += 1

    # ── Housekeeping ─────────────────────────────────────────────────────

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "pending": len(self._pending),
            "hits": self._hits,
            "misses": self._misses,
            "coalesced": self._coalesced,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }

    def clear(self) -> None:
        self._entries.clear()
        self._pending.clear()
        self._hits = 0
        self._misses = 0
        self._coalesced = 0


async def _render_and_store(
    store: RenderCacheStore,
    key: str,
    username: str,
    fetch_rows: FetchRows,
    render: Render,
) -> RenderedBadge:
    rows = await fetch_rows(username)
    logger.info("[%s] Found %d recommendations", username, len(rows))
    badge = await render(username, rows)
    store.set(key, badge)
    return badge


async def get_or_render(
    store: RenderCacheStore,
    username: str,
    fetch_rows: FetchRows,
    render: Render = render_badge,
) -> RenderedBadge:
    """
    Return the badge for ``username``, rendering it at most once at a time.

    A live cache entry is returned without any I/O. Otherwise concurrent
    callers for the same username share one ``fetch_rows`` + ``render``
    computation and all observe its result or its exception. Nothing is
    cached when the computation fails.
    """
    username = username.strip()
    key = normalize_username(username)

    entry = store.get(key)
    if entry is not None:
        logger.debug("[%s] Memory cache HIT", username)
        return entry.badge

    task = store.get_pending(key)
    if task is not None:
        logger.info("[%s] Render already in progress, waiting for result", username)
        store.record_coalesced()
        return await asyncio.shield(task)

    logger.info("[%s] Starting new badge render", username)
    task = asyncio.create_task(_render_and_store(store, key, username, fetch_rows, render))
    store.set_pending(key, task)

    def _release(done: asyncio.Task[RenderedBadge]) -> None:
        store.delete_pending(key, done)
        # Marks a failure as retrieved when every waiter has gone away.
        if not done.cancelled() and done.exception() is not None:
            logger.warning("[%s] Badge render failed: %r", username, done.exception())

    task.add_done_callback(_release)
    # Shielded so a disconnecting caller cannot cancel a render others await.
    return await asyncio.shield(task)

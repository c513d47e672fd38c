from __future__ import annotations

import html
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from ..avatars.fetcher import avatar_url_for, fetch_avatars
from ..layout.text import count_lines, split_text_into_lines
from ..recommendations.models import RecommendationRow
from .config import DEFAULT_BADGE_CONFIG, BadgeConfig

logger = logging.getLogger(__name__)

_FONT = "-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif"

_BADGE_STYLE = f"""\
      <style>
        .header {{ font-family: {_FONT}; font-size: 16px; font-weight: bold; fill: #333; }}
        .name {{ font-family: {_FONT}; font-size: 14px; font-weight: bold; fill: #0366d6; }}
        .username {{ font-family: {_FONT}; font-size: 12px; fill: #586069; }}
        .date {{ font-family: {_FONT}; font-size: 10px; fill: #586069; }}
        .text {{ font-family: {_FONT}; font-size: 11px; fill: #333; font-style: italic; }}
        .bg {{ fill: #f6f8fa; stroke: #e1e4e8; stroke-width: 1; }}
      </style>"""

_ERROR_STYLE = f"""\
      <style>
        .error {{ font-family: {_FONT}; font-size: 14px; fill: #d73a49; }}
        .bg {{ fill: #ffeef0; stroke: #d73a49; stroke-width: 1; }}
      </style>"""


@dataclass(frozen=True)
class RenderedBadge:
    markup: str
    last_modified: int  # epoch milliseconds


@dataclass(frozen=True)
class EntryLayout:
    top: int
    avatar_center_y: int
    lines: tuple[str, ...]
    height: int


@dataclass(frozen=True)
class BadgeLayout:
    header_height: int
    entries: tuple[EntryLayout, ...]
    height: int


def escape_markup(value: object) -> str:
    """Escape ``& < > " '`` for safe use in SVG text and attribute values."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def compute_last_modified(rows: list[RecommendationRow]) -> int:
    """Most recent ``created_at`` in epoch ms, or now when there are no rows."""
    if not rows:
        return int(time.time() * 1000)
    newest = max(_to_utc(row.created_at) for row in rows)
    return int(newest.timestamp() * 1000)


def _entry_lines(text: str | None, config: BadgeConfig) -> tuple[str, ...]:
    if not text:
        return ()
    budget = count_lines(text, config.text_max_length)
    return tuple(split_text_into_lines(text, config.text_max_length, budget))


def compute_layout(
    rows: list[RecommendationRow],
    config: BadgeConfig = DEFAULT_BADGE_CONFIG,
) -> BadgeLayout:
    """
    Sizing pass: wrap every entry's text and place it vertically.

    The returned layout is the only source of geometry for the drawing pass,
    so the document height always matches what gets drawn.
    """
    y = config.header_height + config.entry_gap
    entries: list[EntryLayout] = []
    for row in rows:
        lines = _entry_lines(row.recommendation_text, config)
        height = config.base_entry_height + max(0, (len(lines) - 1) * config.line_height)
        entries.append(EntryLayout(
            top=y,
            avatar_center_y=y + config.avatar_offset_y,
            lines=lines,
            height=height,
        ))
        y += height
    return BadgeLayout(
        header_height=config.header_height,
        entries=tuple(entries),
        height=y,
    )


def _display_name(row: RecommendationRow, config: BadgeConfig) -> str:
    name = row.name or row.username or "Unknown User"
    if len(name) > config.name_max_length:
        return name[: config.name_truncate_to] + "..."
    return name


def _format_date(dt: datetime) -> str:
    # ko-KR short date, e.g. "2024. 3. 7."
    utc = _to_utc(dt)
    return f"{utc.year}. {utc.month}. {utc.day}."


def _quote_lines(lines: tuple[str, ...]) -> list[tuple[int, str]]:
    """Return ``(line_index, text)`` for non-blank lines with quotes applied."""
    non_blank = [i for i, line in enumerate(lines) if line.strip()]
    if not non_blank:
        return []
    first, last = non_blank[0], non_blank[-1]
    quoted: list[tuple[int, str]] = []
    for i in non_blank:
        line = lines[i]
        if first == last:
            line = f'"{line}"'
        elif i == first:
            line = f'"{line}'
        elif i == last:
            line = f'{line}"'
        quoted.append((i, line))
    return quoted


def _draw_entry(
    index: int,
    row: RecommendationRow,
    entry: EntryLayout,
    avatar_data_uri: str,
    config: BadgeConfig,
) -> list[str]:
    cy = entry.avatar_center_y
    r = config.avatar_radius
    text_x = config.text_x
    handle = row.username or "unknown"

    parts = [
        f'<image x="{config.avatar_x}" y="{cy - r}" width="{config.avatar_size}" '
        f'height="{config.avatar_size}" href="{escape_markup(avatar_data_uri)}" '
        f'clip-path="url(#avatarClip{index})"/>',
        f'<circle cx="{config.avatar_x + r}" cy="{cy}" r="{r}" fill="none" '
        f'stroke="#ddd" stroke-width="1"/>',
        f'<text x="{text_x}" y="{cy - 8}" class="name">'
        f"{escape_markup(_display_name(row, config))}</text>",
        f'<text x="{text_x}" y="{cy + 8}" class="username">@{escape_markup(handle)}</text>',
        f'<text x="{config.width - 20}" y="{cy - 8}" text-anchor="end" class="date">'
        f"{escape_markup(_format_date(row.created_at))}</text>",
    ]
    for line_index, line in _quote_lines(entry.lines):
        line_y = cy + 25 + line_index * config.line_height
        parts.append(
            f'<text x="{text_x}" y="{line_y}" class="text">{escape_markup(line)}</text>'
        )
    return parts


def draw_badge(
    username: str,
    rows: list[RecommendationRow],
    layout: BadgeLayout,
    avatars: list[str],
    config: BadgeConfig = DEFAULT_BADGE_CONFIG,
) -> str:
    """Drawing pass: emit the SVG document for an already computed layout."""
    width, height = config.width, layout.height
    r = config.avatar_radius
    timestamp = int(time.time() * 1000)
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    parts = [
        f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg" '
        f'xmlns:xlink="http://www.w3.org/1999/xlink" data-timestamp="{timestamp}" '
        f'data-random="{secrets.token_hex(4)}">',
        "    <defs>",
        _BADGE_STYLE,
    ]
    for index, entry in enumerate(layout.entries):
        parts.append(
            f'<clipPath id="avatarClip{index}"><circle cx="{config.avatar_x + r}" '
            f'cy="{entry.avatar_center_y}" r="{r}"/></clipPath>'
        )
    parts += [
        "    </defs>",
        f'    <rect width="{width}" height="{height}" rx="6" class="bg"/>',
        f'    <text x="20" y="25" class="header">Endorsements for @{escape_markup(username)}</text>',
        f'    <text x="20" y="45" class="date" opacity="0.7">Generated: {escape_markup(generated)}</text>',
    ]
    for index, (row, entry, avatar) in enumerate(zip(rows, layout.entries, avatars)):
        parts.extend(_draw_entry(index, row, entry, avatar, config))
    parts.append("</svg>")
    return "\n".join(parts)


async def render_badge(
    username: str,
    rows: list[RecommendationRow],
    config: BadgeConfig = DEFAULT_BADGE_CONFIG,
) -> RenderedBadge:
    """Render the full badge for ``username`` from its recency-ordered rows."""
    layout = compute_layout(rows, config)
    avatars = await fetch_avatars([avatar_url_for(row.username) for row in rows])
    markup = draw_badge(username, rows, layout, avatars, config)
    logger.info("Rendered badge for %s: %d entries, height %d", username, len(rows), layout.height)
    return RenderedBadge(markup=markup, last_modified=compute_last_modified(rows))


def render_error_badge(message: str, config: BadgeConfig = DEFAULT_BADGE_CONFIG) -> str:
    """Fixed-size badge carrying a single generic error message."""
    w, h = config.error_width, config.error_height
    return "\n".join([
        f'<svg width="{w}" height="{h}" xmlns="http://www.w3.org/2000/svg">',
        "    <defs>",
        _ERROR_STYLE,
        "    </defs>",
        f'    <rect width="{w}" height="{h}" rx="6" class="bg"/>',
        f'    <text x="20" y="30" class="error">Error: {escape_markup(message)}</text>',
        "</svg>",
    ])

from __future__ import annotations

import asyncio
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx

from endorsements.avatars.fetcher import DEFAULT_AVATAR_DATA_URI
from endorsements.badge.renderer import (
    compute_last_modified,
    compute_layout,
    escape_markup,
    render_badge,
    render_error_badge,
)
from endorsements.recommendations.models import RecommendationRow

SVG_NS = "{http://www.w3.org/2000/svg}"
CREATED = datetime(2024, 3, 7, 12, 30, tzinfo=timezone.utc)


async def _placeholder_avatars(urls, config=None):
    return [DEFAULT_AVATAR_DATA_URI for _ in urls]


def _row(text=None, username="octocat", name="The Octocat", created_at=CREATED):
    return RecommendationRow(
        username=username,
        name=name,
        created_at=created_at,
        recommendation_text=text,
    )


def _render(username, rows):
    with patch("endorsements.badge.renderer.fetch_avatars", new=_placeholder_avatars):
        return asyncio.run(render_badge(username, rows))


def _texts(markup, css_class):
    root = ET.fromstring(markup)
    return [
        el for el in root.iter(f"{SVG_NS}text")
        if el.get("class") == css_class
    ]


def _strip_nonces(markup):
    markup = re.sub(r'data-timestamp="\d+"', "", markup)
    markup = re.sub(r'data-random="[0-9a-f]+"', "", markup)
    return re.sub(r"Generated: [^<]*", "", markup)


# ── Layout ───────────────────────────────────────────────────────────────


class TestLayout:
    def test_no_rows_is_header_plus_gap(self):
        assert compute_layout([]).height == 100

    def test_entry_without_text_uses_base_height(self):
        layout = compute_layout([_row(None)])
        assert layout.entries[0].height == 80
        assert layout.height == 180

    def test_multiline_entry_grows_by_line_height(self):
        layout = compute_layout([_row("one\n\ntwo")])
        assert layout.entries[0].lines == ("one", "", "two")
        assert layout.entries[0].height == 80 + 2 * 12

    def test_entries_stack_vertically(self):
        layout = compute_layout([_row("a\nb"), _row("c")])
        first, second = layout.entries
        assert first.top == 100
        assert first.avatar_center_y == 125
        assert second.top == first.top + first.height
        assert layout.height == 100 + first.height + second.height

    def test_layout_is_deterministic(self):
        rows = [_row("x " * 80), _row("para\n\npara")]
        assert compute_layout(rows) == compute_layout(rows)


# ── Rendering ────────────────────────────────────────────────────────────


class TestRenderBadge:
    def test_empty_badge(self):
        badge = _render("octocat", [])
        root = ET.fromstring(badge.markup)
        assert root.get("height") == "100"
        assert root.get("width") == "400"
        assert _texts(badge.markup, "header")[0].text == "Endorsements for @octocat"
        assert _texts(badge.markup, "name") == []

    def test_height_attribute_matches_layout(self):
        rows = [_row("word " * 50), _row(None), _row("a\n\nb\n\nc")]
        badge = _render("octocat", rows)
        root = ET.fromstring(badge.markup)
        assert root.get("height") == str(compute_layout(rows).height)

    def test_single_long_word_is_truncated_and_quoted(self):
        badge = _render("octocat", [_row("a" * 56)])
        lines = [el.text for el in _texts(badge.markup, "text")]
        assert lines == ['"' + "a" * 52 + '..."']
        assert ET.fromstring(badge.markup).get("height") == "180"

    def test_two_paragraph_quotes_and_separator(self):
        badge = _render("octocat", [_row("First paragraph.\n\nSecond paragraph.")])
        texts = _texts(badge.markup, "text")
        assert [el.text for el in texts] == ['"First paragraph.', 'Second paragraph."']
        # Blank separator line occupies the middle slot without a text element
        first_y, second_y = (int(el.get("y")) for el in texts)
        assert second_y - first_y == 2 * 12

    def test_middle_lines_are_unquoted(self):
        badge = _render("octocat", [_row("one\ntwo\nthree")])
        assert [el.text for el in _texts(badge.markup, "text")] == ['"one', "two", 'three"']

    def test_name_handle_and_date(self):
        badge = _render("octocat", [_row("hi", username="mona", name="Mona Lisa")])
        assert _texts(badge.markup, "name")[0].text == "Mona Lisa"
        assert _texts(badge.markup, "username")[0].text == "@mona"
        date = [el for el in _texts(badge.markup, "date") if el.get("text-anchor") == "end"]
        assert date[0].text == "2024. 3. 7."

    def test_long_name_is_truncated(self):
        badge = _render("octocat", [_row("hi", name="A" * 21)])
        assert _texts(badge.markup, "name")[0].text == "A" * 17 + "..."

    def test_name_falls_back_to_username_then_unknown(self):
        badge = _render("octocat", [_row(name=None), _row(username=None, name=None)])
        names = [el.text for el in _texts(badge.markup, "name")]
        handles = [el.text for el in _texts(badge.markup, "username")]
        assert names == ["octocat", "Unknown User"]
        assert handles == ["@octocat", "@unknown"]

    def test_entries_keep_input_order(self):
        rows = [_row("x", username="first"), _row("y", username="second")]
        badge = _render("octocat", rows)
        handles = [el.text for el in _texts(badge.markup, "username")]
        assert handles == ["@first", "@second"]

    def test_one_clip_path_and_avatar_per_entry(self):
        badge = _render("octocat", [_row("a"), _row("b")])
        root = ET.fromstring(badge.markup)
        clips = list(root.iter(f"{SVG_NS}clipPath"))
        images = list(root.iter(f"{SVG_NS}image"))
        assert [c.get("id") for c in clips] == ["avatarClip0", "avatarClip1"]
        assert [i.get("clip-path") for i in images] == ["url(#avatarClip0)", "url(#avatarClip1)"]
        assert images[0].get("href") == DEFAULT_AVATAR_DATA_URI

    def test_render_is_idempotent_apart_from_nonces(self):
        rows = [_row("Great reviewer.\n\nAlways helpful."), _row(None)]
        first = _render("octocat", rows)
        second = _render("octocat", rows)
        assert _strip_nonces(first.markup) == _strip_nonces(second.markup)
        assert first.last_modified == second.last_modified


# ── Escaping ─────────────────────────────────────────────────────────────


class TestEscaping:
    PAYLOAD = "<script>alert(1)</script>&\"'"

    def test_escape_markup(self):
        assert escape_markup("<a href=\"x\">'&'</a>") == (
            "&lt;a href=&quot;x&quot;&gt;&#x27;&amp;&#x27;&lt;/a&gt;"
        )
        assert escape_markup(None) == ""

    def test_dynamic_content_is_escaped(self):
        row = _row(self.PAYLOAD, username=self.PAYLOAD, name=self.PAYLOAD)
        badge = _render(self.PAYLOAD, [row])
        assert "<script>" not in badge.markup
        # Still well-formed, and the text round-trips through the parser
        assert _texts(badge.markup, "header")[0].text == f"Endorsements for @{self.PAYLOAD}"
        assert _texts(badge.markup, "username")[0].text == f"@{self.PAYLOAD}"
        assert _texts(badge.markup, "text")[0].text == f'"{self.PAYLOAD}"'

    def test_error_badge_escapes_message(self):
        svg = render_error_badge("<b>boom</b>")
        root = ET.fromstring(svg)
        assert root.get("width") == "400"
        assert root.get("height") == "100"
        assert "<b>" not in svg
        assert _texts(svg, "error")[0].text == "Error: <b>boom</b>"


# ── Last modified / avatars ──────────────────────────────────────────────


def test_last_modified_is_newest_row():
    older = _row(created_at=CREATED - timedelta(days=1))
    newer = _row(created_at=CREATED)
    assert compute_last_modified([older, newer]) == int(CREATED.timestamp() * 1000)


def test_last_modified_without_rows_is_now():
    before = int(datetime.now(timezone.utc).timestamp() * 1000)
    assert compute_last_modified([]) >= before


def test_avatar_timeout_does_not_block_siblings():
    def handler(request):
        if request.url.path == "/slow.png":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, content=b"img", headers={"Content-Type": "image/png"})

    def client_factory(config=None, transport=None):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)

    rows = [_row("a", username="slow"), _row("b", username="fast")]
    with patch("endorsements.avatars.fetcher.make_avatar_client", new=client_factory):
        badge = asyncio.run(render_badge("octocat", rows))

    images = list(ET.fromstring(badge.markup).iter(f"{SVG_NS}image"))
    assert images[0].get("href") == DEFAULT_AVATAR_DATA_URI
    assert images[1].get("href") == "data:image/png;base64,aW1n"
    assert [el.text for el in _texts(badge.markup, "username")] == ["@slow", "@fast"]

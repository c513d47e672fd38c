from __future__ import annotations

import re
from itertools import islice
from typing import Iterator

_PARAGRAPH_SEPARATOR = re.compile(r"\n\s*\n")
_ELLIPSIS = "..."


def _paragraph_lines(paragraph: str) -> list[str]:
    """Return the non-blank raw lines of a paragraph, trimmed."""
    return [line.strip() for line in paragraph.split("\n") if line.strip()]


def _truncate_word(word: str, max_line_length: int) -> str:
    return word[: max(0, max_line_length - len(_ELLIPSIS))] + _ELLIPSIS


def _wrap_line(line: str, max_line_length: int) -> Iterator[str]:
    if len(line) <= max_line_length:
        yield line
        return

    current = ""
    for word in line.split(" "):
        if len(word) > max_line_length:
            if current:
                yield current
            yield _truncate_word(word, max_line_length)
            current = ""
            continue

        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_line_length:
            current = candidate
        else:
            yield current
            current = word

    if current:
        yield current


def iter_lines(text: str | None, max_line_length: int) -> Iterator[str]:
    """
    Yield the display lines for ``text``.

    Paragraphs are separated by one or more blank lines. Each non-empty
    paragraph contributes its wrapped lines, and consecutive paragraphs are
    separated by a single empty string which occupies a line without
    rendering any text.
    """
    if not text:
        return

    paragraphs = [
        lines
        for lines in (_paragraph_lines(p) for p in _PARAGRAPH_SEPARATOR.split(text))
        if lines
    ]
    for index, lines in enumerate(paragraphs):
        if index > 0:
            yield ""
        for line in lines:
            yield from _wrap_line(line, max_line_length)


def count_lines(text: str | None, max_line_length: int) -> int:
    """Return how many lines ``iter_lines`` produces, without keeping them."""
    return sum(1 for _ in iter_lines(text, max_line_length))


def split_text_into_lines(
    text: str | None,
    max_line_length: int,
    max_lines: int | None = None,
) -> list[str]:
    """
    Split ``text`` into at most ``max_lines`` display lines.

    When ``max_lines`` is omitted the budget is computed with
    :func:`count_lines`, so sizing and drawing passes that share a budget
    always agree.
    """
    if max_lines is None:
        max_lines = count_lines(text, max_line_length)
    return list(islice(iter_lines(text, max_line_length), max(0, max_lines)))

"""Text cleanup helpers applied to verse content at the fetch boundary."""

from __future__ import annotations

import re

_SUP_MARKER = re.compile(r"<sup[^>]*>\*</sup>")
_FOOTNOTE = re.compile(r'<i class="footnote">(.*?)</i>', re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")

NOTE_TEMPLATE = (
    '<span class="sefaria-note-wrapper">'
    '<span class="sefaria-note-trigger">*</span>'
    '<span class="sefaria-note-content">{note}</span>'
    "</span>"
)


def clean_html(text: str) -> str:
    """Return ``text`` with every tag removed and surrounding whitespace trimmed."""

    return _TAG.sub("", text or "").strip()


def _inline_note(match: re.Match) -> str:
    note = _WHITESPACE.sub(" ", _TAG.sub(" ", match.group(1))).strip()
    return NOTE_TEMPLATE.format(note=note)


def process_text(html: str | None) -> str:
    """Drop ``<sup>*</sup>`` markers and turn footnotes into inline note spans."""

    if not html:
        return ""
    cleaned = _SUP_MARKER.sub("", html)
    return _FOOTNOTE.sub(_inline_note, cleaned)


def contains_hebrew(text: str) -> bool:
    if not text:
        return False
    return any("\u0590" <= char <= "\u05FF" for char in text)

"""Reference (locator) model for the reader.

Canonical locators are dot separated: ``Genesis.1.1`` (chapter/verse) or
``Bava_Metzia.2a.5`` (daf/line). Legacy and display forms such as
``Genesis 1:1`` or ``Bava Metzia 2a:5`` are accepted by :func:`parse` and
normalised to the dotted form first. Multi-word book names use underscores in
the canonical form and spaces in the display form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple


class StructureType(str, Enum):
    CHAPTER_VERSE = "CHAPTER_VERSE"
    DAF_LINE = "DAF_LINE"
    SIMAN_SEIF = "SIMAN_SEIF"
    NAMED_SECTION = "NAMED_SECTION"


# Folio 1 does not exist in the printed Talmud; 2a is the first addressable amud.
FIRST_DAF = 2

# Sort position of sections that cannot be parsed.
UNPARSABLE_SECTION = 1 << 30

_DAF_SECTION = re.compile(r"(\d+)([ab])")
_DAF_SUFFIX = re.compile(r"[0-9]+[ab]$")
_LEGACY_SPLIT = re.compile(r"^(.*?\D)\s+(\d.*)$")


@dataclass(slots=True, frozen=True)
class ParsedRef:
    """Structured representation of a locator."""

    book: str
    section: Optional[str] = None
    segment: Optional[str] = None

    @property
    def section_ref(self) -> str:
        """``Book.Section`` (or just the book when there is no section)."""
        if not self.section:
            return self.book
        return f"{self.book}.{self.section}"

    def to_ref(self) -> str:
        parts = [self.book]
        if self.section:
            parts.append(self.section)
            if self.segment:
                parts.append(self.segment)
        return ".".join(parts)


def normalize(ref: str) -> str:
    """Return the dotted canonical form of ``ref``.

    ``"Genesis 1:1"`` -> ``"Genesis.1.1"``; ``"Bava Metzia 2a"`` ->
    ``"Bava_Metzia.2a"``; ``"Bava Metzia"`` -> ``"Bava_Metzia"``. Refs that
    are already dotted only have stray colons converted.
    """

    if not ref:
        return ""
    text = ref.strip()
    if re.search(r"\s", text):
        match = _LEGACY_SPLIT.match(text)
        if match:
            book = re.sub(r"\s+", "_", match.group(1).strip())
            locator = re.sub(r"[\s:]+", ".", match.group(2).strip())
            return f"{book}.{locator}"
        # No numeric locator: the whole string is a (multi-word) book title.
        return re.sub(r"\s+", "_", text)
    return text.replace(":", ".")


def parse(ref: str) -> ParsedRef:
    """Split a locator into book/section/segment. Purely syntactic."""

    if not ref:
        return ParsedRef(book="")
    parts = normalize(ref).split(".")
    return ParsedRef(
        book=parts[0] if parts else "",
        section=parts[1] if len(parts) > 1 and parts[1] else None,
        segment=parts[2] if len(parts) > 2 and parts[2] else None,
    )


def is_daf_section(section: Optional[str]) -> bool:
    return bool(section) and bool(_DAF_SUFFIX.search(section))


def detect_structure(section: Optional[str]) -> StructureType:
    """Best-effort structure guess from the shape of a section alone."""

    if is_daf_section(section):
        return StructureType.DAF_LINE
    return StructureType.CHAPTER_VERSE


def display_book(book: str) -> str:
    return book.replace("_", " ")


def to_display(ref: str) -> str:
    """Human readable form: ``Genesis 1:1``, ``Berakhot 2a:5``, ``Genesis``."""

    parsed = parse(ref)
    book = display_book(parsed.book)
    if not parsed.section:
        return book
    # Daf sections ("2a") and chapters ("1") share the "Book Section:Segment" layout.
    if parsed.segment:
        return f"{book} {parsed.section}:{parsed.segment}"
    return f"{book} {parsed.section}"


def chapter_ref(ref: str) -> str:
    """Canonical section-level locator: ``"Genesis 1:5"`` -> ``"Genesis.1"``."""

    return parse(ref).section_ref


def from_url_params(params: Sequence[str]) -> str:
    """Rebuild a locator from catch-all URL segments (``["Genesis", "1"]``)."""

    if not params:
        return ""
    return ".".join(params)


def _split_daf(section: str) -> Optional[Tuple[int, str]]:
    match = _DAF_SECTION.fullmatch(section.strip())
    if not match:
        return None
    return int(match.group(1)), match.group(2)


def _as_int(section: str) -> Optional[int]:
    try:
        return int(section.strip())
    except (TypeError, ValueError, AttributeError):
        return None


def next_section(section: str, structure_type: StructureType) -> Optional[str]:
    """Section following ``section``; ``None`` when it cannot be parsed."""

    if structure_type == StructureType.DAF_LINE:
        daf = _split_daf(section or "")
        if daf is None:
            return None
        num, side = daf
        if side == "a":
            return f"{num}b"
        return f"{num + 1}a"

    num = _as_int(section)
    return None if num is None else str(num + 1)


def prev_section(section: str, structure_type: StructureType) -> Optional[str]:
    """Section preceding ``section``; ``None`` at the start or when unparsable."""

    if structure_type == StructureType.DAF_LINE:
        daf = _split_daf(section or "")
        if daf is None:
            return None
        num, side = daf
        if side == "b":
            return f"{num}a"
        if num == FIRST_DAF:
            return None
        return f"{num - 1}b"

    num = _as_int(section)
    if num is None or num <= 1:
        return None
    return str(num - 1)


def next_ref(ref: str, structure_type: StructureType) -> Optional[str]:
    """Section-level locator after ``ref`` within the same book."""

    parsed = parse(ref)
    if not parsed.section:
        return None
    section = next_section(parsed.section, structure_type)
    return f"{parsed.book}.{section}" if section else None


def prev_ref(ref: str, structure_type: StructureType) -> Optional[str]:
    parsed = parse(ref)
    if not parsed.section:
        return None
    section = prev_section(parsed.section, structure_type)
    return f"{parsed.book}.{section}" if section else None


def same_ref(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two locators regardless of legacy/dotted spelling and book case."""

    if not left or not right:
        return False
    a, b = parse(left), parse(right)
    return (
        a.book.casefold() == b.book.casefold()
        and a.section == b.section
        and a.segment == b.segment
    )


def section_sort_key(section: Optional[str], structure_type: StructureType) -> Tuple[int, int]:
    """Ordering key for sections of one book; unparsable sections sort last."""

    if not section:
        return (0, 0)
    if structure_type == StructureType.DAF_LINE:
        daf = _split_daf(section)
        if daf is None:
            return (UNPARSABLE_SECTION, 0)
        num, side = daf
        return (num, 0 if side == "a" else 1)
    num = _as_int(section)
    return (num, 0) if num is not None else (UNPARSABLE_SECTION, 0)

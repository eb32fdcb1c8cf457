"""Chapter and verse records exchanged between the fetch service and the window."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .refs import StructureType


@dataclass(slots=True, frozen=True)
class PlainContent:
    """Legacy content shape: a single string holding the source-language text."""

    text: str

    @property
    def he(self) -> str:
        return self.text

    @property
    def en(self) -> str:
        return ""


@dataclass(slots=True, frozen=True)
class StructuredContent:
    """Current content shape with separate source and target layers."""

    he: str = ""
    en: str = ""
    marker: Optional[str] = None


VerseContent = Union[PlainContent, StructuredContent]


def resolve_content(raw: Any) -> VerseContent:
    """Resolve a raw verse payload (string or mapping) into a content variant."""

    if isinstance(raw, (PlainContent, StructuredContent)):
        return raw
    if raw is None:
        return StructuredContent()
    if isinstance(raw, str):
        return PlainContent(text=raw)
    if isinstance(raw, Mapping):
        he = raw.get("he")
        en = raw.get("en")
        if he is None and en is None and isinstance(raw.get("text"), str):
            return PlainContent(text=raw["text"])
        return StructuredContent(
            he=str(he or ""),
            en=str(en or ""),
            marker=raw.get("marker") or raw.get("parashaStart"),
        )
    raise TypeError(f"Unsupported verse content of type {type(raw).__name__}")


def _content_to_dict(content: VerseContent) -> Dict[str, Any]:
    if isinstance(content, PlainContent):
        return {"kind": "plain", "text": content.text}
    return {"kind": "structured", "he": content.he, "en": content.en, "marker": content.marker}


def _content_from_dict(data: Mapping[str, Any]) -> VerseContent:
    if data.get("kind") == "plain":
        return PlainContent(text=str(data.get("text") or ""))
    return resolve_content({k: v for k, v in data.items() if k != "kind"})


@dataclass(slots=True, frozen=True)
class Verse:
    id: str
    ref: str
    index: int
    content: VerseContent

    @property
    def he(self) -> str:
        return self.content.he

    @property
    def en(self) -> str:
        return self.content.en

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ref": self.ref,
            "index": self.index,
            "he": self.he,
            "en": self.en,
            "content": _content_to_dict(self.content),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Verse":
        raw_content = data.get("content")
        if isinstance(raw_content, Mapping) and "kind" in raw_content:
            content = _content_from_dict(raw_content)
        else:
            content = resolve_content({"he": data.get("he"), "en": data.get("en")})
        return cls(id=data["id"], ref=data["ref"], index=int(data["index"]), content=content)


@dataclass(slots=True, frozen=True)
class Chapter:
    """An immutable, fully fetched chapter (or daf side)."""

    id: str
    ref: str
    book: str
    chapter_number: int
    collection: Optional[str] = None
    verses: Tuple[Verse, ...] = field(default_factory=tuple)
    next_ref: Optional[str] = None
    prev_ref: Optional[str] = None
    active_translation: Optional[str] = None
    structure_type: StructureType = StructureType.CHAPTER_VERSE

    @property
    def has_next(self) -> bool:
        return bool(self.next_ref)

    @property
    def has_prev(self) -> bool:
        return bool(self.prev_ref)

    def with_translation(self, translation: str, verses: Tuple[Verse, ...]) -> "Chapter":
        """Return a new chapter carrying another translation layer."""
        return replace(self, active_translation=translation, verses=tuple(verses))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ref": self.ref,
            "book": self.book,
            "chapterNumber": self.chapter_number,
            "collection": self.collection,
            "verses": [verse.to_dict() for verse in self.verses],
            "nextRef": self.next_ref,
            "prevRef": self.prev_ref,
            "activeTranslation": self.active_translation,
            "structureType": self.structure_type.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Chapter":
        return cls(
            id=data["id"],
            ref=data["ref"],
            book=data["book"],
            chapter_number=int(data["chapterNumber"]),
            collection=data.get("collection"),
            verses=tuple(Verse.from_dict(item) for item in data.get("verses") or []),
            next_ref=data.get("nextRef") or None,
            prev_ref=data.get("prevRef") or None,
            active_translation=data.get("activeTranslation"),
            structure_type=StructureType(data.get("structureType") or StructureType.CHAPTER_VERSE.value),
        )

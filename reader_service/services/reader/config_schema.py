"""Typed view over the ``[reader]`` configuration section."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from config import get_config_section

DEFAULT_TRANSLATION = "jps-1985"


class SyncConfig(BaseModel):
    sentinel_margin_px: int = Field(default=1200, ge=0)
    visibility_top_percent: float = Field(default=20, ge=0, le=100)
    visibility_bottom_percent: float = Field(default=60, ge=0, le=100)


class ReaderConfig(BaseModel):
    default_translation: str = DEFAULT_TRANSLATION
    translations: Dict[str, str] = Field(
        default_factory=lambda: {
            "jps-1985": "Tanakh: The Holy Scriptures, published by JPS",
            "jps-1917": "The Holy Scriptures: A New Translation (JPS 1917)",
            "sefaria-community": "Sefaria Community Translation",
        }
    )
    cross_book_collections: List[str] = Field(
        default_factory=lambda: ["tanakh", "torah", "prophets", "writings"]
    )
    chapter_cache_ttl_seconds: int = Field(default=1800, ge=0)
    session_ttl_seconds: int = Field(default=86400, ge=0)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @field_validator("cross_book_collections", mode="before")
    def _normalize_collections(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [item for item in value.split(",")]
        if isinstance(value, list):
            return [str(item).strip().lower() for item in value if str(item).strip()]
        return value

    def allows_cross_book(self, collection: Optional[str]) -> bool:
        return bool(collection) and collection.lower() in self.cross_book_collections

    def version_title(self, translation_id: Optional[str]) -> str:
        """Map a translation slug to the version title the text API expects.

        Custom translation projects are identified by long opaque ids; their
        verses are overlaid on the default version, so that title is used.
        """

        slug = translation_id or self.default_translation
        if len(slug) > 20:
            return self.translations.get(self.default_translation, self.default_translation)
        return self.translations.get(slug, slug)


def load_reader_config(overrides: Optional[Mapping[str, Any]] = None) -> ReaderConfig:
    section = get_config_section("reader", {})
    data: Dict[str, Any] = dict(section) if isinstance(section, dict) else {}
    if overrides:
        data.update(overrides)
    return ReaderConfig(**data)

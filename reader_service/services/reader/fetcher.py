"""Chapter fetch service backed by a Sefaria-compatible text API."""

from __future__ import annotations

import json
import logging
from itertools import zip_longest
from typing import Any, Dict, List, Optional, Protocol, Tuple
from urllib.parse import quote

import httpx
from redis.exceptions import RedisError

from . import refs
from .config_schema import ReaderConfig
from .errors import FetchError
from .formatter import process_text
from .models import Chapter, PlainContent, StructuredContent, Verse
from .redis_repo import ReaderRedisRepository
from .refs import StructureType

logger = logging.getLogger(__name__)

_SECTION_NAMES = {
    "daf": StructureType.DAF_LINE,
    "chapter": StructureType.CHAPTER_VERSE,
    "perek": StructureType.CHAPTER_VERSE,
    "siman": StructureType.SIMAN_SEIF,
}


class ChapterFetcher(Protocol):
    """Anything that can resolve a locator into a full chapter."""

    async def fetch_chapter(self, ref: str, translation_id: Optional[str] = None) -> Optional[Chapter]:
        ...


def book_slug(book: str) -> str:
    return refs.display_book(book).strip().lower().replace(" ", "-")


def detect_structure_type(payload: Dict[str, Any], section: Optional[str]) -> StructureType:
    section_names = payload.get("sectionNames") or []
    if section_names:
        declared = _SECTION_NAMES.get(str(section_names[0]).lower())
        if declared is not None:
            return declared
    return refs.detect_structure(section)


def chapter_number_for(section: Optional[str], structure_type: StructureType) -> int:
    """Integer position of a section within its book.

    Daf sides are numbered the way the text API addresses them internally:
    ``2a`` -> 3, ``2b`` -> 4. Sections that cannot be parsed (named
    sections, malformed input) are 0.
    """

    if not section:
        return 0
    number, side = refs.section_sort_key(section, structure_type)
    if number >= refs.UNPARSABLE_SECTION:
        return 0
    if structure_type == StructureType.DAF_LINE:
        return number * 2 - 1 + side
    return number


def _flatten(value: Any) -> List[Any]:
    if isinstance(value, list):
        return [" ".join(map(str, item)) if isinstance(item, list) else item for item in value]
    return []


def _pick_version(payload: Dict[str, Any], language: str) -> Any:
    for version in payload.get("versions") or []:
        if version.get("language") == language and version.get("text"):
            return version.get("text")
    # v2 style payloads carry the layers directly
    return payload.get("he" if language == "he" else "text")


def build_verses(chapter_ref: str, display_ref: str, he_raw: Any, en_raw: Any) -> Tuple[Verse, ...]:
    """Merge the source and target layers into verse records."""

    if isinstance(he_raw, str) and not isinstance(en_raw, list):
        # Legacy single-blob payload
        return (
            Verse(
                id=f"{display_ref}:1",
                ref=f"{chapter_ref}.1",
                index=1,
                content=PlainContent(text=process_text(he_raw)),
            ),
        )

    he_lines = _flatten(he_raw)
    en_lines = _flatten(en_raw)
    verses: List[Verse] = []
    for idx, (he_line, en_line) in enumerate(zip_longest(he_lines, en_lines, fillvalue=""), start=1):
        verses.append(
            Verse(
                id=f"{display_ref}:{idx}",
                ref=f"{chapter_ref}.{idx}",
                index=idx,
                content=StructuredContent(
                    he=process_text(str(he_line or "")),
                    en=process_text(str(en_line or "")),
                ),
            )
        )
    return tuple(verses)


def chapter_from_payload(
    payload: Dict[str, Any],
    *,
    requested_ref: str,
    translation_id: Optional[str],
) -> Optional[Chapter]:
    """Convert a text API payload into a :class:`Chapter` (``None`` if empty)."""

    if not isinstance(payload, dict) or payload.get("error"):
        return None

    chapter_ref = refs.normalize(payload.get("ref") or requested_ref)
    parsed = refs.parse(chapter_ref)
    # Chapter granularity only: drop a segment if the API echoed one back.
    chapter_ref = parsed.section_ref
    book = payload.get("book") or refs.display_book(parsed.book)
    structure_type = detect_structure_type(payload, parsed.section)
    display_ref = refs.to_display(chapter_ref)

    verses = build_verses(
        chapter_ref,
        display_ref,
        _pick_version(payload, "he"),
        _pick_version(payload, "en"),
    )
    if not verses:
        return None

    categories = payload.get("categories") or []
    next_ref = payload.get("next")
    prev_ref = payload.get("prev")

    return Chapter(
        id=f"{book_slug(book)}.{parsed.section or ''}",
        ref=chapter_ref,
        book=book,
        chapter_number=chapter_number_for(parsed.section, structure_type),
        collection=categories[0] if categories else None,
        verses=verses,
        next_ref=refs.chapter_ref(next_ref) if next_ref else None,
        prev_ref=refs.chapter_ref(prev_ref) if prev_ref else None,
        active_translation=translation_id,
        structure_type=structure_type,
    )


class SefariaChapterFetcher:
    """Fetches chapters from ``{base_url}/v3/texts/{ref}``.

    Returns ``None`` when the reference does not resolve; raises
    :class:`FetchError` on transport failures and server errors so the
    window can release its busy flag and allow a later retry.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        config: ReaderConfig,
        *,
        api_key: Optional[str] = None,
        timeout: float = 20.0,
    ) -> None:
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._config = config
        self._api_key = api_key
        self._timeout = timeout

    def _params(self, translation_id: Optional[str]) -> List[Tuple[str, str]]:
        return [
            ("version", "hebrew"),
            ("version", f"english|{self._config.version_title(translation_id)}"),
        ]

    async def fetch_chapter(self, ref: str, translation_id: Optional[str] = None) -> Optional[Chapter]:
        # Chapters are always requested whole.
        canonical = refs.chapter_ref(ref)
        if not canonical:
            return None
        translation_id = translation_id or self._config.default_translation
        url = f"{self._base_url}/v3/texts/{quote(canonical)}"
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

        try:
            response = await self._client.get(
                url,
                params=self._params(translation_id),
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (400, 404):
                logger.info(f"Text API has no content for '{canonical}' ({e.response.status_code})")
                return None
            logger.error(f"Text API HTTP error for {url}: {e.response.status_code}")
            raise FetchError(f"HTTP error {e.response.status_code} for '{canonical}'", ref=canonical) from e
        except httpx.RequestError as e:
            logger.error(f"Text API request error for {url}: {e}")
            raise FetchError(f"Request error for '{canonical}': {e}", ref=canonical) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchError(f"Malformed response for '{canonical}'", ref=canonical) from e

        return chapter_from_payload(payload, requested_ref=canonical, translation_id=translation_id)


class CachedChapterFetcher:
    """Read-through Redis cache in front of another fetcher."""

    def __init__(self, inner: ChapterFetcher, repo: ReaderRedisRepository, *, ttl_seconds: int) -> None:
        self._inner = inner
        self._repo = repo
        self._ttl = ttl_seconds

    async def fetch_chapter(self, ref: str, translation_id: Optional[str] = None) -> Optional[Chapter]:
        canonical = refs.chapter_ref(ref)
        try:
            cached = await self._repo.fetch_chapter(canonical, translation_id)
            if cached:
                return Chapter.from_dict(json.loads(cached))
        except (RedisError, ValueError, KeyError) as e:
            logger.warning(f"Chapter cache read failed for '{canonical}': {e}")

        chapter = await self._inner.fetch_chapter(canonical, translation_id)
        if chapter is None:
            return None

        try:
            await self._repo.cache_chapter(
                canonical,
                translation_id,
                json.dumps(chapter.to_dict(), ensure_ascii=False),
                self._ttl,
            )
        except RedisError as e:
            logger.warning(f"Chapter cache write failed for '{canonical}': {e}")
        return chapter

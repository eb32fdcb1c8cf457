"""Chapter window: the ordered, contiguous run of chapters loaded in a reader.

The window only grows at its two ends. ``load_more`` appends the chapter
named by the last chapter's ``next_ref``; ``load_prev`` prepends the chapter
named by the first chapter's ``prev_ref``. Each end has its own busy flag, so
at most one forward and one backward fetch are in flight at any time.

All fetch failures are absorbed here and turned into state; nothing raised by
the fetch service reaches the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from . import logging as reader_logging
from . import refs
from .errors import ContiguityError
from .fetcher import ChapterFetcher
from .models import Chapter

logger = logging.getLogger(__name__)

FORWARD = "next"
BACKWARD = "prev"


class ChapterWindow:
    def __init__(
        self,
        initial_chapter: Chapter,
        fetcher: ChapterFetcher,
        *,
        active_translation: Optional[str] = None,
        cross_book_allowed: bool = False,
    ) -> None:
        self._fetcher = fetcher
        self._cross_book_allowed = cross_book_allowed
        self._active_translation = active_translation or initial_chapter.active_translation
        self._generation = 0
        self._chapters: List[Chapter] = []
        self._loading_next = False
        self._loading_prev = False
        self._has_more = False
        self._has_prev = False
        self.reset(initial_chapter)

    # -- state -----------------------------------------------------------

    @property
    def chapters(self) -> Tuple[Chapter, ...]:
        return tuple(self._chapters)

    @property
    def first(self) -> Chapter:
        return self._chapters[0]

    @property
    def last(self) -> Chapter:
        return self._chapters[-1]

    @property
    def chapter_refs(self) -> List[str]:
        return [chapter.ref for chapter in self._chapters]

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def has_prev(self) -> bool:
        return self._has_prev

    @property
    def loading_next(self) -> bool:
        return self._loading_next

    @property
    def loading_prev(self) -> bool:
        return self._loading_prev

    @property
    def active_translation(self) -> Optional[str]:
        return self._active_translation

    @property
    def cross_book_allowed(self) -> bool:
        return self._cross_book_allowed

    def __len__(self) -> int:
        return len(self._chapters)

    def reset(self, initial_chapter: Chapter, *, cross_book_allowed: Optional[bool] = None) -> None:
        """Replace the whole window with ``[initial_chapter]``.

        Results of fetches issued before the reset are discarded when they
        resolve.
        """

        self._generation += 1
        if cross_book_allowed is not None:
            self._cross_book_allowed = cross_book_allowed
        self._chapters = [initial_chapter]
        self._has_more = initial_chapter.has_next
        self._has_prev = initial_chapter.has_prev
        self._loading_next = False
        self._loading_prev = False
        reader_logging.log_window_reset(initial_chapter.ref, self._has_more, self._has_prev)

    # -- growth ----------------------------------------------------------

    async def load_more(self) -> bool:
        """Append the next chapter. Returns ``True`` if the window grew."""

        if self._loading_next or not self._has_more:
            return False
        anchor = self.last
        target = anchor.next_ref
        if not target:
            self._has_more = False
            return False

        generation = self._generation
        self._loading_next = True
        started = time.perf_counter()
        try:
            fetched, chapter = await self._fetch(target, FORWARD)
            if generation != self._generation:
                reader_logging.log_stale_result(target, FORWARD)
                return False
            if not fetched:
                return False
            if chapter is None:
                self._has_more = False
                reader_logging.log_boundary_reached(target, FORWARD)
                return False
            if not self._accepts(anchor, chapter, target, FORWARD):
                self._has_more = False
                return False
            self._chapters.append(chapter)
            self._has_more = chapter.has_next
            reader_logging.log_chapter_appended(
                chapter.ref, len(self._chapters), (time.perf_counter() - started) * 1000
            )
            return True
        finally:
            if generation == self._generation:
                self._loading_next = False

    async def load_prev(self) -> bool:
        """Prepend the previous chapter. Returns ``True`` if the window grew."""

        if self._loading_prev or not self._has_prev:
            return False
        anchor = self.first
        target = anchor.prev_ref
        if not target:
            self._has_prev = False
            return False

        generation = self._generation
        self._loading_prev = True
        started = time.perf_counter()
        try:
            fetched, chapter = await self._fetch(target, BACKWARD)
            if generation != self._generation:
                reader_logging.log_stale_result(target, BACKWARD)
                return False
            if not fetched:
                return False
            if chapter is None:
                self._has_prev = False
                reader_logging.log_boundary_reached(target, BACKWARD)
                return False
            if not self._accepts(anchor, chapter, target, BACKWARD):
                self._has_prev = False
                return False
            self._chapters.insert(0, chapter)
            self._has_prev = chapter.has_prev
            reader_logging.log_chapter_prepended(
                chapter.ref, len(self._chapters), (time.perf_counter() - started) * 1000
            )
            return True
        finally:
            if generation == self._generation:
                self._loading_prev = False

    async def _fetch(self, target: str, direction: str) -> Tuple[bool, Optional[Chapter]]:
        try:
            return True, await self._fetcher.fetch_chapter(target, self._active_translation)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # No state change: the busy flag is released and a later call may retry.
            reader_logging.log_fetch_failed(target, direction, str(exc))
            logger.debug("window.fetch.exception", exc_info=True)
            return False, None

    def _accepts(self, anchor: Chapter, chapter: Chapter, target: str, direction: str) -> bool:
        if not self._cross_book_allowed and chapter.book != anchor.book:
            reader_logging.log_cross_book_halt(target, anchor.book, chapter.book, direction)
            return False
        if not refs.same_ref(chapter.ref, target):
            reader_logging.log_contiguity_violation(target, chapter.ref, direction)
            return False
        if direction == BACKWARD and not refs.same_ref(chapter.next_ref, anchor.ref):
            reader_logging.log_contiguity_violation(anchor.ref, chapter.next_ref or "", direction)
            return False
        return True

    # -- translation -----------------------------------------------------

    async def set_active_translation(self, translation: str) -> int:
        """Switch translation and re-fetch every windowed chapter in that layer.

        Chapters whose re-fetch fails or comes back empty keep their current
        layer. Returns the number of chapters replaced.
        """

        if translation == self._active_translation:
            return 0
        self._active_translation = translation
        generation = self._generation
        current = list(self._chapters)

        results = await asyncio.gather(
            *(self._fetcher.fetch_chapter(chapter.ref, translation) for chapter in current),
            return_exceptions=True,
        )
        if generation != self._generation:
            return 0

        refreshed = {}
        for chapter, result in zip(current, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                reader_logging.log_fetch_failed(chapter.ref, "refresh", str(result))
                continue
            if result is not None and refs.same_ref(result.ref, chapter.ref):
                refreshed[chapter.ref] = result

        # The window may have grown while re-fetching; only swap what we refreshed.
        self._chapters = [refreshed.get(chapter.ref, chapter) for chapter in self._chapters]
        reader_logging.log_translation_refreshed(translation, len(refreshed), len(current) - len(refreshed))
        return len(refreshed)

    def check_contiguity(self) -> None:
        """Raise :class:`ContiguityError` if adjacent chapters do not link up."""

        for earlier, later in zip(self._chapters, self._chapters[1:]):
            if not refs.same_ref(earlier.next_ref, later.ref):
                raise ContiguityError(
                    f"'{earlier.ref}' is followed by '{later.ref}' but links to '{earlier.next_ref}'",
                    ref=later.ref,
                )

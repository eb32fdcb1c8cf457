"""Reader view: one mounted reader wiring the window, scroll sync and observers."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence, Tuple

from .config_schema import ReaderConfig
from .fetcher import ChapterFetcher
from .models import Chapter
from .sync import (
    ChapterVisibleCallback,
    FrameScheduler,
    LoadSentinels,
    ScrollSynchronizer,
    VisibilityTracker,
    visibility_margin,
)
from .viewport import GeometryObserverHub, ObserverFactory, Region, Viewport
from .window import ChapterWindow

logger = logging.getLogger(__name__)


class ReaderView:
    """Owns the chapter window of a single reader instance.

    The host renders ``chapters`` and calls :meth:`layout` with the chapter
    and sentinel regions after each render, and :meth:`handle_scroll` on
    scroll. Nothing here is shared between views.
    """

    def __init__(
        self,
        initial_chapter: Chapter,
        fetcher: ChapterFetcher,
        viewport: Viewport,
        *,
        config: Optional[ReaderConfig] = None,
        active_translation: Optional[str] = None,
        on_chapter_visible: Optional[ChapterVisibleCallback] = None,
        observers: Optional[ObserverFactory] = None,
        scheduler: Optional[FrameScheduler] = None,
    ) -> None:
        self._config = config or ReaderConfig()
        self._initial = initial_chapter
        self._observers = observers or GeometryObserverHub(viewport)
        self._closed = False

        self.window = ChapterWindow(
            initial_chapter,
            fetcher,
            active_translation=active_translation,
            cross_book_allowed=self._config.allows_cross_book(initial_chapter.collection),
        )
        self.sync = ScrollSynchronizer(viewport, scheduler)
        self._visibility = VisibilityTracker(
            self._observers,
            on_chapter_visible,
            margin=visibility_margin(
                self._config.sync.visibility_top_percent,
                self._config.sync.visibility_bottom_percent,
            ),
        )
        self._sentinels = LoadSentinels(
            self._observers,
            load_more=self.load_more,
            load_prev=self.load_prev,
            has_prev=lambda: self.window.has_prev,
            margin_px=self._config.sync.sentinel_margin_px,
        )

    @property
    def chapters(self) -> Tuple[Chapter, ...]:
        return self.window.chapters

    @property
    def current(self) -> Optional[Tuple[str, int]]:
        return self._visibility.current

    @property
    def closed(self) -> bool:
        return self._closed

    async def load_more(self) -> bool:
        return await self.window.load_more()

    async def load_prev(self) -> bool:
        return await self.sync.load_prev(self.window)

    def set_initial_chapter(self, chapter: Chapter) -> None:
        """Navigate to a new starting chapter: full synchronous reset."""

        if chapter is self._initial:
            return
        self._initial = chapter
        self.window.reset(chapter, cross_book_allowed=self._config.allows_cross_book(chapter.collection))

    async def set_active_translation(self, translation: str) -> int:
        return await self.window.set_active_translation(translation)

    def layout(self, chapter_regions: Sequence[Region], before: Region, after: Region) -> None:
        """Register the regions of the current render and deliver notifications."""

        if self._closed:
            return
        self._visibility.track(chapter_regions)
        self._sentinels.attach(before, after)
        self._observers.refresh()

    def handle_scroll(self) -> None:
        if not self._closed:
            self._observers.refresh()

    async def wait_idle(self) -> None:
        """Wait for loads started by the sentinels to settle."""

        while self._sentinels.pending:
            await asyncio.gather(*self._sentinels.pending, return_exceptions=True)

    def close(self) -> None:
        """Unmount: stop observing. In-flight fetches are left to finish unobserved."""

        self._closed = True
        self.sync.close()
        self._visibility.stop()
        self._sentinels.detach()

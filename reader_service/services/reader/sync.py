"""Scroll-position and visibility synchronisation for the chapter window."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence, Set, Tuple

from . import logging as reader_logging
from .models import Chapter
from .viewport import IntersectionEntry, Margin, ObserverFactory, Region, Viewport, ViewportObserver
from .window import ChapterWindow

logger = logging.getLogger(__name__)

ChapterVisibleCallback = Callable[[str, int], None]


class FrameScheduler(Protocol):
    def request_frame(self, callback: Callable[[], None]) -> None: ...


class LoopFrameScheduler:
    """Runs frame callbacks on the next iteration of the running event loop."""

    def request_frame(self, callback: Callable[[], None]) -> None:
        asyncio.get_running_loop().call_soon(callback)


@dataclass(slots=True, frozen=True)
class ScrollAnchor:
    """Scroll geometry captured before content is prepended."""

    scroll_height: float
    scroll_top: float

    @classmethod
    def capture(cls, viewport: Viewport) -> "ScrollAnchor":
        return cls(scroll_height=viewport.scroll_height, scroll_top=viewport.scroll_top)

    def restored_top(self, new_scroll_height: float) -> Optional[float]:
        """Offset keeping the same content under the viewport, or ``None`` if nothing grew."""

        delta = new_scroll_height - self.scroll_height
        if delta <= 0:
            return None
        return self.scroll_top + delta


class ScrollSynchronizer:
    """Keeps the viewport visually stable while chapters are prepended."""

    def __init__(self, viewport: Viewport, scheduler: Optional[FrameScheduler] = None) -> None:
        self._viewport = viewport
        self._scheduler = scheduler or LoopFrameScheduler()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop touching the viewport; pending restorations become no-ops."""
        self._closed = True

    async def load_prev(self, window: ChapterWindow) -> bool:
        anchor = ScrollAnchor.capture(self._viewport)
        grew = await window.load_prev()
        if grew and not self._closed:
            # Heights are only correct after layout, so restore on the next frame.
            self._scheduler.request_frame(lambda: self.restore(anchor))
        return grew

    def restore(self, anchor: ScrollAnchor) -> Optional[float]:
        if self._closed:
            return None
        new_top = anchor.restored_top(self._viewport.scroll_height)
        if new_top is None:
            return None
        self._viewport.scroll_to(new_top, animated=False)
        reader_logging.log_anchor_restored(anchor.scroll_top, new_top, new_top - anchor.scroll_top)
        return new_top


def chapter_region(chapter: Chapter, top: float, height: float) -> Region:
    return Region(
        key=chapter.id,
        top=top,
        height=height,
        data={"book": chapter.book, "chapter": chapter.chapter_number},
    )


def visibility_margin(top_percent: float, bottom_percent: float) -> Margin:
    """Band that excludes the top ``top_percent`` and bottom ``bottom_percent`` of the viewport."""

    return Margin.parse(f"-{top_percent}% 0px -{bottom_percent}% 0px")


class VisibilityTracker:
    """Reports the chapter currently being read.

    Every intersecting chapter in an observer batch is reported in
    enumeration order; the last report wins.
    """

    def __init__(
        self,
        observers: ObserverFactory,
        on_chapter_visible: Optional[ChapterVisibleCallback],
        *,
        margin: Margin,
    ) -> None:
        self._observers = observers
        self._on_chapter_visible = on_chapter_visible
        self._margin = margin
        self._observer: Optional[ViewportObserver] = None
        self.current: Optional[Tuple[str, int]] = None

    def track(self, regions: Sequence[Region]) -> None:
        """(Re)observe the rendered chapter regions."""

        self.stop()
        self._observer = self._observers.create(self._handle, self._margin)
        for region in regions:
            self._observer.observe(region)

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.disconnect()
            self._observer = None

    def _handle(self, entries: List[IntersectionEntry]) -> None:
        for entry in entries:
            if not entry.is_intersecting:
                continue
            book = entry.region.data.get("book")
            chapter = entry.region.data.get("chapter")
            if not book or chapter is None:
                continue
            self.current = (book, int(chapter))
            reader_logging.log_chapter_visible(book, int(chapter))
            if self._on_chapter_visible is not None:
                self._on_chapter_visible(book, int(chapter))


class LoadSentinels:
    """Invisible trigger regions before the first and after the last chapter."""

    def __init__(
        self,
        observers: ObserverFactory,
        *,
        load_more: Callable[[], Awaitable[Any]],
        load_prev: Callable[[], Awaitable[Any]],
        has_prev: Callable[[], bool],
        margin_px: float,
    ) -> None:
        self._observers = observers
        self._load_more = load_more
        self._load_prev = load_prev
        self._has_prev = has_prev
        self._margin_px = margin_px
        self._forward: Optional[ViewportObserver] = None
        self._backward: Optional[ViewportObserver] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> Set[asyncio.Task]:
        return set(self._tasks)

    def attach(self, before: Region, after: Region) -> None:
        self.detach()
        self._forward = self._observers.create(self._on_forward, Margin.uniform(self._margin_px))
        self._backward = self._observers.create(
            self._on_backward, Margin.parse(f"{self._margin_px}px 0px 0px 0px")
        )
        self._forward.observe(after)
        self._backward.observe(before)

    def detach(self) -> None:
        for observer in (self._forward, self._backward):
            if observer is not None:
                observer.disconnect()
        self._forward = None
        self._backward = None

    def _spawn(self, factory: Callable[[], Awaitable[Any]]) -> None:
        task = asyncio.ensure_future(factory())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_forward(self, entries: List[IntersectionEntry]) -> None:
        if entries and entries[0].is_intersecting:
            self._spawn(self._load_more)

    def _on_backward(self, entries: List[IntersectionEntry]) -> None:
        if entries and entries[0].is_intersecting and self._has_prev():
            self._spawn(self._load_prev)

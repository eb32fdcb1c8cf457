import asyncio

import pytest

from reader_service.services.reader.sync import (
    LoadSentinels,
    LoopFrameScheduler,
    ScrollAnchor,
    ScrollSynchronizer,
    VisibilityTracker,
    chapter_region,
    visibility_margin,
)
from reader_service.services.reader.viewport import GeometryObserverHub, Region
from reader_service.services.reader.window import ChapterWindow
from reader_service.tests.fakes import FakeViewport, ManualScheduler, StubFetcher, linked_corpus


class GrowingFetcher(StubFetcher):
    """Simulates layout: the document gets taller once a chapter is returned."""

    def __init__(self, chapters, viewport, grow_by):
        super().__init__(chapters)
        self.viewport = viewport
        self.grow_by = grow_by

    async def fetch_chapter(self, ref, translation_id=None):
        chapter = await super().fetch_chapter(ref, translation_id)
        if chapter is not None:
            self.viewport.scroll_height += self.grow_by
        return chapter


def test_anchor_restored_top():
    anchor = ScrollAnchor(scroll_height=2000, scroll_top=500)
    assert anchor.restored_top(2800) == 1300
    assert anchor.restored_top(2000) is None
    assert anchor.restored_top(1900) is None


@pytest.mark.anyio
async def test_prepend_keeps_viewport_content_in_place():
    viewport = FakeViewport(scroll_top=500, scroll_height=2000)
    corpus = linked_corpus([("Genesis", 3)])
    window = ChapterWindow(corpus["Genesis.2"], GrowingFetcher(corpus, viewport, 800))
    scheduler = ManualScheduler()
    sync = ScrollSynchronizer(viewport, scheduler)

    assert await sync.load_prev(window) is True
    # Restoration waits for the next frame.
    assert viewport.scroll_top == 500
    assert viewport.scroll_calls == []

    scheduler.flush()
    assert viewport.scroll_top == 1300
    assert viewport.scroll_calls == [(1300, False)]


@pytest.mark.anyio
async def test_no_restoration_when_nothing_was_prepended():
    viewport = FakeViewport(scroll_top=500, scroll_height=2000)
    corpus = linked_corpus([("Genesis", 2)])
    window = ChapterWindow(corpus["Genesis.1"], StubFetcher(corpus))
    scheduler = ManualScheduler()
    sync = ScrollSynchronizer(viewport, scheduler)

    assert await sync.load_prev(window) is False
    assert scheduler.callbacks == []


def test_restore_skips_when_height_did_not_grow():
    viewport = FakeViewport(scroll_top=500, scroll_height=2000)
    sync = ScrollSynchronizer(viewport, ManualScheduler())
    assert sync.restore(ScrollAnchor.capture(viewport)) is None
    assert viewport.scroll_calls == []


@pytest.mark.anyio
async def test_loop_frame_scheduler_runs_on_next_iteration():
    ran = []
    LoopFrameScheduler().request_frame(lambda: ran.append(True))
    assert ran == []
    await asyncio.sleep(0)
    assert ran == [True]


def test_chapter_region_carries_book_and_number():
    corpus = linked_corpus([("Genesis", 3)])
    region = chapter_region(corpus["Genesis.3"], top=10, height=20)
    assert region.key == "genesis.3"
    assert region.data == {"book": "Genesis", "chapter": 3}


def test_visibility_reports_every_intersecting_chapter_last_wins():
    viewport = FakeViewport(scroll_top=0, height=1000)
    hub = GeometryObserverHub(viewport)
    seen = []
    tracker = VisibilityTracker(hub, lambda book, number: seen.append((book, number)), margin=visibility_margin(20, 60))
    corpus = linked_corpus([("Genesis", 3)])
    # Reading band is 200..400 at scroll_top 0.
    regions = [
        chapter_region(corpus["Genesis.1"], top=0, height=250),
        chapter_region(corpus["Genesis.2"], top=250, height=100),
        chapter_region(corpus["Genesis.3"], top=350, height=1000),
    ]
    tracker.track(regions)
    hub.refresh()

    assert seen == [("Genesis", 1), ("Genesis", 2), ("Genesis", 3)]
    assert tracker.current == ("Genesis", 3)

    viewport.scroll_top = 600
    hub.refresh()
    assert seen[3:] == []
    assert tracker.current == ("Genesis", 3)


def test_visibility_stop_silences_reports():
    viewport = FakeViewport()
    hub = GeometryObserverHub(viewport)
    seen = []
    tracker = VisibilityTracker(hub, lambda *args: seen.append(args), margin=visibility_margin(20, 60))
    tracker.track([Region("a", top=300, height=10, data={"book": "Genesis", "chapter": 1})])
    tracker.stop()
    hub.refresh()
    assert seen == []


class Calls:
    def __init__(self):
        self.more = 0
        self.prev = 0

    async def load_more(self):
        self.more += 1

    async def load_prev(self):
        self.prev += 1


@pytest.mark.anyio
async def test_sentinels_trigger_loads_within_margin():
    viewport = FakeViewport(scroll_top=2000, height=1000)
    hub = GeometryObserverHub(viewport)
    calls = Calls()
    sentinels = LoadSentinels(
        hub, load_more=calls.load_more, load_prev=calls.load_prev, has_prev=lambda: True, margin_px=1200
    )
    # Before sentinel 1000px above the viewport top, after sentinel 1100px below its bottom.
    sentinels.attach(Region("before", top=1000), Region("after", top=4100))
    hub.refresh()
    await asyncio.gather(*sentinels.pending)

    assert (calls.more, calls.prev) == (1, 1)


@pytest.mark.anyio
async def test_backward_sentinel_respects_has_prev_and_bottom_margin():
    viewport = FakeViewport(scroll_top=2000, height=1000)
    hub = GeometryObserverHub(viewport)
    calls = Calls()
    sentinels = LoadSentinels(
        hub, load_more=calls.load_more, load_prev=calls.load_prev, has_prev=lambda: False, margin_px=1200
    )
    sentinels.attach(Region("before", top=1500), Region("after", top=9000))
    hub.refresh()
    await asyncio.gather(*sentinels.pending)

    assert (calls.more, calls.prev) == (0, 0)


@pytest.mark.anyio
async def test_detached_sentinels_do_not_fire():
    viewport = FakeViewport(scroll_top=0, height=1000)
    hub = GeometryObserverHub(viewport)
    calls = Calls()
    sentinels = LoadSentinels(
        hub, load_more=calls.load_more, load_prev=calls.load_prev, has_prev=lambda: True, margin_px=1200
    )
    sentinels.attach(Region("before", top=0), Region("after", top=1000))
    sentinels.detach()
    hub.refresh()

    assert sentinels.pending == set()
    assert (calls.more, calls.prev) == (0, 0)

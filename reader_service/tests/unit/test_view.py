import asyncio

import pytest

from reader_service.services.reader.config_schema import ReaderConfig, SyncConfig
from reader_service.services.reader.sync import chapter_region
from reader_service.services.reader.view import ReaderView
from reader_service.services.reader.viewport import Region
from reader_service.tests.fakes import FakeViewport, ManualScheduler, StubFetcher, linked_corpus, make_chapter

CHAPTER_HEIGHT = 1000


def _layout(view, viewport):
    """Stack the current chapters top to bottom and report their regions."""

    regions = []
    top = 0.0
    for chapter in view.chapters:
        regions.append(chapter_region(chapter, top, CHAPTER_HEIGHT))
        top += CHAPTER_HEIGHT
    viewport.scroll_height = top
    view.layout(regions, Region("before", top=0), Region("after", top=top))


@pytest.mark.anyio
async def test_scrolling_to_the_end_grows_the_window():
    corpus = linked_corpus([("Genesis", 4)])
    viewport = FakeViewport(scroll_top=0, height=1000)
    visible = []
    view = ReaderView(
        corpus["Genesis.2"],
        StubFetcher(corpus),
        viewport,
        config=ReaderConfig(sync=SyncConfig(sentinel_margin_px=200)),
        on_chapter_visible=lambda book, number: visible.append((book, number)),
        scheduler=ManualScheduler(),
    )

    _layout(view, viewport)
    await view.wait_idle()

    assert visible == [("Genesis", 2)]
    assert view.current == ("Genesis", 2)
    # Both sentinels were within reach of the single chapter.
    assert [chapter.ref for chapter in view.chapters] == ["Genesis.1", "Genesis.2", "Genesis.3"]


@pytest.mark.anyio
async def test_prepend_through_view_schedules_scroll_restoration():
    corpus = linked_corpus([("Genesis", 3)])
    viewport = FakeViewport(scroll_top=500, scroll_height=2000)
    scheduler = ManualScheduler()
    view = ReaderView(corpus["Genesis.3"], StubFetcher(corpus), viewport, scheduler=scheduler)

    assert await view.load_prev() is True
    viewport.scroll_height = 2800
    scheduler.flush()

    assert viewport.scroll_top == 1300


@pytest.mark.anyio
async def test_set_initial_chapter_resets_the_window():
    corpus = linked_corpus([("Genesis", 3)])
    view = ReaderView(corpus["Genesis.1"], StubFetcher(corpus), FakeViewport(), scheduler=ManualScheduler())
    await view.load_more()
    assert len(view.chapters) == 2

    view.set_initial_chapter(corpus["Genesis.1"])
    assert len(view.chapters) == 2

    talmud = make_chapter("Berakhot.2b", collection="Talmud", prev_ref="Berakhot.2a", next_ref="Berakhot.3a")
    view.set_initial_chapter(talmud)
    assert [chapter.ref for chapter in view.chapters] == ["Berakhot.2b"]
    assert view.window.cross_book_allowed is False


def test_cross_book_policy_comes_from_the_collection():
    tanakh = make_chapter("Genesis.1", collection="Tanakh")
    talmud = make_chapter("Berakhot.2a", collection="Talmud")
    config = ReaderConfig()
    assert ReaderView(tanakh, StubFetcher(), FakeViewport(), config=config).window.cross_book_allowed is True
    assert ReaderView(talmud, StubFetcher(), FakeViewport(), config=config).window.cross_book_allowed is False


@pytest.mark.anyio
async def test_closed_view_ignores_layout_and_scroll():
    corpus = linked_corpus([("Genesis", 3)])
    viewport = FakeViewport()
    view = ReaderView(corpus["Genesis.2"], StubFetcher(corpus), viewport, scheduler=ManualScheduler())
    view.close()

    _layout(view, viewport)
    view.handle_scroll()
    await asyncio.sleep(0)

    assert view.closed is True
    assert [chapter.ref for chapter in view.chapters] == ["Genesis.2"]


@pytest.mark.anyio
async def test_closing_during_a_prepend_never_scrolls():
    corpus = linked_corpus([("Genesis", 3)])
    viewport = FakeViewport(scroll_top=500, scroll_height=2000)
    scheduler = ManualScheduler()
    fetcher = StubFetcher(corpus)
    fetcher.gate = asyncio.Event()
    view = ReaderView(corpus["Genesis.3"], fetcher, viewport, scheduler=scheduler)

    pending = asyncio.create_task(view.load_prev())
    await asyncio.sleep(0)
    view.close()
    fetcher.gate.set()
    await pending

    assert scheduler.callbacks == []
    viewport.scroll_height = 2800
    scheduler.flush()
    assert viewport.scroll_calls == []


@pytest.mark.anyio
async def test_restoration_scheduled_before_close_is_dropped():
    corpus = linked_corpus([("Genesis", 3)])
    viewport = FakeViewport(scroll_top=500, scroll_height=2000)
    scheduler = ManualScheduler()
    view = ReaderView(corpus["Genesis.3"], StubFetcher(corpus), viewport, scheduler=scheduler)

    assert await view.load_prev() is True
    assert len(scheduler.callbacks) == 1
    view.close()
    viewport.scroll_height = 2800
    scheduler.flush()

    assert viewport.scroll_top == 500
    assert viewport.scroll_calls == []

"""Structured logging helpers for the reader engine."""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

_LOGGER = logging.getLogger("reader_service.reader")


def _emit(level: int, event: str, *, extra: Optional[Mapping[str, Any]] = None) -> None:
    payload: MutableMapping[str, Any] = {"event": event, "source": "reader"}
    if extra:
        payload.update(extra)
    _LOGGER.log(level, event, extra=payload)


def log_window_reset(ref: str, has_more: bool, has_prev: bool) -> None:
    _emit(
        logging.DEBUG,
        "reader.window.reset",
        extra={"ref": ref, "has_more": has_more, "has_prev": has_prev},
    )


def log_chapter_appended(ref: str, size: int, duration_ms: float) -> None:
    _emit(
        logging.DEBUG,
        "reader.window.appended",
        extra={"ref": ref, "window_size": size, "duration_ms": duration_ms},
    )


def log_chapter_prepended(ref: str, size: int, duration_ms: float) -> None:
    _emit(
        logging.DEBUG,
        "reader.window.prepended",
        extra={"ref": ref, "window_size": size, "duration_ms": duration_ms},
    )


def log_boundary_reached(ref: str, direction: str) -> None:
    _emit(logging.INFO, "reader.window.boundary", extra={"ref": ref, "direction": direction})


def log_cross_book_halt(ref: str, current_book: str, fetched_book: str, direction: str) -> None:
    _emit(
        logging.INFO,
        "reader.window.cross_book_halt",
        extra={
            "ref": ref,
            "current_book": current_book,
            "fetched_book": fetched_book,
            "direction": direction,
        },
    )


def log_contiguity_violation(expected: str, received: str, direction: str) -> None:
    _emit(
        logging.WARNING,
        "reader.window.contiguity_violation",
        extra={"expected_ref": expected, "received_ref": received, "direction": direction},
    )


def log_fetch_failed(ref: str, direction: str, error: str) -> None:
    _emit(
        logging.WARNING,
        "reader.fetch.failed",
        extra={"ref": ref, "direction": direction, "error": error},
    )


def log_stale_result(ref: str, direction: str) -> None:
    _emit(logging.DEBUG, "reader.window.stale_result", extra={"ref": ref, "direction": direction})


def log_translation_refreshed(translation: str, refreshed: int, kept: int) -> None:
    _emit(
        logging.INFO,
        "reader.window.translation_refreshed",
        extra={"translation": translation, "refreshed": refreshed, "kept": kept},
    )


def log_anchor_restored(previous_top: float, new_top: float, height_delta: float) -> None:
    _emit(
        logging.DEBUG,
        "reader.sync.anchor_restored",
        extra={"previous_top": previous_top, "new_top": new_top, "height_delta": height_delta},
    )


def log_chapter_visible(book: str, chapter: int) -> None:
    _emit(logging.DEBUG, "reader.sync.chapter_visible", extra={"book": book, "chapter": chapter})

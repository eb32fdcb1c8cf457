"""Thin facade exposing reader sessions to the HTTP layer."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

from redis.exceptions import RedisError

from .config_schema import ReaderConfig
from .errors import ChapterNotFound, SessionNotFound
from .fetcher import ChapterFetcher
from .models import Chapter
from .redis_repo import ReaderRedisRepository
from .window import ChapterWindow

logger = logging.getLogger(__name__)


class ReaderService:
    """Server-side reader sessions, one :class:`ChapterWindow` each.

    Sessions idle for longer than ``session_ttl_seconds`` are dropped from
    memory, matching the expiry of their persisted snapshot; a persisted
    session can still be rebuilt with :meth:`resume_session`.
    """

    def __init__(
        self,
        fetcher: ChapterFetcher,
        config: ReaderConfig,
        *,
        redis_repo: Optional[ReaderRedisRepository] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._config = config
        self._repo = redis_repo
        self._clock = clock
        self._sessions: Dict[str, ChapterWindow] = {}
        self._last_access: Dict[str, float] = {}

    @property
    def config(self) -> ReaderConfig:
        return self._config

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def get_chapter(self, ref: str, translation: Optional[str] = None) -> Chapter:
        chapter = await self._fetcher.fetch_chapter(ref, translation or self._config.default_translation)
        if chapter is None:
            raise ChapterNotFound(f"No content for '{ref}'", ref=ref)
        return chapter

    async def open_session(self, ref: str, translation: Optional[str] = None) -> str:
        self.evict_idle()
        translation = translation or self._config.default_translation
        chapter = await self.get_chapter(ref, translation)
        session_id = str(uuid.uuid4())
        self._store(session_id, self._new_window(chapter, translation))
        logger.info(f"Opened reader session {session_id} at '{chapter.ref}'")
        await self._persist(session_id)
        return session_id

    async def resume_session(self, session_id: str) -> str:
        """Rebuild a persisted session by replaying its window from the first ref."""

        self.evict_idle()
        if session_id in self._sessions:
            self._touch(session_id)
            return session_id
        saved = await self._load_saved(session_id)
        if not saved or not saved.get("refs"):
            raise SessionNotFound(session_id)

        saved_refs = list(saved["refs"])
        translation = saved.get("translation") or self._config.default_translation
        chapter = await self.get_chapter(saved_refs[0], translation)
        window = self._new_window(chapter, translation)
        for _ in saved_refs[1:]:
            if not await window.load_more():
                break
        self._store(session_id, window)
        logger.info(f"Resumed reader session {session_id} with {len(window)} chapters")
        return session_id

    def window(self, session_id: str) -> ChapterWindow:
        window = self._sessions.get(session_id)
        if window is None or self._is_idle(session_id, self._clock()):
            self._drop(session_id)
            raise SessionNotFound(session_id)
        self._touch(session_id)
        return window

    def evict_idle(self) -> int:
        """Drop in-memory sessions idle past the session TTL. Returns how many were dropped."""

        now = self._clock()
        idle = [session_id for session_id in self._sessions if self._is_idle(session_id, now)]
        for session_id in idle:
            self._drop(session_id)
        if idle:
            logger.info(f"Evicted {len(idle)} idle reader sessions, {len(self._sessions)} remain")
        return len(idle)

    async def load_more(self, session_id: str) -> bool:
        grew = await self.window(session_id).load_more()
        if grew:
            await self._persist(session_id)
        return grew

    async def load_prev(self, session_id: str) -> bool:
        grew = await self.window(session_id).load_prev()
        if grew:
            await self._persist(session_id)
        return grew

    async def change_translation(self, session_id: str, translation: str) -> int:
        refreshed = await self.window(session_id).set_active_translation(translation)
        await self._persist(session_id)
        return refreshed

    async def close_session(self, session_id: str) -> None:
        self._drop(session_id)
        if self._repo is not None:
            try:
                await self._repo.delete_window(session_id)
            except RedisError as e:
                logger.warning(f"Failed to delete persisted window {session_id}: {e}")

    def snapshot(self, session_id: str, *, include_chapters: bool = True) -> Dict[str, Any]:
        window = self.window(session_id)
        payload: Dict[str, Any] = {
            "sessionId": session_id,
            "activeTranslation": window.active_translation,
            "refs": window.chapter_refs,
            "hasMore": window.has_more,
            "hasPrev": window.has_prev,
            "loadingNext": window.loading_next,
            "loadingPrev": window.loading_prev,
            "crossBookAllowed": window.cross_book_allowed,
        }
        if include_chapters:
            payload["chapters"] = [chapter.to_dict() for chapter in window.chapters]
        return payload

    def _store(self, session_id: str, window: ChapterWindow) -> None:
        self._sessions[session_id] = window
        self._touch(session_id)

    def _touch(self, session_id: str) -> None:
        self._last_access[session_id] = self._clock()

    def _is_idle(self, session_id: str, now: float) -> bool:
        ttl = self._config.session_ttl_seconds
        if ttl <= 0:
            return False
        return now - self._last_access.get(session_id, now) > ttl

    def _drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_access.pop(session_id, None)

    def _new_window(self, chapter: Chapter, translation: str) -> ChapterWindow:
        return ChapterWindow(
            chapter,
            self._fetcher,
            active_translation=translation,
            cross_book_allowed=self._config.allows_cross_book(chapter.collection),
        )

    async def _persist(self, session_id: str) -> None:
        if self._repo is None:
            return
        window = self._sessions.get(session_id)
        if window is None:
            return
        try:
            await self._repo.save_window(
                session_id,
                window.chapter_refs,
                window.active_translation,
                self._config.session_ttl_seconds,
            )
        except RedisError as e:
            logger.warning(f"Failed to persist window {session_id}: {e}")

    async def _load_saved(self, session_id: str) -> Optional[dict]:
        if self._repo is None:
            return None
        try:
            return await self._repo.load_window(session_id)
        except (RedisError, ValueError) as e:
            logger.warning(f"Failed to load persisted window {session_id}: {e}")
            return None

"""Redis repository for reader state: chapter cache, window snapshots, settings."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, List, Optional


@dataclass(slots=True)
class RedisKeys:
    """Namespace helpers for reader-related Redis keys."""

    chapter_prefix: str = "reader:chapter"
    window_prefix: str = "reader:window"
    settings_prefix: str = "reader:settings"

    def chapter(self, ref: str, translation: Optional[str]) -> str:
        return f"{self.chapter_prefix}:{translation or 'default'}:{ref}"

    def window(self, session_id: str) -> str:
        return f"{self.window_prefix}:{session_id}"

    def settings(self, user_id: str) -> str:
        return f"{self.settings_prefix}:{user_id}"


class ReaderRedisRepository:
    """Thin async wrapper around every Redis interaction of the reader."""

    def __init__(self, redis_client: Any, *, keys: Optional[RedisKeys] = None) -> None:
        self._redis = redis_client
        self._keys = keys or RedisKeys()

    @property
    def keys(self) -> RedisKeys:
        return self._keys

    async def cache_chapter(self, ref: str, translation: Optional[str], payload_json: str, ttl_seconds: int) -> None:
        key = self._keys.chapter(ref, translation)
        if ttl_seconds > 0:
            await self._redis.set(key, payload_json, ex=ttl_seconds)
        else:
            await self._redis.set(key, payload_json)

    async def fetch_chapter(self, ref: str, translation: Optional[str]) -> Optional[str]:
        return _as_text(await self._redis.get(self._keys.chapter(ref, translation)))

    async def save_window(
        self,
        session_id: str,
        refs: List[str],
        translation: Optional[str],
        ttl_seconds: int,
    ) -> None:
        payload = json.dumps({"refs": refs, "translation": translation}, ensure_ascii=False)
        key = self._keys.window(session_id)
        if ttl_seconds > 0:
            await self._redis.set(key, payload, ex=ttl_seconds)
        else:
            await self._redis.set(key, payload)

    async def load_window(self, session_id: str) -> Optional[dict]:
        raw = _as_text(await self._redis.get(self._keys.window(session_id)))
        if not raw:
            return None
        return json.loads(raw)

    async def delete_window(self, session_id: str) -> None:
        await self._redis.delete(self._keys.window(session_id))

    async def save_settings(self, user_id: str, payload_json: str) -> None:
        await self._redis.set(self._keys.settings(user_id), payload_json)

    async def fetch_settings(self, user_id: str) -> Optional[str]:
        return _as_text(await self._redis.get(self._keys.settings(user_id)))


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)

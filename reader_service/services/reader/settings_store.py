"""Reader display settings and their persistence port."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, Field, ValidationError
from redis.exceptions import RedisError

from .errors import SettingsError
from .redis_repo import ReaderRedisRepository

logger = logging.getLogger(__name__)

Theme = Literal["paper", "sepia", "dark"]
LayoutMode = Literal["stacked", "side-by-side"]
ReaderContext = Literal["global", "group", "private"]

MIN_FONT_SIZE = 12
MAX_FONT_SIZE = 48
FONT_STEP = 2


class DisplaySettings(BaseModel):
    theme: Theme = "paper"
    font_size: int = Field(default=20, ge=MIN_FONT_SIZE, le=MAX_FONT_SIZE)
    layout: LayoutMode = "stacked"
    context: ReaderContext = "global"

    def increase_font(self) -> "DisplaySettings":
        return self.model_copy(update={"font_size": min(self.font_size + FONT_STEP, MAX_FONT_SIZE)})

    def decrease_font(self) -> "DisplaySettings":
        return self.model_copy(update={"font_size": max(self.font_size - FONT_STEP, MIN_FONT_SIZE)})


class SettingsStore(Protocol):
    async def load(self) -> DisplaySettings: ...

    async def save(self, settings: DisplaySettings) -> None: ...


def _decode(raw: str | None, source: str) -> DisplaySettings:
    if not raw:
        return DisplaySettings()
    try:
        return DisplaySettings.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.error(f"Failed to parse reader settings from {source}, using defaults: {e}")
        return DisplaySettings()


class JsonFileSettingsStore:
    """Keeps settings in a JSON file (one file per profile)."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    def _read(self) -> str | None:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    def _write(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(payload, encoding="utf-8")

    async def load(self) -> DisplaySettings:
        try:
            raw = await asyncio.to_thread(self._read)
        except OSError as e:
            raise SettingsError(f"Cannot read settings file {self._path}: {e}") from e
        return _decode(raw, str(self._path))

    async def save(self, settings: DisplaySettings) -> None:
        try:
            await asyncio.to_thread(self._write, settings.model_dump_json(indent=2))
        except OSError as e:
            raise SettingsError(f"Cannot write settings file {self._path}: {e}") from e


class RedisSettingsStore:
    """Keeps a user's settings under ``reader:settings:{user_id}``."""

    def __init__(self, repo: ReaderRedisRepository, user_id: str) -> None:
        self._repo = repo
        self._user_id = user_id

    async def load(self) -> DisplaySettings:
        try:
            raw = await self._repo.fetch_settings(self._user_id)
        except RedisError as e:
            raise SettingsError(f"Cannot load settings for '{self._user_id}': {e}") from e
        return _decode(raw, f"redis user '{self._user_id}'")

    async def save(self, settings: DisplaySettings) -> None:
        try:
            await self._repo.save_settings(self._user_id, settings.model_dump_json())
        except RedisError as e:
            raise SettingsError(f"Cannot save settings for '{self._user_id}': {e}") from e

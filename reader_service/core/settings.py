from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from config import get_config_section


def _resolve_env_file() -> str:
    # Start from the package directory and search upwards
    here = Path(__file__).resolve().parent
    for p in [here, *here.parents]:
        f = p / ".env"
        if f.exists():
            return str(f)
    cwd = Path.cwd()
    for p in [cwd, *cwd.parents]:
        f = p / ".env"
        if f.exists():
            return str(f)
    return str(Path.cwd() / ".env")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_resolve_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = True
    sefaria_api_url: str = "https://www.sefaria.org/api"
    sefaria_api_key: str | None = None
    request_timeout_seconds: float = 20.0
    log_dir: str = "logs"
    settings_dir: str = "data/settings"

    @field_validator("sefaria_api_url", mode="before")
    def _strip_trailing_slash(cls, value: str) -> str:
        if isinstance(value, str):
            return value.rstrip("/")
        return value


def _load_from_config() -> Dict[str, Any]:
    section = get_config_section("services", {})
    if not isinstance(section, dict):
        return {}
    return {
        "redis_url": section.get("redis_url"),
        "sefaria_api_url": section.get("sefaria_api_url"),
        "request_timeout_seconds": section.get("request_timeout_seconds"),
        "log_dir": section.get("log_dir"),
    }


def load_settings() -> Settings:
    """TOML config provides defaults; environment variables and .env win."""

    settings = Settings()
    explicit = settings.model_fields_set
    overrides = {
        key: value
        for key, value in _load_from_config().items()
        if value is not None and key not in explicit
    }
    if not overrides:
        return settings
    return Settings(**{**settings.model_dump(include=explicit), **overrides})

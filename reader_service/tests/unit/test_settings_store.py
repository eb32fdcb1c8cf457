import pytest

from reader_service.services.reader import settings_store
from reader_service.services.reader.errors import SettingsError
from reader_service.services.reader.redis_repo import ReaderRedisRepository
from reader_service.services.reader.settings_store import (
    MAX_FONT_SIZE,
    MIN_FONT_SIZE,
    DisplaySettings,
    JsonFileSettingsStore,
    RedisSettingsStore,
)
from reader_service.tests.fakes import FakeRedis


def test_font_size_steps_and_clamps():
    settings = DisplaySettings(font_size=MAX_FONT_SIZE - 1)
    assert settings.increase_font().font_size == MAX_FONT_SIZE
    assert settings.increase_font().increase_font().font_size == MAX_FONT_SIZE
    assert DisplaySettings(font_size=MIN_FONT_SIZE).decrease_font().font_size == MIN_FONT_SIZE
    assert DisplaySettings().increase_font().font_size == 22
    assert settings.font_size == MAX_FONT_SIZE - 1


def test_invalid_settings_are_rejected():
    with pytest.raises(ValueError):
        DisplaySettings(theme="neon")
    with pytest.raises(ValueError):
        DisplaySettings(font_size=100)


@pytest.mark.anyio
async def test_json_store_round_trip(tmp_path):
    store = JsonFileSettingsStore(tmp_path / "profiles" / "alice.json")
    assert await store.load() == DisplaySettings()

    wanted = DisplaySettings(theme="dark", font_size=28, layout="side-by-side", context="private")
    await store.save(wanted)

    assert await JsonFileSettingsStore(tmp_path / "profiles" / "alice.json").load() == wanted


@pytest.mark.anyio
async def test_json_store_falls_back_to_defaults_on_corrupt_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert await JsonFileSettingsStore(path).load() == DisplaySettings()

    path.write_text('{"theme": "neon"}', encoding="utf-8")
    assert await JsonFileSettingsStore(path).load() == DisplaySettings()


@pytest.mark.anyio
async def test_json_store_write_failure_raises_settings_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileSettingsStore(blocker / "settings.json")
    with pytest.raises(SettingsError):
        await store.save(DisplaySettings())


@pytest.mark.anyio
async def test_redis_store():
    redis = FakeRedis()
    store = RedisSettingsStore(ReaderRedisRepository(redis), "alice")
    assert await store.load() == DisplaySettings()

    await store.save(DisplaySettings(theme="sepia"))
    assert "reader:settings:alice" in redis.store
    assert (await store.load()).theme == "sepia"

    redis.fail = True
    with pytest.raises(SettingsError):
        await store.load()
    with pytest.raises(SettingsError):
        await store.save(DisplaySettings())


@pytest.mark.anyio
async def test_json_store_does_file_io_in_a_worker_thread(tmp_path, monkeypatch):
    calls = []
    original = settings_store.asyncio.to_thread

    async def recording_to_thread(func, *args, **kwargs):
        calls.append(func.__name__)
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(settings_store.asyncio, "to_thread", recording_to_thread)
    store = JsonFileSettingsStore(tmp_path / "bob.json")

    await store.save(DisplaySettings(theme="sepia"))
    assert (await store.load()).theme == "sepia"
    assert calls == ["_write", "_read"]

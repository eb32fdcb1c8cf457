import logging_utils
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import redis.asyncio as redis
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reader_service.api.reader import router as reader_router
from reader_service.core.settings import load_settings
from reader_service.services.reader.config_schema import load_reader_config
from reader_service.services.reader.fetcher import CachedChapterFetcher, SefariaChapterFetcher
from reader_service.services.reader.redis_repo import ReaderRedisRepository
from reader_service.services.reader.service import ReaderService
from reader_service.services.reader.settings_store import JsonFileSettingsStore, RedisSettingsStore

load_dotenv()
logger = logging_utils.get_logger("reader-service", service="reader")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    reader_config = load_reader_config()

    http_client = httpx.AsyncClient()
    redis_client = None
    redis_repo = None
    if settings.redis_enabled:
        try:
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
            await redis_client.ping()
            redis_repo = ReaderRedisRepository(redis_client)
            logger.info("Connected to Redis.")
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable ({e}); chapter cache and session persistence disabled.")
            redis_client = None

    fetcher = SefariaChapterFetcher(
        http_client,
        settings.sefaria_api_url,
        reader_config,
        api_key=settings.sefaria_api_key,
        timeout=settings.request_timeout_seconds,
    )
    if redis_repo is not None:
        fetcher = CachedChapterFetcher(fetcher, redis_repo, ttl_seconds=reader_config.chapter_cache_ttl_seconds)

    app.state.http_client = http_client
    app.state.redis_client = redis_client
    app.state.redis_repo = redis_repo
    app.state.reader_service = ReaderService(fetcher, reader_config, redis_repo=redis_repo)
    if redis_repo is not None:
        app.state.settings_store_factory = lambda user_id: RedisSettingsStore(redis_repo, user_id)
    else:
        settings_dir = Path(settings.settings_dir)
        app.state.settings_store_factory = lambda user_id: JsonFileSettingsStore(settings_dir / f"{user_id}.json")
    logger.info("Reader service started.")

    yield

    logger.info("Shutting down...")
    await http_client.aclose()
    if redis_client is not None:
        await redis_client.aclose()


def create_app() -> FastAPI:
    app = FastAPI(title="Reader Service", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception for request {request.url}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"type": "error", "data": {"message": "An internal server error occurred."}})

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
    app.include_router(reader_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("reader_service.main:app", host="0.0.0.0", port=7040)

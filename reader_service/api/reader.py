import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from reader_service.core.dependencies import get_reader_service, get_settings_store_factory
from reader_service.services.reader import refs
from reader_service.services.reader.errors import ChapterNotFound, SessionNotFound, SettingsError
from reader_service.services.reader.service import ReaderService
from reader_service.services.reader.settings_store import DisplaySettings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reader")


# --- Models ---
class OpenSessionRequest(BaseModel):
    ref: str
    translation: Optional[str] = None


class TranslationRequest(BaseModel):
    translation: str


# --- Endpoints ---
@router.get("/refs/{ref}")
async def describe_ref(ref: str):
    """Parsed parts and display form of a locator."""
    parsed = refs.parse(ref)
    return {
        "ref": parsed.to_ref(),
        "book": parsed.book,
        "section": parsed.section,
        "segment": parsed.segment,
        "display": refs.to_display(ref),
        "structureType": refs.detect_structure(parsed.section).value,
    }


@router.get("/chapters/{ref}")
async def get_chapter(
    ref: str,
    translation: Optional[str] = None,
    reader_service: ReaderService = Depends(get_reader_service),
):
    try:
        chapter = await reader_service.get_chapter(ref, translation)
    except ChapterNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return chapter.to_dict()


@router.post("/sessions", status_code=201)
async def open_session(
    request: OpenSessionRequest,
    reader_service: ReaderService = Depends(get_reader_service),
):
    try:
        session_id = await reader_service.open_session(request.ref, request.translation)
    except ChapterNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return reader_service.snapshot(session_id)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, reader_service: ReaderService = Depends(get_reader_service)):
    try:
        await reader_service.resume_session(session_id)
        return reader_service.snapshot(session_id)
    except (SessionNotFound, ChapterNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/sessions/{session_id}/next")
async def load_next(session_id: str, reader_service: ReaderService = Depends(get_reader_service)):
    try:
        grew = await reader_service.load_more(session_id)
        return {"grew": grew, **reader_service.snapshot(session_id)}
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/sessions/{session_id}/prev")
async def load_prev(session_id: str, reader_service: ReaderService = Depends(get_reader_service)):
    try:
        grew = await reader_service.load_prev(session_id)
        return {"grew": grew, **reader_service.snapshot(session_id)}
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/sessions/{session_id}/translation")
async def change_translation(
    session_id: str,
    request: TranslationRequest,
    reader_service: ReaderService = Depends(get_reader_service),
):
    try:
        refreshed = await reader_service.change_translation(session_id, request.translation)
        return {"refreshed": refreshed, **reader_service.snapshot(session_id)}
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/sessions/{session_id}", status_code=204)
async def close_session(session_id: str, reader_service: ReaderService = Depends(get_reader_service)):
    await reader_service.close_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/settings/{user_id}")
async def get_settings(user_id: str, store_factory=Depends(get_settings_store_factory)):
    try:
        settings = await store_factory(user_id).load()
    except SettingsError as e:
        logger.error(f"Failed to load settings for {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Settings storage unavailable.")
    return settings.model_dump()


@router.put("/settings/{user_id}")
async def put_settings(user_id: str, settings: DisplaySettings, store_factory=Depends(get_settings_store_factory)):
    try:
        await store_factory(user_id).save(settings)
    except SettingsError as e:
        logger.error(f"Failed to save settings for {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Settings storage unavailable.")
    return settings.model_dump()

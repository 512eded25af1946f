import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response

from cv_assistant.api.deps import get_gateway, get_session_store, load_session, read_upload
from cv_assistant.core.config import settings
from cv_assistant.core.rate_limit import rate_limit
from cv_assistant.core.session_store import SessionStore
from cv_assistant.normalize.normalize_input import InputRole, UploadedFile
from cv_assistant.schemas.session import PasteRequest, SessionSnapshot
from cv_assistant.services.extraction import ExtractionError
from cv_assistant.services.generation import GenerationGateway
from cv_assistant.services.presentation import DownloadUnavailable, build_download, session_snapshot
from cv_assistant.services.workflow import StageName, StagePreconditionError, WorkflowSession

router = APIRouter()
logger = logging.getLogger(__name__)

_LETTER_STAGES = (StageName.CREATE_COVER_LETTER, StageName.EVALUATE, StageName.REGENERATE)


async def _run_stage(
    session: WorkflowSession,
    action: Callable[[], Awaitable[None]],
    *busy_stages: StageName,
) -> SessionSnapshot:
    try:
        session.ensure_not_running(*busy_stages)
        await action()
    except StagePreconditionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return session_snapshot(session)


@router.post("/sessions", response_model=SessionSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session(
    store: SessionStore = Depends(get_session_store),
    gateway: GenerationGateway = Depends(get_gateway),
):
    return session_snapshot(store.create(gateway))


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    return session_snapshot(load_session(store, session_id))


@router.put("/sessions/{session_id}/inputs/{role}", response_model=SessionSnapshot)
async def paste_input(
    session_id: str,
    role: InputRole,
    payload: PasteRequest,
    store: SessionStore = Depends(get_session_store),
):
    session = load_session(store, session_id)
    session.set_pasted(role, payload.text)
    return session_snapshot(session)


@router.post("/sessions/{session_id}/inputs/{role}/upload", response_model=SessionSnapshot)
@rate_limit()
async def upload_input(
    request: Request,
    session_id: str,
    role: InputRole,
    file: UploadFile = File(...),
    store: SessionStore = Depends(get_session_store),
):
    _ = request
    session = load_session(store, session_id)
    try:
        content = await read_upload(file, settings.max_upload_bytes)
    except ExtractionError as exc:
        session.reject_upload(role, exc)
        return session_snapshot(session)
    uploaded = UploadedFile(
        filename=file.filename or "uploaded-file",
        content_type=file.content_type or "",
        content=content,
    )
    await session.ingest_file(role, uploaded)
    return session_snapshot(session)


@router.delete("/sessions/{session_id}/inputs/{role}", response_model=SessionSnapshot)
async def clear_input(session_id: str, role: InputRole, store: SessionStore = Depends(get_session_store)):
    session = load_session(store, session_id)
    session.clear_input(role)
    return session_snapshot(session)


@router.post("/sessions/{session_id}/analyze", response_model=SessionSnapshot)
@rate_limit()
async def analyze(request: Request, session_id: str, store: SessionStore = Depends(get_session_store)):
    _ = request
    session = load_session(store, session_id)
    return await _run_stage(session, session.analyze, StageName.ANALYZE)


@router.post("/sessions/{session_id}/cv", response_model=SessionSnapshot)
@rate_limit()
async def create_cv(request: Request, session_id: str, store: SessionStore = Depends(get_session_store)):
    _ = request
    session = load_session(store, session_id)
    return await _run_stage(session, session.create_cv, StageName.CREATE_CV)


@router.post("/sessions/{session_id}/cover-letter", response_model=SessionSnapshot)
@rate_limit()
async def create_cover_letter(request: Request, session_id: str, store: SessionStore = Depends(get_session_store)):
    _ = request
    session = load_session(store, session_id)
    return await _run_stage(session, session.generate_cover_letter, *_LETTER_STAGES)


@router.post("/sessions/{session_id}/evaluate", response_model=SessionSnapshot)
@rate_limit()
async def evaluate_cover_letter(request: Request, session_id: str, store: SessionStore = Depends(get_session_store)):
    _ = request
    session = load_session(store, session_id)
    return await _run_stage(session, session.evaluate, *_LETTER_STAGES)


@router.post("/sessions/{session_id}/regenerate", response_model=SessionSnapshot)
@rate_limit()
async def regenerate_cover_letter(request: Request, session_id: str, store: SessionStore = Depends(get_session_store)):
    _ = request
    session = load_session(store, session_id)
    return await _run_stage(session, session.regenerate_cover_letter, *_LETTER_STAGES)


@router.get("/sessions/{session_id}/download/{artifact}")
async def download_artifact(
    session_id: str,
    artifact: str,
    fmt: str = Query(default="txt", alias="format"),
    store: SessionStore = Depends(get_session_store),
):
    session = load_session(store, session_id)
    try:
        download = build_download(session, artifact, fmt)
    except DownloadUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    logger.info("download_served session=%s artifact=%s format=%s bytes=%s", session_id, artifact, fmt, len(download.content))
    return Response(
        content=download.content,
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )

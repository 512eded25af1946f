from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException, UploadFile, status

from cv_assistant.core.session_store import SessionNotFound, SessionStore, session_store
from cv_assistant.services.extraction import ExtractionError, ExtractionErrorKind
from cv_assistant.services.generation import GenerationGateway
from cv_assistant.services.workflow import WorkflowSession

UPLOAD_CHUNK_BYTES = 64 * 1024


@lru_cache(maxsize=1)
def get_gateway() -> GenerationGateway:
    return GenerationGateway()


def get_session_store() -> SessionStore:
    return session_store


def load_session(store: SessionStore, session_id: str) -> WorkflowSession:
    try:
        return store.get(session_id)
    except SessionNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found or expired. Please start again.",
        ) from exc


def _format_limit(max_bytes: int) -> str:
    if max_bytes >= 1024 * 1024:
        return f"{max_bytes // (1024 * 1024)} MB"
    return f"{max(1, max_bytes // 1024)} KB"


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    """Read an upload in chunks; going over ``max_bytes`` is a ``too_large`` extraction error."""
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise ExtractionError(
                ExtractionErrorKind.TOO_LARGE,
                f"File too large. Maximum allowed size is {_format_limit(max_bytes)}.",
                diagnostic=f"upload exceeded limit={max_bytes} file={file.filename}",
            )
        chunks.append(chunk)
    return b"".join(chunks)

import asyncio
import logging

from fastapi import APIRouter, File, Request, UploadFile

from cv_assistant.api.deps import read_upload
from cv_assistant.core.config import settings
from cv_assistant.core.rate_limit import rate_limit
from cv_assistant.schemas.api import ExtractTextResponse
from cv_assistant.services.extraction import ExtractionError, extract_text

router = APIRouter()
logger = logging.getLogger(__name__)

NO_FILE_MESSAGE = "No file provided."


@router.post("/extract-text", response_model=ExtractTextResponse, response_model_exclude_none=True)
@rate_limit()
async def extract_text_from_upload(request: Request, file: UploadFile | None = File(None)):
    _ = request
    if file is None:
        logger.info("extract_text_request_without_file")
        return ExtractTextResponse(success=False, error=NO_FILE_MESSAGE)

    filename = file.filename or "uploaded-file"
    try:
        content = await read_upload(file, settings.max_upload_bytes)
        logger.info("extract_text_request file=%s type=%s size=%s", filename, file.content_type, len(content))
        extracted = await asyncio.to_thread(extract_text, content, file.content_type or "", len(content))
    except ExtractionError as exc:
        logger.warning("extract_text_failed file=%s kind=%s diagnostic=%s", filename, exc.kind.value, exc.diagnostic)
        return ExtractTextResponse(success=False, error=exc.user_message)
    return ExtractTextResponse(success=True, text=extracted.text, error=extracted.warning)

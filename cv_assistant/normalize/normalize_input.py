from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from cv_assistant.services.extraction import (
    MIME_DOCX,
    MIME_MSWORD,
    MIME_PDF,
    MIME_PLAIN_TEXT,
    PERMITTED_MIME_TYPES,
    ExtractionError,
    ExtractionErrorKind,
    extract_text,
    normalize_mime_type,
)

logger = logging.getLogger(__name__)


class InputRole(str, Enum):
    CV = "cv"
    JOB_DESCRIPTION = "job_description"

    @property
    def label(self) -> str:
        return "CV" if self is InputRole.CV else "Job Description"


class IngestState(str, Enum):
    EMPTY = "empty"
    PASTED = "pasted"
    UPLOADING = "uploading"
    PARSING = "parsing"
    READY = "ready"
    FAILED = "failed"
    AWAITING_PASTE = "awaiting_paste"


class IngestPath(str, Enum):
    TEXT = "text"
    PDF = "pdf"
    WORD = "word"
    OTHER = "other"


# .rtf and .odt are accepted uploads that are never auto-processed
ACCEPTED_EXTENSIONS = {
    "txt": IngestPath.TEXT,
    "pdf": IngestPath.PDF,
    "doc": IngestPath.WORD,
    "docx": IngestPath.WORD,
    "rtf": IngestPath.OTHER,
    "odt": IngestPath.OTHER,
}

UNRECOGNIZED_MESSAGE = "Could not automatically process this file type. Please paste the content manually."


@dataclass
class InputDocument:
    role: InputRole
    raw_text: str = ""
    source_label: str | None = None
    ingest_state: IngestState = IngestState.EMPTY
    message: str | None = None
    error_kind: str | None = None

    @property
    def is_processing(self) -> bool:
        return self.ingest_state in {IngestState.UPLOADING, IngestState.PARSING}

    @property
    def is_usable(self) -> bool:
        return self.ingest_state in {IngestState.PASTED, IngestState.READY}

    def has_enough_text(self, min_chars: int) -> bool:
        return self.is_usable and len(self.raw_text.strip()) >= min_chars


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


ProgressCallback = Callable[[InputDocument], None]


def empty_document(role: InputRole) -> InputDocument:
    return InputDocument(role=role)


def extension_of(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].strip().lower()


def classify_upload(filename: str, content_type: str | None) -> IngestPath:
    mime = normalize_mime_type(content_type)
    ext = extension_of(filename)

    if mime not in PERMITTED_MIME_TYPES:
        if ext not in ACCEPTED_EXTENSIONS:
            accepted = ", ".join(f".{item}" for item in ACCEPTED_EXTENSIONS)
            shown = mime or (f".{ext}" if ext else "unknown")
            raise ExtractionError(
                ExtractionErrorKind.UNSUPPORTED_TYPE,
                f"Unsupported file type ({shown}). Please use {accepted}.",
                diagnostic=f"mime={mime or '<none>'} ext={ext or '<none>'}",
            )
        logger.info("upload_classified_by_extension file=%s mime=%s ext=%s", filename, mime or "<none>", ext)

    if mime == MIME_PLAIN_TEXT or ext == "txt":
        return IngestPath.TEXT
    if mime == MIME_PDF or ext == "pdf":
        return IngestPath.PDF
    if mime in (MIME_MSWORD, MIME_DOCX) or ext in ("doc", "docx"):
        return IngestPath.WORD
    return ACCEPTED_EXTENSIONS.get(ext, IngestPath.OTHER)


def normalize_pasted(text: str, role: InputRole) -> InputDocument:
    if not (text or "").strip():
        return empty_document(role)
    return InputDocument(role=role, raw_text=text, ingest_state=IngestState.PASTED)


def _emit(on_progress: ProgressCallback | None, document: InputDocument) -> None:
    if on_progress is not None:
        on_progress(dataclasses.replace(document))


def _failed(role: InputRole, exc: ExtractionError, *, source_label: str | None) -> InputDocument:
    return InputDocument(
        role=role,
        source_label=source_label,
        ingest_state=IngestState.FAILED,
        message=exc.user_message,
        error_kind=exc.kind.value,
    )


async def _normalize_pdf(
    file: UploadedFile,
    role: InputRole,
    on_progress: ProgressCallback | None,
) -> InputDocument:
    _emit(on_progress, InputDocument(role=role, source_label=file.filename, ingest_state=IngestState.PARSING))
    try:
        extracted = await asyncio.to_thread(extract_text, file.content, MIME_PDF, file.size)
    except ExtractionError as exc:
        logger.warning(
            "pdf_ingest_failed role=%s file=%s kind=%s diagnostic=%s",
            role.value,
            file.filename,
            exc.kind.value,
            exc.diagnostic,
        )
        return _failed(role, exc, source_label=None)
    except Exception:  # noqa: BLE001 - ingestion failures stay local to the role
        logger.exception("pdf_ingest_crashed role=%s file=%s", role.value, file.filename)
        return InputDocument(
            role=role,
            ingest_state=IngestState.FAILED,
            message=(
                "An unexpected error occurred while processing the PDF. "
                "Please paste the text manually."
            ),
            error_kind=ExtractionErrorKind.PARSE_ERROR.value,
        )

    if not extracted.text:
        return InputDocument(
            role=role,
            source_label=file.filename,
            ingest_state=IngestState.FAILED,
            message=extracted.warning,
            error_kind=ExtractionErrorKind.INVALID_DOCUMENT.value,
        )
    logger.info("pdf_ingested role=%s file=%s chars=%s", role.value, file.filename, len(extracted.text))
    return InputDocument(
        role=role,
        raw_text=extracted.text,
        source_label=file.filename,
        ingest_state=IngestState.READY,
    )


async def normalize_file(
    file: UploadedFile,
    role: InputRole,
    *,
    on_progress: ProgressCallback | None = None,
) -> InputDocument:
    """Ingest one uploaded file for ``role``.

    The result never merges with whatever the role held before. ``on_progress``
    sees the intermediate ``uploading`` and ``parsing`` states.
    """
    logger.info(
        "ingest_file_received role=%s file=%s type=%s size=%s",
        role.value,
        file.filename,
        file.content_type or "<none>",
        file.size,
    )
    _emit(on_progress, InputDocument(role=role, source_label=file.filename, ingest_state=IngestState.UPLOADING))

    try:
        path = classify_upload(file.filename, file.content_type)
    except ExtractionError as exc:
        logger.warning("ingest_rejected role=%s file=%s diagnostic=%s", role.value, file.filename, exc.diagnostic)
        return _failed(role, exc, source_label=None)

    if path is IngestPath.TEXT:
        try:
            extracted = extract_text(file.content, MIME_PLAIN_TEXT, file.size)
        except ExtractionError as exc:
            return _failed(role, exc, source_label=None)
        return InputDocument(
            role=role,
            raw_text=extracted.text,
            source_label=file.filename,
            ingest_state=IngestState.READY,
        )

    if path is IngestPath.PDF:
        return await _normalize_pdf(file, role, on_progress)

    if path is IngestPath.WORD:
        word_mime = MIME_MSWORD if extension_of(file.filename) == "doc" else MIME_DOCX
        try:
            extract_text(file.content, word_mime, file.size)
        except ExtractionError as exc:
            return InputDocument(
                role=role,
                source_label=file.filename,
                ingest_state=IngestState.AWAITING_PASTE,
                message=f"Uploaded {file.filename}. {exc.user_message}",
                error_kind=exc.kind.value,
            )

    logger.info("ingest_unrecognized role=%s file=%s type=%s", role.value, file.filename, file.content_type)
    return InputDocument(
        role=role,
        source_label=file.filename,
        ingest_state=IngestState.AWAITING_PASTE,
        message=f"Uploaded {file.filename}. {UNRECOGNIZED_MESSAGE}",
        error_kind=ExtractionErrorKind.MANUAL_PASTE_REQUIRED.value,
    )

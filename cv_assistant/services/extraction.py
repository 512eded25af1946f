"""Turn uploaded bytes into plain text.

Plain text is decoded directly, PDFs go through ``pypdf`` and Word documents
are never parsed: they always come back as ``manual_paste_required`` so the
caller can tell "nothing usable" apart from "cannot process at all".
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from cv_assistant.core.config import settings
from cv_assistant.core.log import clip
from cv_assistant.parsing.pdf import parse_pdf

logger = logging.getLogger(__name__)

MIME_PLAIN_TEXT = "text/plain"
MIME_PDF = "application/pdf"
MIME_MSWORD = "application/msword"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

PERMITTED_MIME_TYPES = frozenset({MIME_PLAIN_TEXT, MIME_PDF, MIME_MSWORD, MIME_DOCX})
WORD_MIME_TYPES = frozenset({MIME_MSWORD, MIME_DOCX})

EMPTY_PDF_WARNING = (
    "PDF parsed, but no text content was extracted. The PDF might be image-based or empty."
)
MANUAL_PASTE_MESSAGE = (
    "Automatic text extraction for Word files isn't supported. "
    "Please copy the content and paste it into the text area."
)

# pdf parsers occasionally fail by trying to open fixtures from their own test suite
_LIBRARY_FIXTURE_PATTERN = re.compile(r"\btests?[/\\]+data\b", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_USER_DETAIL_MAX_CHARS = 100


class ExtractionErrorKind(str, Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"
    INVALID_DOCUMENT = "invalid_document"
    PARSE_ERROR = "parse_error"
    READ_ERROR = "read_error"
    MANUAL_PASTE_REQUIRED = "manual_paste_required"


class ExtractionError(Exception):
    def __init__(self, kind: ExtractionErrorKind, user_message: str, *, diagnostic: str = ""):
        super().__init__(user_message)
        self.kind = kind
        self.user_message = user_message
        self.diagnostic = diagnostic or user_message


@dataclass(frozen=True)
class ExtractedText:
    text: str
    warning: str | None = None


def normalize_mime_type(value: str | None) -> str:
    return (value or "").split(";", 1)[0].strip().lower()


def _sanitize_detail(message: str) -> str:
    cleaned = _CONTROL_CHARS.sub(" ", message)
    cleaned = " ".join(cleaned.split())
    if len(cleaned) > _USER_DETAIL_MAX_CHARS:
        return cleaned[:_USER_DETAIL_MAX_CHARS] + "..."
    return cleaned


def _decode_plain_text(content: bytes) -> ExtractedText:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("text_decode_failed size=%s: %s", len(content), exc)
        raise ExtractionError(
            ExtractionErrorKind.READ_ERROR,
            "Could not read the selected .txt file. Please make sure it is UTF-8 encoded.",
            diagnostic=f"utf-8 decode failed: {exc}",
        ) from exc
    logger.info("text_decoded chars=%s", len(text))
    return ExtractedText(text=text)


def _extract_pdf(content: bytes, size_bytes: int) -> ExtractedText:
    if size_bytes > settings.max_pdf_bytes:
        limit_mb = settings.max_pdf_bytes // (1024 * 1024)
        raise ExtractionError(
            ExtractionErrorKind.TOO_LARGE,
            f"File too large. Maximum allowed PDF size is {limit_mb} MB.",
            diagnostic=f"size={size_bytes} limit={settings.max_pdf_bytes}",
        )

    if not content:
        logger.warning("pdf_empty_buffer size=%s", size_bytes)
        raise ExtractionError(
            ExtractionErrorKind.INVALID_DOCUMENT,
            "The PDF has no pages. Please upload a valid PDF or paste the text manually.",
            diagnostic="empty buffer, zero pages",
        )

    logger.info("pdf_parse_started size=%s", size_bytes)
    try:
        parsed = parse_pdf(content)
    except Exception as exc:  # noqa: BLE001 - every library failure is classified below
        raw_message = str(exc) or exc.__class__.__name__
        if _LIBRARY_FIXTURE_PATTERN.search(raw_message):
            diagnostic = f"pdf library fixture defect ({exc.__class__.__name__}): {clip(raw_message)}"
        else:
            diagnostic = f"{exc.__class__.__name__}: {clip(raw_message)}"
        logger.error("pdf_parse_failed size=%s diagnostic=%s", size_bytes, diagnostic)
        raise ExtractionError(
            ExtractionErrorKind.PARSE_ERROR,
            "PDF parsing failed. Please ensure the file is a valid PDF. "
            f"(Details: {_sanitize_detail(raw_message)})",
            diagnostic=diagnostic,
        ) from exc

    logger.info("pdf_parsed pages=%s raw_chars=%s", parsed.numpages, len(parsed.text))
    if parsed.numpages == 0:
        raise ExtractionError(
            ExtractionErrorKind.INVALID_DOCUMENT,
            "The PDF has no pages. Please upload a valid PDF or paste the text manually.",
            diagnostic="parser returned zero pages",
        )

    text = parsed.text.strip()
    if not text:
        logger.warning("pdf_no_text pages=%s", parsed.numpages)
        return ExtractedText(text="", warning=EMPTY_PDF_WARNING)
    return ExtractedText(text=text)


def extract_text(content: bytes, mime_type: str, size_bytes: int | None = None) -> ExtractedText:
    declared = normalize_mime_type(mime_type)
    size = len(content) if size_bytes is None else size_bytes
    logger.info("extract_text_received mime=%s size=%s", declared or "<none>", size)

    if declared not in PERMITTED_MIME_TYPES:
        raise ExtractionError(
            ExtractionErrorKind.UNSUPPORTED_TYPE,
            "Unsupported file type. Please use a .txt, .pdf, .doc or .docx file.",
            diagnostic=f"mime={declared or '<none>'}",
        )

    if declared == MIME_PLAIN_TEXT:
        return _decode_plain_text(content)

    if declared in WORD_MIME_TYPES:
        logger.info("word_document_declined mime=%s", declared)
        raise ExtractionError(
            ExtractionErrorKind.MANUAL_PASTE_REQUIRED,
            MANUAL_PASTE_MESSAGE,
            diagnostic=f"word extraction is not attempted (mime={declared})",
        )

    return _extract_pdf(content, size)

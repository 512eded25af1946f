import os
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from cv_assistant.normalize.normalize_input import (  # noqa: E402
    UNRECOGNIZED_MESSAGE,
    IngestPath,
    IngestState,
    InputRole,
    UploadedFile,
    classify_upload,
    normalize_file,
    normalize_pasted,
)
from cv_assistant.parsing.pdf import ParsedPdf  # noqa: E402
from cv_assistant.services.extraction import (  # noqa: E402
    EMPTY_PDF_WARNING,
    MANUAL_PASTE_MESSAGE,
    MIME_DOCX,
    ExtractionError,
    ExtractionErrorKind,
)


class ClassifyUploadTests(unittest.TestCase):
    def test_declared_mime_wins(self):
        self.assertIs(classify_upload("resume", "application/pdf"), IngestPath.PDF)
        self.assertIs(classify_upload("resume", "text/plain"), IngestPath.TEXT)
        self.assertIs(classify_upload("resume", MIME_DOCX), IngestPath.WORD)

    def test_extension_is_used_when_mime_is_missing_or_generic(self):
        self.assertIs(classify_upload("Resume.PDF", "application/octet-stream"), IngestPath.PDF)
        self.assertIs(classify_upload("notes.txt", None), IngestPath.TEXT)
        self.assertIs(classify_upload("cv.doc", ""), IngestPath.WORD)
        self.assertIs(classify_upload("cv.rtf", "application/rtf"), IngestPath.OTHER)
        self.assertIs(classify_upload("cv.odt", ""), IngestPath.OTHER)

    def test_unknown_type_is_rejected(self):
        with self.assertRaises(ExtractionError) as ctx:
            classify_upload("photo.png", "image/png")
        self.assertEqual(ctx.exception.kind, ExtractionErrorKind.UNSUPPORTED_TYPE)
        self.assertIn("image/png", ctx.exception.user_message)


class NormalizePastedTests(unittest.TestCase):
    def test_whitespace_only_is_empty(self):
        document = normalize_pasted("  \n\t", InputRole.CV)
        self.assertIs(document.ingest_state, IngestState.EMPTY)
        self.assertEqual(document.raw_text, "")

    def test_pasted_text_is_kept_verbatim(self):
        document = normalize_pasted("  Jane Doe\n", InputRole.JOB_DESCRIPTION)
        self.assertIs(document.ingest_state, IngestState.PASTED)
        self.assertEqual(document.raw_text, "  Jane Doe\n")
        self.assertIsNone(document.source_label)


class NormalizeFileTests(unittest.IsolatedAsyncioTestCase):
    async def test_text_file_is_ready(self):
        file = UploadedFile("cv.txt", "text/plain", "Jane Doe\nPython".encode("utf-8"))
        document = await normalize_file(file, InputRole.CV)
        self.assertIs(document.ingest_state, IngestState.READY)
        self.assertEqual(document.raw_text, "Jane Doe\nPython")
        self.assertEqual(document.source_label, "cv.txt")

    async def test_docx_waits_for_manual_paste(self):
        file = UploadedFile("resume.docx", MIME_DOCX, b"PK\x03\x04")
        document = await normalize_file(file, InputRole.CV)
        self.assertIs(document.ingest_state, IngestState.AWAITING_PASTE)
        self.assertEqual(document.raw_text, "")
        self.assertEqual(document.source_label, "resume.docx")
        self.assertEqual(document.message, f"Uploaded resume.docx. {MANUAL_PASTE_MESSAGE}")
        self.assertEqual(document.error_kind, ExtractionErrorKind.MANUAL_PASTE_REQUIRED.value)
        self.assertFalse(document.is_usable)

    async def test_rtf_takes_the_generic_manual_path(self):
        file = UploadedFile("cv.rtf", "application/rtf", b"{\\rtf1 Jane}")
        document = await normalize_file(file, InputRole.CV)
        self.assertIs(document.ingest_state, IngestState.AWAITING_PASTE)
        self.assertIn(UNRECOGNIZED_MESSAGE, document.message)

    async def test_unsupported_upload_fails_without_label(self):
        file = UploadedFile("photo.png", "image/png", b"\x89PNG")
        document = await normalize_file(file, InputRole.JOB_DESCRIPTION)
        self.assertIs(document.ingest_state, IngestState.FAILED)
        self.assertIsNone(document.source_label)
        self.assertEqual(document.error_kind, ExtractionErrorKind.UNSUPPORTED_TYPE.value)

    async def test_pdf_reports_progress_then_ready(self):
        seen = []
        file = UploadedFile("cv.pdf", "application/pdf", b"%PDF-1.4 stub")
        with patch(
            "cv_assistant.services.extraction.parse_pdf",
            return_value=ParsedPdf(numpages=1, text="  Jane Doe  "),
        ):
            document = await normalize_file(file, InputRole.CV, on_progress=lambda doc: seen.append(doc.ingest_state))
        self.assertEqual(seen, [IngestState.UPLOADING, IngestState.PARSING])
        self.assertIs(document.ingest_state, IngestState.READY)
        self.assertEqual(document.raw_text, "Jane Doe")
        self.assertEqual(document.source_label, "cv.pdf")

    async def test_pdf_parse_failure_clears_label(self):
        file = UploadedFile("cv.pdf", "application/pdf", b"%PDF-1.4 stub")
        with patch("cv_assistant.services.extraction.parse_pdf", side_effect=ValueError("bad xref")):
            document = await normalize_file(file, InputRole.CV)
        self.assertIs(document.ingest_state, IngestState.FAILED)
        self.assertIsNone(document.source_label)
        self.assertEqual(document.error_kind, ExtractionErrorKind.PARSE_ERROR.value)
        self.assertIn("bad xref", document.message)

    async def test_image_only_pdf_keeps_label_and_warns(self):
        file = UploadedFile("scan.pdf", "application/pdf", b"%PDF-1.4 stub")
        with patch("cv_assistant.services.extraction.parse_pdf", return_value=ParsedPdf(numpages=2, text="")):
            document = await normalize_file(file, InputRole.CV)
        self.assertIs(document.ingest_state, IngestState.FAILED)
        self.assertEqual(document.source_label, "scan.pdf")
        self.assertEqual(document.message, EMPTY_PDF_WARNING)
        self.assertEqual(document.raw_text, "")


if __name__ == "__main__":
    unittest.main()

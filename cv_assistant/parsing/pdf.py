from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO

from pypdf import PdfReader


@dataclass(frozen=True)
class ParsedPdf:
    numpages: int
    text: str


def parse_pdf(buffer: bytes) -> ParsedPdf:
    reader = PdfReader(BytesIO(buffer))
    page_chunks: list[str] = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        if page_text.strip():
            page_chunks.append(page_text)
    return ParsedPdf(numpages=len(reader.pages), text="\n\n".join(page_chunks))

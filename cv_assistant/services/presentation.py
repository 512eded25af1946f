from __future__ import annotations

import re
from dataclasses import dataclass

from cv_assistant.schemas.session import InputDocumentView, SessionSnapshot, StageView
from cv_assistant.services.workflow import WorkflowSession

_MARKDOWN_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^#+\s*", re.MULTILINE), ""),
    (re.compile(r"(\*\*|__)(.*?)\1"), r"\2"),
    (re.compile(r"(\*|_)(.*?)\1"), r"\2"),
    (re.compile(r"^[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"\[(.*?)\]\(.*?\)"), r"\1"),
    (re.compile(r"<.*?>"), ""),
    (re.compile(r"\\`"), "`"),
    (re.compile(r"`"), ""),
    (re.compile(r"---"), "\n"),
    (re.compile(r"\n{3,}"), "\n\n"),
)

DOWNLOAD_FORMATS = {
    "cv": ("md", "txt"),
    "cover_letter": ("txt",),
}


class DownloadUnavailable(LookupError):
    pass


@dataclass(frozen=True)
class DownloadFile:
    filename: str
    media_type: str
    content: bytes


def markdown_to_plain_text(markdown: str) -> str:
    text = markdown
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text


def build_download(session: WorkflowSession, artifact: str, fmt: str) -> DownloadFile:
    allowed = DOWNLOAD_FORMATS.get(artifact)
    if allowed is None:
        raise ValueError(f"Unknown artifact '{artifact}'.")
    if fmt not in allowed:
        raise ValueError(f"Format '{fmt}' is not available for {artifact}. Allowed: {', '.join(allowed)}.")

    if artifact == "cv":
        if session.cv_document is None:
            raise DownloadUnavailable("No generated CV to download yet.")
        if fmt == "md":
            return DownloadFile(
                filename="tailored_cv.md",
                media_type="text/markdown; charset=utf-8",
                content=session.cv_document.content.encode("utf-8"),
            )
        return DownloadFile(
            filename="tailored_cv.txt",
            media_type="text/plain; charset=utf-8",
            content=markdown_to_plain_text(session.cv_document.content).encode("utf-8"),
        )

    if session.cover_letter is None:
        raise DownloadUnavailable("No generated cover letter to download yet.")
    return DownloadFile(
        filename="cover_letter.txt",
        media_type="text/plain; charset=utf-8",
        content=session.cover_letter.content.encode("utf-8"),
    )


def session_snapshot(session: WorkflowSession) -> SessionSnapshot:
    return SessionSnapshot(
        session_id=session.session_id,
        inputs={
            role.value: InputDocumentView(
                raw_text=document.raw_text,
                source_label=document.source_label,
                ingest_state=document.ingest_state.value,
                message=document.message,
                error_kind=document.error_kind,
                characters=len(document.raw_text),
            )
            for role, document in session.inputs.items()
        },
        is_processing_input=session.is_processing_input,
        stages={
            name.value: StageView(status=state.status.value, error=state.error)
            for name, state in session.stages.items()
        },
        analysis=session.analysis,
        cv_document=session.cv_document,
        cover_letter=session.cover_letter,
        evaluation=session.evaluation,
        actions=session.available_actions(),
    )

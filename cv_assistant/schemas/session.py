from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from cv_assistant.schemas.documents import AnalysisResult, EvaluationResult, GeneratedDocument

IngestStateValue = Literal["empty", "pasted", "uploading", "parsing", "ready", "failed", "awaiting_paste"]
StageStatusValue = Literal["idle", "running", "succeeded", "failed"]


class PasteRequest(BaseModel):
    text: str = Field(default="", max_length=50000)


class InputDocumentView(BaseModel):
    raw_text: str
    source_label: str | None = None
    ingest_state: IngestStateValue
    message: str | None = None
    error_kind: str | None = None
    characters: int = Field(ge=0)


class StageView(BaseModel):
    status: StageStatusValue
    error: str | None = None


class SessionSnapshot(BaseModel):
    session_id: str
    inputs: dict[str, InputDocumentView]
    is_processing_input: bool
    stages: dict[str, StageView]
    analysis: AnalysisResult | None = None
    cv_document: GeneratedDocument | None = None
    cover_letter: GeneratedDocument | None = None
    evaluation: EvaluationResult | None = None
    actions: dict[str, bool] = Field(default_factory=dict)

from __future__ import annotations

from pydantic import BaseModel, Field

from cv_assistant.schemas.documents import AnalysisResult


class AnalyzeRequest(BaseModel):
    cv_text: str = Field(min_length=1, max_length=50000)
    job_description_text: str = Field(min_length=1, max_length=50000)


class CreateCvRequest(AnalyzeRequest):
    analysis: AnalysisResult | None = None


class CreateCoverLetterRequest(AnalyzeRequest):
    analysis: AnalysisResult | None = None
    prior_letter: str | None = Field(default=None, max_length=20000)
    prior_feedback: str | None = Field(default=None, max_length=10000)


class EvaluateCoverLetterRequest(BaseModel):
    cover_letter_text: str = Field(min_length=1, max_length=20000)
    job_description_text: str = Field(min_length=1, max_length=50000)


class ExtractTextResponse(BaseModel):
    success: bool
    text: str | None = None
    error: str | None = None

"""Lenient shapes for what the provider sends back.

Scores arrive as whatever number the model chose, so they are kept as floats
here and clamped by the gateway before becoming public result models.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from cv_assistant.schemas.documents import Suggestions


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RawScoreBreakdown(_ProviderModel):
    experience: float
    education: float
    skills: float


class RawAnalysis(_ProviderModel):
    match_percentage: float
    score_breakdown: RawScoreBreakdown | None = None
    suggestions: Suggestions


class RawGeneratedCv(_ProviderModel):
    generated_cv_markdown: str = ""


class RawGeneratedCoverLetter(_ProviderModel):
    generated_cover_letter_text: str = ""


class RawEvaluation(_ProviderModel):
    relevance_score: float
    tone_analysis: str = ""
    keyword_usage: str = ""
    clarity_and_conciseness: str = ""
    ats_friendliness: str = ""
    overall_feedback: str = Field(default="")

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DocumentKind = Literal["cv", "cover_letter"]
DocumentFormat = Literal["markdown", "plain_text"]


class ScoreBreakdown(BaseModel):
    experience: int = Field(ge=0, le=100)
    education: int = Field(ge=0, le=100)
    skills: int = Field(ge=0, le=100)


class Suggestions(BaseModel):
    keywords_to_add: list[str] = Field(default_factory=list)
    skills_to_emphasize: list[str] = Field(default_factory=list)
    experience_to_detail: str = ""


class AnalysisResult(BaseModel):
    match_percentage: int = Field(ge=0, le=100)
    score_breakdown: ScoreBreakdown | None = None
    suggestions: Suggestions = Field(default_factory=Suggestions)


class GeneratedDocument(BaseModel):
    kind: DocumentKind
    content: str
    format: DocumentFormat


class EvaluationResult(BaseModel):
    relevance_score: int = Field(ge=0, le=100)
    tone_analysis: str = Field(min_length=1)
    keyword_usage: str = Field(min_length=1)
    clarity_and_conciseness: str = Field(min_length=1)
    ats_friendliness: str = Field(min_length=1)
    overall_feedback: str = Field(min_length=1)

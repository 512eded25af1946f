"""Generation gateway: the four provider-backed operations.

Each operation renders a named prompt, asks the provider for a JSON object,
validates it with pydantic right away and clamps every score into 0..100.
Nothing here keeps state between calls.
"""
from __future__ import annotations

import logging
import math
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from cv_assistant.ai.factory import get_ai_client
from cv_assistant.ai.prompts import (
    CREATE_COVER_LETTER,
    CREATE_CV,
    CV_ANALYZER,
    EVALUATE_COVER_LETTER,
    PromptTemplate,
    optional_section,
)
from cv_assistant.ai.types import AIClient
from cv_assistant.core.config import settings
from cv_assistant.core.log import clip
from cv_assistant.schemas.documents import (
    AnalysisResult,
    EvaluationResult,
    GeneratedDocument,
    ScoreBreakdown,
)
from cv_assistant.schemas.provider import (
    RawAnalysis,
    RawEvaluation,
    RawGeneratedCoverLetter,
    RawGeneratedCv,
)

logger = logging.getLogger(__name__)

INVALID_INPUT = "invalid_input"
GENERATION_FAILED = "generation_failed"
INCOMPLETE_RESPONSE = "incomplete_response"

SHORT_OUTPUT_CHARS = 100
_PROVIDER_MESSAGE_MAX_CHARS = 300

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n?```$", re.DOTALL)
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_MARKUP_TOKENS = re.compile(r"(^#{1,6}\s)|(\*\*)|(^\s*[*+]\s)|(`)", re.MULTILINE)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class GenerationError(RuntimeError):
    def __init__(self, message: str, *, code: str = GENERATION_FAILED):
        super().__init__(message)
        self.code = code


def clamp_score(value: float) -> int:
    if value is None or math.isnan(value):
        return 0
    return int(round(max(0.0, min(100.0, value))))


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    return match.group(1).strip() if match else stripped


def normalize_plain_text(text: str) -> str:
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in normalized.split("\n")]
    return _EXCESS_BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


class GenerationGateway:
    def __init__(self, client: AIClient | None = None, *, min_input_chars: int | None = None):
        self._client = client
        self._min_input_chars = settings.min_input_chars if min_input_chars is None else min_input_chars

    @property
    def client(self) -> AIClient:
        if self._client is None:
            self._client = get_ai_client()
        return self._client

    def _require_text(self, value: str, label: str) -> str:
        text = value or ""
        if len(text.strip()) < self._min_input_chars:
            logger.warning("generation_invalid_input field=%s chars=%s", label, len(text.strip()))
            raise GenerationError(
                f"Valid {label} must be provided (at least {self._min_input_chars} characters).",
                code=INVALID_INPUT,
            )
        return text

    async def _call(self, template: PromptTemplate, action: str, **values: str) -> dict[str, Any]:
        messages = template.render(**values)
        try:
            return await self.client.complete_json(messages, prompt_name=template.name)
        except GenerationError:
            raise
        except Exception as exc:  # noqa: BLE001 - provider failures become GenerationError
            logger.error("generation_provider_failed prompt=%s: %s", template.name, clip(exc))
            detail = clip(exc, _PROVIDER_MESSAGE_MAX_CHARS) or exc.__class__.__name__
            raise GenerationError(f"Failed to {action}: {detail}", code=GENERATION_FAILED) from exc

    def _validate(
        self,
        model: type[_ModelT],
        payload: dict[str, Any],
        action: str,
        *,
        code: str = GENERATION_FAILED,
    ) -> _ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.error(
                "generation_schema_invalid model=%s errors=%s",
                model.__name__,
                clip(exc.errors(include_url=False)),
            )
            raise GenerationError(
                f"Failed to {action}: the AI response is missing required fields.",
                code=code,
            ) from exc

    async def analyze(self, cv_text: str, job_description_text: str) -> AnalysisResult:
        cv = self._require_text(cv_text, "CV text")
        jd = self._require_text(job_description_text, "job description")
        logger.info("analyze_started cv_chars=%s jd_chars=%s", len(cv), len(jd))

        payload = await self._call(CV_ANALYZER, "analyze CV", cv_text=cv, job_description_text=jd)
        raw = self._validate(RawAnalysis, payload, "analyze CV")

        breakdown: ScoreBreakdown | None = None
        raw_scores = [raw.match_percentage]
        if raw.score_breakdown is None:
            logger.warning("analysis_missing_score_breakdown")
        else:
            raw_scores.extend(
                [raw.score_breakdown.experience, raw.score_breakdown.education, raw.score_breakdown.skills]
            )
            breakdown = ScoreBreakdown(
                experience=clamp_score(raw.score_breakdown.experience),
                education=clamp_score(raw.score_breakdown.education),
                skills=clamp_score(raw.score_breakdown.skills),
            )
        if any(not 0 <= score <= 100 for score in raw_scores):
            logger.warning("analysis_scores_clamped raw=%s", raw_scores)

        result = AnalysisResult(
            match_percentage=clamp_score(raw.match_percentage),
            score_breakdown=breakdown,
            suggestions=raw.suggestions,
        )
        logger.info("analyze_completed match=%s", result.match_percentage)
        return result

    async def create_cv(
        self,
        cv_text: str,
        job_description_text: str,
        analysis: AnalysisResult | None = None,
    ) -> GeneratedDocument:
        cv = self._require_text(cv_text, "CV text")
        jd = self._require_text(job_description_text, "job description")
        analysis_json = analysis.model_dump_json(indent=2) if analysis is not None else None
        logger.info("create_cv_started with_analysis=%s", analysis is not None)

        payload = await self._call(
            CREATE_CV,
            "generate CV",
            cv_text=cv,
            job_description_text=jd,
            analysis_section=optional_section("ANALYSIS OF THE ORIGINAL CV (JSON)", analysis_json),
        )
        raw = self._validate(RawGeneratedCv, payload, "generate CV")
        content = strip_code_fence(raw.generated_cv_markdown)
        if not content:
            raise GenerationError(
                "Failed to generate CV: the AI response was empty.",
                code=GENERATION_FAILED,
            )
        if not content.startswith("#"):
            logger.warning("generated_cv_missing_heading first_chars=%s", clip(content, 40))
        if len(content) < SHORT_OUTPUT_CHARS:
            logger.warning("generated_cv_short chars=%s", len(content))

        logger.info("create_cv_completed chars=%s", len(content))
        return GeneratedDocument(kind="cv", content=content, format="markdown")

    async def create_cover_letter(
        self,
        cv_text: str,
        job_description_text: str,
        analysis: AnalysisResult | None = None,
        prior_letter: str | None = None,
        prior_feedback: str | None = None,
    ) -> GeneratedDocument:
        cv = self._require_text(cv_text, "CV text")
        jd = self._require_text(job_description_text, "job description")
        has_letter = bool((prior_letter or "").strip())
        has_feedback = bool((prior_feedback or "").strip())
        if has_letter and not has_feedback:
            logger.warning("cover_letter_revision_without_feedback")
        if has_feedback and not has_letter:
            logger.warning("cover_letter_feedback_without_letter ignoring feedback")
            prior_feedback = None
        mode = "revision" if has_letter else "fresh"
        logger.info("create_cover_letter_started mode=%s with_analysis=%s", mode, analysis is not None)

        analysis_json = analysis.model_dump_json(indent=2) if analysis is not None else None
        payload = await self._call(
            CREATE_COVER_LETTER,
            "generate cover letter",
            cv_text=cv,
            job_description_text=jd,
            analysis_section=optional_section("ANALYSIS OF THE CV AGAINST THE JOB (JSON)", analysis_json),
            prior_letter_section=optional_section("PREVIOUS COVER LETTER", prior_letter),
            feedback_section=optional_section("FEEDBACK TO ADDRESS", prior_feedback),
        )
        raw = self._validate(RawGeneratedCoverLetter, payload, "generate cover letter")
        content = normalize_plain_text(strip_code_fence(raw.generated_cover_letter_text))
        if not content:
            raise GenerationError(
                "Failed to generate cover letter: the AI response was empty.",
                code=GENERATION_FAILED,
            )
        if _MARKUP_TOKENS.search(content):
            logger.warning("cover_letter_contains_markup mode=%s", mode)
        if len(content) < SHORT_OUTPUT_CHARS:
            logger.warning("cover_letter_short chars=%s", len(content))

        logger.info("create_cover_letter_completed mode=%s chars=%s", mode, len(content))
        return GeneratedDocument(kind="cover_letter", content=content, format="plain_text")

    async def evaluate_cover_letter(self, cover_letter_text: str, job_description_text: str) -> EvaluationResult:
        letter = self._require_text(cover_letter_text, "cover letter text")
        jd = self._require_text(job_description_text, "job description")
        logger.info("evaluate_started letter_chars=%s jd_chars=%s", len(letter), len(jd))

        payload = await self._call(
            EVALUATE_COVER_LETTER,
            "evaluate cover letter",
            cover_letter_text=letter,
            job_description_text=jd,
        )
        raw = self._validate(RawEvaluation, payload, "evaluate cover letter", code=INCOMPLETE_RESPONSE)
        fields = {
            "tone_analysis": raw.tone_analysis.strip(),
            "keyword_usage": raw.keyword_usage.strip(),
            "clarity_and_conciseness": raw.clarity_and_conciseness.strip(),
            "ats_friendliness": raw.ats_friendliness.strip(),
            "overall_feedback": raw.overall_feedback.strip(),
        }
        missing = [name for name, value in fields.items() if not value]
        if missing:
            logger.error("evaluation_incomplete missing=%s", missing)
            raise GenerationError(
                "Failed to evaluate cover letter: the AI response is missing required evaluation fields.",
                code=INCOMPLETE_RESPONSE,
            )
        if not 0 <= raw.relevance_score <= 100:
            logger.warning("evaluation_score_clamped raw=%s", raw.relevance_score)

        result = EvaluationResult(relevance_score=clamp_score(raw.relevance_score), **fields)
        logger.info("evaluate_completed relevance=%s", result.relevance_score)
        return result

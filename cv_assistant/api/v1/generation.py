from fastapi import APIRouter, Depends, HTTPException, Request, status

from cv_assistant.api.deps import get_gateway
from cv_assistant.core.rate_limit import rate_limit
from cv_assistant.schemas.api import (
    AnalyzeRequest,
    CreateCoverLetterRequest,
    CreateCvRequest,
    EvaluateCoverLetterRequest,
)
from cv_assistant.schemas.documents import AnalysisResult, EvaluationResult, GeneratedDocument
from cv_assistant.services.generation import INVALID_INPUT, GenerationError, GenerationGateway

router = APIRouter()


def _raise_generation_http_error(exc: GenerationError) -> None:
    if exc.code == INVALID_INPUT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("/analyze", response_model=AnalysisResult)
@rate_limit()
async def analyze(request: Request, payload: AnalyzeRequest, gateway: GenerationGateway = Depends(get_gateway)):
    _ = request
    try:
        return await gateway.analyze(payload.cv_text, payload.job_description_text)
    except GenerationError as exc:
        _raise_generation_http_error(exc)


@router.post("/create-cv", response_model=GeneratedDocument)
@rate_limit()
async def create_cv(request: Request, payload: CreateCvRequest, gateway: GenerationGateway = Depends(get_gateway)):
    _ = request
    try:
        return await gateway.create_cv(payload.cv_text, payload.job_description_text, payload.analysis)
    except GenerationError as exc:
        _raise_generation_http_error(exc)


@router.post("/create-cover-letter", response_model=GeneratedDocument)
@rate_limit()
async def create_cover_letter(
    request: Request,
    payload: CreateCoverLetterRequest,
    gateway: GenerationGateway = Depends(get_gateway),
):
    _ = request
    try:
        return await gateway.create_cover_letter(
            payload.cv_text,
            payload.job_description_text,
            payload.analysis,
            prior_letter=payload.prior_letter,
            prior_feedback=payload.prior_feedback,
        )
    except GenerationError as exc:
        _raise_generation_http_error(exc)


@router.post("/evaluate-cover-letter", response_model=EvaluationResult)
@rate_limit()
async def evaluate_cover_letter(
    request: Request,
    payload: EvaluateCoverLetterRequest,
    gateway: GenerationGateway = Depends(get_gateway),
):
    _ = request
    try:
        return await gateway.evaluate_cover_letter(payload.cover_letter_text, payload.job_description_text)
    except GenerationError as exc:
        _raise_generation_http_error(exc)

# app/api/v1/endpoints/ai.py
"""
Thin HTTP wrappers over the AI gateway client. Errors keep their status:
400 for empty input, 429/402 from the gateway, 502 for anything else.
"""
from fastapi import APIRouter, Depends

from app.core.deps import get_current_user, require_quiz_creator
from app.core.errors import to_http_exception
from app.models.user import User
from app.schemas.ai import (
    CleanedTextResponse, FormattedTextResponse, GenerateQuizRequest, GenerateQuizResponse,
    HighlightedTextResponse, SuggestCategoriesRequest, SuggestCategoriesResponse, TextRequest,
)
from app.services.ai_text_service import AIServiceError, AITextService, get_ai_service

router = APIRouter()


@router.post("/clean-ocr-text", response_model=CleanedTextResponse)
async def clean_ocr_text(
    payload: TextRequest,
    user: User = Depends(get_current_user),
    service: AITextService = Depends(get_ai_service),
):
    try:
        return CleanedTextResponse(cleanedText=await service.clean_ocr_text(payload.text))
    except AIServiceError as e:
        raise to_http_exception(e)


@router.post("/format-ocr-text", response_model=FormattedTextResponse)
async def format_ocr_text(
    payload: TextRequest,
    user: User = Depends(get_current_user),
    service: AITextService = Depends(get_ai_service),
):
    try:
        return FormattedTextResponse(formattedText=await service.format_ocr_text(payload.text))
    except AIServiceError as e:
        raise to_http_exception(e)


@router.post("/highlight-text", response_model=HighlightedTextResponse)
async def highlight_text(
    payload: TextRequest,
    user: User = Depends(get_current_user),
    service: AITextService = Depends(get_ai_service),
):
    try:
        return HighlightedTextResponse(highlightedText=await service.highlight_text(payload.text))
    except AIServiceError as e:
        raise to_http_exception(e)


@router.post("/suggest-categories", response_model=SuggestCategoriesResponse)
async def suggest_categories(
    payload: SuggestCategoriesRequest,
    user: User = Depends(require_quiz_creator),
    service: AITextService = Depends(get_ai_service),
):
    try:
        return await service.suggest_categories(
            document_title=payload.onboarding_document_title,
            document_text=payload.onboarding_document_plaintext,
            quiz_title=payload.quiz_title,
            company_name=payload.company_name or user.profile.company.name,
        )
    except AIServiceError as e:
        raise to_http_exception(e)


@router.post("/generate-quiz", response_model=GenerateQuizResponse)
async def generate_quiz(
    payload: GenerateQuizRequest,
    user: User = Depends(require_quiz_creator),
    service: AITextService = Depends(get_ai_service),
):
    try:
        return GenerateQuizResponse(questions=await service.generate_quiz_questions(payload.text))
    except AIServiceError as e:
        raise to_http_exception(e)

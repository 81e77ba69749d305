# app/core/errors.py
"""
Errors shared between services and the API layer, and their HTTP mapping.
"""
from fastapi import HTTPException, status

from app.services.ai_text_service import AIServiceError
from app.services.document_extraction import ExtractionError, UnsupportedDocumentTypeError
from app.services.quiz_generation import WorkflowError, WorkflowValidationError
from app.crud.errors import PersistenceError


def to_http_exception(exc: Exception) -> HTTPException:
    """Translates a service exception into the HTTPException the API reports."""
    if isinstance(exc, WorkflowValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, WorkflowError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, AIServiceError):
        # 429, 402 and 400 reach the caller as-is; everything else is a bad gateway
        return HTTPException(status_code=exc.status_code, detail=exc.message)
    if isinstance(exc, UnsupportedDocumentTypeError):
        return HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc))
    if isinstance(exc, ExtractionError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

# app/api/v1/endpoints/documents.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_user, require_admin, require_quiz_creator, require_elevated
from app.core.errors import to_http_exception
from app.crud import crud_document, crud_quiz
from app.crud.errors import PersistenceError
from app.db.session import get_db
from app.models.document import Document
from app.models.user import User
from app.schemas.ai import GenerateFromImagesRequest, GenerateFromImagesResponse
from app.schemas.document import (
    DocumentDeleted, DocumentListItem, DocumentOut, MaterialResponse, TextSegment,
)
from app.services.ai_text_service import AIServiceError, AITextService, get_ai_service
from app.services.document_extraction import ExtractionError, cached_document_text, prepare_document_text
from app.services.file_storage import LocalFileStorage, StoredFileNotFound, get_storage
from app.utils.highlight_utils import has_highlight_markers, render_highlighted

logger = logging.getLogger(__name__)

router = APIRouter()

ACCEPTED_CONTENT_TYPES = {
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
}


def _document_out(document: Document) -> DocumentOut:
    out = DocumentOut.model_validate(document)
    out.has_processed_text = cached_document_text(document.ocr_text) is not None
    return out


def get_company_document(document_id: int, user: User, db: Session) -> Document:
    document = crud_document.get_document(db, document_id, user.profile.company_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document


@router.post("", response_model=DocumentOut, status_code=status.HTTP_201_CREATED, summary="Upload a document")
async def upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    user: User = Depends(require_elevated),
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    if file.content_type not in ACCEPTED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="지원하지 않는 파일 형식입니다. PDF, PPT, DOC 파일만 업로드 가능합니다",
        )
    data = await file.read()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="파일 크기는 50MB를 초과할 수 없습니다",
        )

    key = storage.save(user.profile.company_id, file.filename or "document", data)
    document = crud_document.create_document(
        db,
        company_id=user.profile.company_id,
        title=title or file.filename or "document",
        file_url=key,
        file_type=file.content_type,
        file_size=len(data),
        uploaded_by=user.id,
    )
    logger.info(f"Document {document.id} uploaded by user {user.id}",
                extra={"document_id": document.id, "user_id": user.id})
    return _document_out(document)


@router.get("", response_model=List[DocumentListItem], summary="Company documents with quiz counts")
def list_documents(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    items = []
    for document, quiz_count in crud_document.list_documents(db, user.profile.company_id):
        item = DocumentListItem(**_document_out(document).model_dump(), quiz_count=quiz_count)
        items.append(item)
    return items


@router.get("/{document_id}", response_model=DocumentOut)
def read_document(document_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _document_out(get_company_document(document_id, user, db))


@router.get("/{document_id}/download", summary="Download the original file")
def download_document(
    document_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    document = get_company_document(document_id, user, db)
    try:
        path = storage.path_for(document.file_url)
    except StoredFileNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stored file not found")
    return FileResponse(path, media_type=document.file_type or "application/octet-stream", filename=document.title)


@router.delete("/{document_id}", response_model=DocumentDeleted, summary="Delete a document and its quizzes")
def delete_document(
    document_id: int,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    document = get_company_document(document_id, user, db)
    file_key = document.file_url
    deleted_quizzes = crud_document.delete_document(db, document)
    storage.delete(file_key)
    return DocumentDeleted(id=document_id, deleted_quizzes=deleted_quizzes)


@router.get("/{document_id}/material", response_model=MaterialResponse, summary="Processed study material")
async def read_material(
    document_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
    service: AITextService = Depends(get_ai_service),
):
    """
    Cached processed text is served as is. Otherwise the file is extracted and
    run through the text pipeline; highlighted output is cached on the row.
    When nothing can be extracted the client is told to offer the download.
    """
    document = get_company_document(document_id, user, db)
    try:
        result = await prepare_document_text(
            document.ocr_text,
            lambda: storage.read(document.file_url),
            document.file_type,
            service,
            filename=document.file_url,
        )
    except (ExtractionError, StoredFileNotFound) as e:
        logger.warning(f"Material for document {document_id} unavailable: {e}",
                       extra={"document_id": document_id})
        return MaterialResponse(
            document_id=document.id,
            title=document.title,
            fallback="download",
            error=str(e),
        )

    if not result.from_cache and has_highlight_markers(result.text):
        crud_document.update_ocr_text(db, document, result.text)

    return MaterialResponse(
        document_id=document.id,
        title=document.title,
        text=result.text,
        from_cache=result.from_cache,
        quality=result.quality.value if result.quality else None,
        paragraphs=[
            [TextSegment(text=s.text, emphasized=s.emphasized) for s in paragraph]
            for paragraph in render_highlighted(result.text)
        ],
    )


@router.post(
    "/{document_id}/generate-from-images",
    response_model=GenerateFromImagesResponse,
    summary="Generate and store categories and quizzes from page images",
)
async def generate_from_images(
    document_id: int,
    payload: GenerateFromImagesRequest,
    user: User = Depends(require_quiz_creator),
    db: Session = Depends(get_db),
    service: AITextService = Depends(get_ai_service),
):
    document = get_company_document(document_id, user, db)
    try:
        categories = await service.generate_quiz_from_images(payload.images)
        category_count, quiz_count, question_count = crud_quiz.save_image_quizzes(
            db, document=document, categories=categories, created_by=user.id
        )
    except (AIServiceError, PersistenceError) as e:
        raise to_http_exception(e)

    return GenerateFromImagesResponse(
        success=True,
        categories_created=category_count,
        quizzes_created=quiz_count,
        questions_created=question_count,
    )

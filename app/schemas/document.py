from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from app.models.document import DocumentStatus


class DocumentOut(BaseModel):
    id: int
    title: str
    file_url: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    status: DocumentStatus
    uploaded_by: int
    created_at: Optional[datetime] = None
    has_processed_text: bool = False

    class Config:
        from_attributes = True


class DocumentListItem(DocumentOut):
    quiz_count: int = 0


class DocumentDeleted(BaseModel):
    id: int
    deleted_quizzes: int


class TextSegment(BaseModel):
    text: str
    emphasized: bool = False


class MaterialResponse(BaseModel):
    document_id: int
    title: str
    text: Optional[str] = None
    from_cache: bool = False
    quality: Optional[str] = None
    paragraphs: List[List[TextSegment]] = []
    # "download" when automatic extraction was not possible
    fallback: Optional[str] = None
    error: Optional[str] = None

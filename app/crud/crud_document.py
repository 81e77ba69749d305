import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.document import Document, DocumentStatus
from app.models.quiz import Category, Quiz

logger = logging.getLogger(__name__)


def create_document(
    db: Session,
    *,
    company_id: int,
    title: str,
    file_url: str,
    file_type: Optional[str],
    file_size: int,
    uploaded_by: int,
) -> Document:
    document = Document(
        company_id=company_id,
        title=title,
        file_url=file_url,
        file_type=file_type,
        file_size=file_size,
        uploaded_by=uploaded_by,
        status=DocumentStatus.processing,
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    return document


def get_document(db: Session, document_id: int, company_id: int) -> Optional[Document]:
    """Company-scoped lookup; documents of other companies are simply not found."""
    return (
        db.query(Document)
        .filter(Document.id == document_id, Document.company_id == company_id)
        .first()
    )


def count_document_quizzes(db: Session, document_id: int) -> int:
    return (
        db.query(func.count(Quiz.id))
        .join(Category, Quiz.category_id == Category.id)
        .filter(Category.document_id == document_id)
        .scalar()
    ) or 0


def list_documents(db: Session, company_id: int) -> List[Tuple[Document, int]]:
    """Company documents, newest first, each with the number of quizzes generated from it."""
    quiz_counts = (
        db.query(Category.document_id.label("document_id"), func.count(Quiz.id).label("quiz_count"))
        .join(Quiz, Quiz.category_id == Category.id)
        .group_by(Category.document_id)
        .subquery()
    )
    rows = (
        db.query(Document, func.coalesce(quiz_counts.c.quiz_count, 0))
        .outerjoin(quiz_counts, quiz_counts.c.document_id == Document.id)
        .filter(Document.company_id == company_id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )
    return [(document, count) for document, count in rows]


def update_ocr_text(db: Session, document: Document, text: str) -> Document:
    document.ocr_text = text
    db.commit()
    db.refresh(document)
    return document


def set_status(db: Session, document: Document, status: DocumentStatus) -> Document:
    document.status = status
    db.commit()
    db.refresh(document)
    return document


def delete_document(db: Session, document: Document) -> int:
    """
    Deletes the document with its categories and their quizzes.
    Returns how many quizzes went with it.
    """
    quiz_count = count_document_quizzes(db, document.id)
    db.delete(document)
    db.commit()
    logger.info(f"Deleted document {document.id} and {quiz_count} quizzes")
    return quiz_count

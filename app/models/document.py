# app/models/document.py
import enum
from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey,
    TIMESTAMP, Enum as SAEnum, func
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class DocumentStatus(str, enum.Enum):
    processing = "processing"
    approved = "approved"
    failed = "failed"


class Document(Base):
    __tablename__ = 'documents'

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    # Key of the stored blob relative to UPLOAD_DIR
    file_url = Column(String(500), nullable=False)
    file_type = Column(String(150), nullable=True)
    file_size = Column(Integer, nullable=True)
    # Cleaned/highlighted text produced by the text pipeline
    ocr_text = Column(Text, nullable=True)
    status = Column(
        SAEnum(DocumentStatus, name='document_status'),
        nullable=False, default=DocumentStatus.processing
    )
    uploaded_by = Column(Integer, ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), onupdate=func.now())

    categories = relationship("Category", back_populates="document", cascade="all, delete-orphan")

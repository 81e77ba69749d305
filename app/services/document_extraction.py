# app/services/document_extraction.py
"""
Turns an uploaded document into quiz-ready text.

Only PDFs are extracted; other accepted upload types are stored and offered
for download but never processed automatically.
"""
import io
import logging
from dataclasses import dataclass
from typing import List, Optional

from PyPDF2 import PdfReader
from PyPDF2.errors import PyPdfError

from app.services.ai_text_service import AITextService
from app.services.text_pipeline import PipelineQuality, process_text
from app.utils.highlight_utils import has_highlight_markers

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"

# Malformed files surface from PyPDF2 as plain Python errors as well as its own
PDF_READ_ERRORS = (PyPdfError, ValueError, KeyError, IndexError, TypeError, AttributeError)


class ExtractionError(Exception):
    """No usable text could be pulled out of the document."""


class UnsupportedDocumentTypeError(ExtractionError):
    def __init__(self, file_type: str):
        super().__init__(f"Automatic extraction is not supported for '{file_type}'")
        self.file_type = file_type


@dataclass
class DocumentText:
    text: str
    from_cache: bool
    quality: Optional[PipelineQuality] = None


def is_pdf(file_type: Optional[str], filename: Optional[str] = None) -> bool:
    if file_type == PDF_MIME_TYPE:
        return True
    return bool(filename) and filename.lower().endswith(".pdf")


def extract_pdf_text(data: bytes) -> str:
    """
    Walks every page collecting positioned text runs. Runs on a page are
    joined with a space and pages are separated by a blank line.

    Raises:
        ExtractionError: unreadable file or no text on any page
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages: List[str] = []
        for page in reader.pages:
            runs: List[str] = []

            def collect(text, cm, tm, font_dict, font_size):
                if text:
                    runs.append(text)

            page.extract_text(visitor_text=collect)
            pages.append(" ".join(runs))
    except PDF_READ_ERRORS as e:
        raise ExtractionError(f"PDF could not be read: {e}") from e

    text = "\n\n".join(pages).strip()
    if not text:
        raise ExtractionError("PDF에서 텍스트를 찾지 못했습니다")
    return text


def extract_document_text(data: bytes, file_type: Optional[str], filename: Optional[str] = None) -> str:
    if not is_pdf(file_type, filename):
        raise UnsupportedDocumentTypeError(file_type or "unknown")
    return extract_pdf_text(data)


def cached_document_text(ocr_text: Optional[str]) -> Optional[str]:
    """Previously processed text, recognized by its highlight markers."""
    if ocr_text and has_highlight_markers(ocr_text):
        return ocr_text
    return None


async def prepare_document_text(
    ocr_text: Optional[str],
    load_bytes,
    file_type: Optional[str],
    service: AITextService,
    filename: Optional[str] = None,
) -> DocumentText:
    """
    Reuses cached processed text when present; otherwise extracts the file
    returned by ``load_bytes()`` and runs the text pipeline over it.

    ExtractionError propagates before any AI call is made.
    """
    cached = cached_document_text(ocr_text)
    if cached is not None:
        logger.info("Reusing cached processed text")
        return DocumentText(text=cached, from_cache=True)

    raw = extract_document_text(load_bytes(), file_type, filename)
    logger.info(f"Extracted {len(raw)} characters; running text pipeline")
    result = await process_text(raw, service)
    return DocumentText(text=result.text, from_cache=False, quality=result.quality)

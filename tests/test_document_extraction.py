import asyncio

import pytest

from app.services import document_extraction
from app.services.document_extraction import (
    ExtractionError, UnsupportedDocumentTypeError, cached_document_text, extract_document_text,
    extract_pdf_text, is_pdf, prepare_document_text,
)
from app.services.text_pipeline import PipelineQuality

from fakes import blank_pdf


def test_is_pdf_by_type_or_extension():
    assert is_pdf("application/pdf")
    assert is_pdf(None, "manual.PDF")
    assert not is_pdf("application/msword", "manual.doc")


def test_pdf_without_text_fails_extraction():
    with pytest.raises(ExtractionError):
        extract_pdf_text(blank_pdf())


def test_unreadable_pdf_fails_extraction():
    with pytest.raises(ExtractionError):
        extract_pdf_text(b"%PDF-1.4 not really a pdf")


def test_pdf_parser_crashes_fail_extraction(monkeypatch):
    def broken(stream):
        raise KeyError("/Root")

    monkeypatch.setattr(document_extraction, "PdfReader", broken)
    with pytest.raises(ExtractionError):
        extract_pdf_text(blank_pdf())


def test_non_pdf_types_are_not_extracted():
    with pytest.raises(UnsupportedDocumentTypeError) as exc:
        extract_document_text(b"...", "application/msword", "guide.doc")
    assert exc.value.file_type == "application/msword"


def test_cache_is_recognized_by_highlight_markers():
    assert cached_document_text("a <highlight>b</highlight>") is not None
    assert cached_document_text("plain extracted text") is None
    assert cached_document_text(None) is None


def test_empty_pdf_never_reaches_the_ai_gateway(gateway):
    with pytest.raises(ExtractionError):
        asyncio.run(prepare_document_text(None, blank_pdf, "application/pdf", gateway.service()))
    assert gateway.calls == []


def test_cached_text_is_reused_without_loading_the_file(gateway):
    def load():
        raise AssertionError("file should not be read")

    result = asyncio.run(prepare_document_text(
        "1. 안내 <highlight>중요</highlight>", load, "application/pdf", gateway.service(),
    ))
    assert result.from_cache
    assert result.text == "1. 안내 <highlight>중요</highlight>"
    assert gateway.calls == []


def test_extracted_text_goes_through_the_pipeline(gateway, monkeypatch):
    monkeypatch.setattr(document_extraction, "extract_document_text", lambda data, file_type, filename=None: "1. 안내")
    gateway.reply_text("clean", "[]")
    gateway.reply_text("format", "1. 안내 <highlight>중요</highlight>")

    result = asyncio.run(prepare_document_text(None, lambda: b"%PDF", "application/pdf", gateway.service()))

    assert not result.from_cache
    assert result.quality == PipelineQuality.formatted
    assert result.text == "1. 안내 <highlight>중요</highlight>"
    assert gateway.calls == ["clean", "format"]

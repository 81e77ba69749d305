import asyncio
import json

import pytest

from app.services.ai_text_service import (
    AIPaymentRequiredError, AIRateLimitError, AIServiceError, EmptyTextError, InvalidAIResponseError,
)
from app.schemas.ai import GeneratedQuestion

from fakes import category_path, question_payload


def test_rate_limit_and_payment_errors_are_distinct(gateway):
    gateway.fail("format", status_code=429)
    gateway.fail("highlight", status_code=402)
    service = gateway.service()

    with pytest.raises(AIRateLimitError) as rate_limited:
        asyncio.run(service.format_ocr_text("text"))
    with pytest.raises(AIPaymentRequiredError) as payment:
        asyncio.run(service.highlight_text("text"))

    assert rate_limited.value.status_code == 429
    assert payment.value.status_code == 402


def test_other_gateway_errors_are_bad_gateway(gateway):
    gateway.fail("format", status_code=503)
    with pytest.raises(AIServiceError) as exc:
        asyncio.run(gateway.service().format_ocr_text("text"))
    assert exc.value.status_code == 502


def test_reply_without_content_is_invalid(gateway):
    gateway.reply("format", {"choices": []})
    with pytest.raises(InvalidAIResponseError):
        asyncio.run(gateway.service().format_ocr_text("text"))


def test_blank_text_is_rejected_before_calling(gateway):
    with pytest.raises(EmptyTextError) as exc:
        asyncio.run(gateway.service().highlight_text("   "))
    assert exc.value.status_code == 400
    assert gateway.calls == []


def test_clean_without_numbering_is_local(gateway):
    cleaned = asyncio.run(gateway.service().clean_ocr_text("출근 안내 https://x.io\n\n\n휴가 규정  "))
    assert cleaned == "1-1. 출근 안내\n\n1-2. 휴가 규정"
    assert gateway.calls == []


def test_clean_appends_review_note_for_mismatched_sections(gateway):
    gateway.reply_text(
        "clean",
        '```json\n[{"id": "1-1", "title": "복지", "title_body_match": "low", "reason": "보안 내용"}]\n```',
    )
    cleaned = asyncio.run(gateway.service().clean_ocr_text("1-1. 복지\n방화벽 규칙"))
    assert cleaned.startswith("1-1. 복지\n방화벽 규칙")
    assert "섹션 1-1" in cleaned


def test_clean_keeps_text_when_diagnosis_is_not_json(gateway):
    gateway.reply_text("clean", "죄송합니다")
    assert asyncio.run(gateway.service().clean_ocr_text("1. 개요\n본문")) == "1. 개요\n본문"


def test_suggest_categories_returns_three_paths(gateway):
    paths = [category_path("HR", "Leave", f"Type{i}") for i in range(3)]
    gateway.reply_text("suggest_categories", json.dumps({"suggested_category_paths": paths}))

    response = asyncio.run(gateway.service().suggest_categories("휴가 규정", "본문", quiz_title="휴가 퀴즈"))

    assert [p.displayPath for p in response.suggested_category_paths] == [
        "HR > Leave > Type0", "HR > Leave > Type1", "HR > Leave > Type2",
    ]
    assert gateway.payloads[0]["temperature"] == 0.7


def test_suggest_categories_rejects_two_paths(gateway):
    paths = [category_path("HR", "Leave", "Annual"), category_path("HR", "Leave", "Sick")]
    gateway.reply_text("suggest_categories", json.dumps({"suggested_category_paths": paths}))
    with pytest.raises(InvalidAIResponseError):
        asyncio.run(gateway.service().suggest_categories("휴가 규정", "본문"))


def test_suggest_categories_rejects_missing_level(gateway):
    broken = category_path("HR", "Leave", "Annual")
    broken["levels"]["level3"] = ""
    paths = [broken, category_path("HR", "Leave", "Sick"), category_path("HR", "Pay", "Bonus")]
    gateway.reply_text("suggest_categories", json.dumps({"suggested_category_paths": paths}))
    with pytest.raises(InvalidAIResponseError):
        asyncio.run(gateway.service().suggest_categories("휴가 규정", "본문"))


def test_generate_quiz_questions(gateway):
    gateway.reply_questions([question_payload("Q1", correct=2), question_payload("Q2", correct=0)])
    questions = asyncio.run(gateway.service().generate_quiz_questions("온보딩 본문"))
    assert [q.question_text for q in questions] == ["Q1", "Q2"]
    assert [o.is_correct for o in questions[0].options] == [False, False, True, False]


def test_generate_quiz_rejects_two_correct_options(gateway):
    bad = question_payload("Q1")
    bad["options"][1]["is_correct"] = True
    gateway.reply_questions([bad])
    with pytest.raises(InvalidAIResponseError):
        asyncio.run(gateway.service().generate_quiz_questions("온보딩 본문"))


def test_explanation_falls_back_to_correct_option():
    payload = question_payload("Q1", correct=1)
    payload["explanation"] = ""
    assert GeneratedQuestion.model_validate(payload).explanation == "규정 3조"

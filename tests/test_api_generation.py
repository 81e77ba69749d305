import json

import pytest

from app.crud import crud_document
from app.models.document import DocumentStatus
from app.services.quiz_generation import registry

from fakes import blank_pdf, category_path, question_payload

REVIEWED_TEXT = "1. 휴가\n\n연차는 <highlight>3일 전</highlight>까지 신청합니다"
SESSIONS = "/api/v1/generation/sessions"


def upload_document(client, headers, db, ocr_text=None):
    response = client.post(
        "/api/v1/documents",
        files={"file": ("leave.pdf", blank_pdf(), "application/pdf")},
        data={"title": "휴가 규정"},
        headers=headers,
    )
    document_id = response.json()["id"]
    if ocr_text is not None:
        company_id = client.get("/api/v1/auth/me", headers=headers).json()["company_id"]
        crud_document.update_ocr_text(db, crud_document.get_document(db, document_id, company_id), ocr_text)
    return document_id


@pytest.fixture
def document_id(client, owner, db):
    return upload_document(client, owner, db, ocr_text=REVIEWED_TEXT)


def start(client, headers, document_id):
    response = client.post(SESSIONS, json={"document_id": document_id}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def save_quiz(client, gateway, headers, document_id, title_payload):
    """Runs a wizard straight through and returns the final session state."""
    session = start(client, headers, document_id)
    url = f"{SESSIONS}/{session['session_id']}"
    gateway.reply_questions([question_payload()])
    client.post(f"{url}/confirm-text", headers=headers)
    client.post(f"{url}/confirm-questions", headers=headers)
    done = client.post(f"{url}/title", json=title_payload, headers=headers)
    assert done.status_code == 200, done.text
    return done.json()


def test_full_wizard_through_the_api(client, owner, gateway, document_id):
    session = start(client, owner, document_id)
    assert session["step"] == "text_review"
    assert session["from_cache"] is True
    assert session["text"] == REVIEWED_TEXT
    url = f"{SESSIONS}/{session['session_id']}"

    gateway.reply_questions([question_payload(), question_payload("병가 증빙은?", correct=2)])
    review = client.post(f"{url}/confirm-text", headers=owner).json()
    assert review["step"] == "quiz_review"
    assert review["progress"] == 100
    assert [q["key"] for q in review["questions"]] == [0, 1]

    # Marking another option correct clears the old one
    edited = client.patch(f"{url}/questions/1/options/3", json={"is_correct": True}, headers=owner).json()
    assert [o["is_correct"] for o in edited["questions"][1]["options"]] == [False, False, False, True]

    assert client.post(f"{url}/confirm-questions", headers=owner).json()["step"] == "title_input"

    gateway.reply_text("suggest_categories", json.dumps({"suggested_category_paths": [
        category_path("인사", "근태", "휴가"),
        category_path("인사", "복리후생", "휴가"),
        category_path("규정", "사내규정", "휴가"),
    ]}))
    suggested = client.post(f"{url}/suggest-categories", json={"quiz_title": "휴가 퀴즈"}, headers=owner).json()
    assert [s["displayPath"] for s in suggested["suggestions"]][0] == "인사 > 근태 > 휴가"

    done = client.post(f"{url}/title", json={"title": " 휴가 퀴즈 ", "suggestion_index": 0}, headers=owner)
    assert done.status_code == 200, done.text
    assert done.json()["step"] == "complete"
    quiz_id = done.json()["quiz_id"]

    quiz = client.get(f"/api/v1/quizzes/{quiz_id}", headers=owner).json()
    assert quiz["title"] == "휴가 퀴즈"
    assert quiz["category"]["name"] == "휴가"
    assert quiz["category"]["document_id"] == document_id
    assert [q["question_text"] for q in quiz["questions"]] == ["연차 신청 기한은?", "병가 증빙은?"]
    correct = [o for o in quiz["questions"][1]["options"] if o["is_correct"]]
    assert [o["order_index"] for o in correct] == [3]
    assert correct[0]["explanation"] == "규정 3조에 따릅니다"

    document = client.get(f"/api/v1/documents/{document_id}", headers=owner).json()
    assert document["status"] == DocumentStatus.approved.value
    listed = client.get("/api/v1/documents", headers=owner).json()
    assert [d["quiz_count"] for d in listed if d["id"] == document_id] == [1]


def test_manual_category_and_default_category(client, owner, gateway, document_id):
    def saved_quiz(title_payload):
        done = save_quiz(client, gateway, owner, document_id, title_payload)
        return client.get(f"/api/v1/quizzes/{done['quiz_id']}", headers=owner).json()

    manual = saved_quiz({"title": "수동", "manual_category": {"level1": "인사", "level2": "근태", "level3": "Leave Policy"}})
    assert manual["category"]["name"] == "Leave Policy"
    assert manual["category"]["slug"] == "leave_policy"

    default = saved_quiz({"title": "기본"})
    assert default["category"]["name"] == "기본 카테고리"


def test_completed_session_is_released(client, owner, gateway, document_id):
    done = save_quiz(client, gateway, owner, document_id, {"title": "휴가 퀴즈"})

    assert done["step"] == "complete"
    assert len(registry) == 0
    assert client.get(f"{SESSIONS}/{done['session_id']}", headers=owner).status_code == 404


def test_same_category_path_stays_per_document(client, owner, gateway, db):
    first = upload_document(client, owner, db, ocr_text=REVIEWED_TEXT)
    second = upload_document(client, owner, db, ocr_text=REVIEWED_TEXT)
    manual = {"manual_category": {"level1": "인사", "level2": "근태", "level3": "휴가"}}
    save_quiz(client, gateway, owner, first, {"title": "첫 문서", **manual})
    kept = save_quiz(client, gateway, owner, second, {"title": "둘째 문서", **manual})["quiz_id"]

    listed = client.get("/api/v1/documents", headers=owner).json()
    assert {d["id"]: d["quiz_count"] for d in listed} == {first: 1, second: 1}

    deleted = client.delete(f"/api/v1/documents/{first}", headers=owner).json()

    assert deleted["deleted_quizzes"] == 1
    quiz = client.get(f"/api/v1/quizzes/{kept}", headers=owner)
    assert quiz.status_code == 200
    assert quiz.json()["category"]["document_id"] == second
    listed = client.get("/api/v1/documents", headers=owner).json()
    assert {d["id"]: d["quiz_count"] for d in listed} == {second: 1}


def test_blank_pdf_fails_extraction_and_marks_the_document(client, owner, gateway, db):
    document_id = upload_document(client, owner, db)

    session = start(client, owner, document_id)

    assert session["step"] == "extraction_failed"
    assert session["fallback"] == "download"
    assert session["can_cancel"] is True
    assert gateway.calls == []
    document = client.get(f"/api/v1/documents/{document_id}", headers=owner).json()
    assert document["status"] == DocumentStatus.failed.value


def test_rate_limited_generation_returns_to_text_review(client, owner, gateway, document_id):
    session = start(client, owner, document_id)
    url = f"{SESSIONS}/{session['session_id']}"
    client.put(f"{url}/text", json={"text": "편집한 본문"}, headers=owner)

    gateway.fail("generate_quiz", status_code=429)
    gateway.reply_questions([question_payload()])

    failed = client.post(f"{url}/confirm-text", headers=owner)
    assert failed.status_code == 429
    state = client.get(url, headers=owner).json()
    assert state["step"] == "text_review"
    assert state["text"] == "편집한 본문"
    assert state["error"]

    assert client.post(f"{url}/confirm-text", headers=owner).json()["step"] == "quiz_review"


def test_confirm_questions_requires_a_correct_answer(client, owner, gateway, document_id):
    session = start(client, owner, document_id)
    url = f"{SESSIONS}/{session['session_id']}"
    gateway.reply_questions([question_payload()])
    client.post(f"{url}/confirm-text", headers=owner)
    client.patch(f"{url}/questions/0/options/0", json={"is_correct": False}, headers=owner)

    response = client.post(f"{url}/confirm-questions", headers=owner)

    assert response.status_code == 422
    assert response.json()["detail"] == "문제 1의 정답을 선택해주세요"


def test_out_of_order_events_conflict(client, owner, document_id):
    session = start(client, owner, document_id)
    url = f"{SESSIONS}/{session['session_id']}"
    assert client.post(f"{url}/confirm-questions", headers=owner).status_code == 409
    assert client.post(f"{url}/title", json={"title": "x"}, headers=owner).status_code == 409


def test_cancel_discards_the_session(client, owner, document_id):
    session = start(client, owner, document_id)
    url = f"{SESSIONS}/{session['session_id']}"

    cancelled = client.post(f"{url}/cancel", headers=owner)

    assert cancelled.json()["step"] == "cancelled"
    assert len(registry) == 0
    assert client.get(url, headers=owner).status_code == 404


def test_members_cannot_start_a_wizard(client, owner, register, document_id):
    member = register("emp@acme.com", job_title="사원")
    response = client.post(SESSIONS, json={"document_id": document_id}, headers=member)
    assert response.status_code == 403


def test_sessions_belong_to_their_creator(client, owner, register, document_id):
    session = start(client, owner, document_id)
    lead = register("lead@acme.com", job_title="팀장")
    assert client.get(f"{SESSIONS}/{session['session_id']}", headers=lead).status_code == 404


def test_unknown_document_is_not_found(client, owner):
    assert client.post(SESSIONS, json={"document_id": 999}, headers=owner).status_code == 404

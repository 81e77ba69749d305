from app.core.config import settings
from app.crud import crud_document
from app.models.document import DocumentStatus

from fakes import blank_pdf

DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def upload(client, headers, data=None, filename="guide.pdf", content_type="application/pdf", title=None):
    form = {"title": title} if title else {}
    return client.post(
        "/api/v1/documents",
        files={"file": (filename, data if data is not None else blank_pdf(), content_type)},
        data=form,
        headers=headers,
    )


def test_upload_creates_processing_document(client, owner):
    response = upload(client, owner, title="휴가 규정")
    assert response.status_code == 201
    document = response.json()
    assert document["title"] == "휴가 규정"
    assert document["status"] == DocumentStatus.processing.value
    assert document["has_processed_text"] is False

    listed = client.get("/api/v1/documents", headers=owner).json()
    assert [(d["id"], d["quiz_count"]) for d in listed] == [(document["id"], 0)]


def test_upload_rejects_unsupported_types(client, owner):
    response = upload(client, owner, data=b"hello", filename="notes.txt", content_type="text/plain")
    assert response.status_code == 415


def test_upload_rejects_oversized_files(client, owner, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 10)
    response = upload(client, owner, data=b"x" * 11)
    assert response.status_code == 413


def test_members_cannot_upload(client, owner, register):
    member = register("emp@acme.com", job_title="사원")
    assert upload(client, member).status_code == 403


def test_documents_are_company_scoped(client, owner, register):
    document_id = upload(client, owner).json()["id"]
    outsider = register("boss@other.io", job_title="이사")
    assert client.get(f"/api/v1/documents/{document_id}", headers=outsider).status_code == 404


def test_material_falls_back_to_download_without_ai_calls(client, owner, gateway):
    document_id = upload(client, owner).json()["id"]

    material = client.get(f"/api/v1/documents/{document_id}/material", headers=owner)

    assert material.status_code == 200
    assert material.json()["fallback"] == "download"
    assert material.json()["text"] is None
    assert gateway.calls == []


def test_material_for_word_documents_offers_download(client, owner, gateway):
    document_id = upload(client, owner, data=b"PK..", filename="guide.docx", content_type=DOCX).json()["id"]
    material = client.get(f"/api/v1/documents/{document_id}/material", headers=owner).json()
    assert material["fallback"] == "download"
    assert gateway.calls == []


def test_material_reuses_cached_text(client, owner, register, gateway, db):
    document_id = upload(client, owner).json()["id"]
    company_id = client.get("/api/v1/auth/me", headers=owner).json()["company_id"]
    document = crud_document.get_document(db, document_id, company_id)
    crud_document.update_ocr_text(db, document, "1. 안내\n\n<highlight>보안 서약</highlight>은 필수입니다")

    member = register("emp@acme.com")
    material = client.get(f"/api/v1/documents/{document_id}/material", headers=member).json()

    assert material["from_cache"] is True
    assert material["paragraphs"][1] == [
        {"text": "보안 서약", "emphasized": True},
        {"text": "은 필수입니다", "emphasized": False},
    ]
    assert gateway.calls == []
    assert client.get(f"/api/v1/documents/{document_id}", headers=member).json()["has_processed_text"] is True


def test_download_returns_the_original_file(client, owner):
    data = blank_pdf()
    document_id = upload(client, owner, data=data).json()["id"]
    response = client.get(f"/api/v1/documents/{document_id}/download", headers=owner)
    assert response.status_code == 200
    assert response.content == data


def test_admins_delete_documents(client, owner, register):
    document_id = upload(client, owner).json()["id"]
    manager = register("mgr@acme.com", job_title="팀장")

    assert client.delete(f"/api/v1/documents/{document_id}", headers=manager).status_code == 403
    deleted = client.delete(f"/api/v1/documents/{document_id}", headers=owner)
    assert deleted.json() == {"id": document_id, "deleted_quizzes": 0}
    assert client.get(f"/api/v1/documents/{document_id}", headers=owner).status_code == 404

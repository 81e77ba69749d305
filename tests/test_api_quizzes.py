import pytest

from app.core.positions import ASSIGNMENT_ERROR_MESSAGES
from app.crud.crud_quiz import SqlQuizStore
from app.models.quiz import QuizQuestion


def user_id(client, headers):
    return client.get("/api/v1/auth/me", headers=headers).json()["id"]


@pytest.fixture
def team(register):
    """A 개발팀 lead with two juniors, under the company owner."""
    return {
        "lead": register("lead@acme.com", job_title="팀장"),
        "peer": register("peer@acme.com", job_title="팀장", department="영업팀"),
        "emp": register("emp@acme.com", job_title="사원"),
        "intern": register("intern@acme.com", job_title="인턴"),
    }


@pytest.fixture
def quiz(client, owner, db):
    """Three questions worth 1, 1 and 2 points; the first option of each is correct."""
    me = client.get("/api/v1/auth/me", headers=owner).json()
    store = SqlQuizStore(db)
    category_id = store.ensure_default_category(me["company_id"], None, "기본 카테고리", "자동 생성된 카테고리")
    quiz_id = store.create_quiz(
        company_id=me["company_id"], category_id=category_id, title="보안 교육",
        description="보안 규정", created_by=me["id"], pass_score=70,
    )
    questions = []
    for index, text in enumerate(["비밀번호 주기는?", "출입증 분실 시?", "개인정보 반출은?"]):
        question_id = store.create_question(quiz_id, text, index)
        option_ids = [
            store.create_option(question_id, f"보기 {o}", o == 0, "보안 규정 2조" if o == 0 else None, o)
            for o in range(4)
        ]
        questions.append({"id": question_id, "options": option_ids})
    db.get(QuizQuestion, questions[2]["id"]).points = 2
    db.commit()
    return {"id": quiz_id, "questions": questions}


def assign(client, headers, quiz_id, user_ids):
    return client.post(f"/api/v1/quizzes/{quiz_id}/assignments", json={"user_ids": user_ids}, headers=headers)


def test_members_without_authority_cannot_assign(client, team, quiz):
    response = assign(client, team["emp"], quiz["id"], [user_id(client, team["intern"])])
    assert response.status_code == 403
    assert response.json()["detail"] == ASSIGNMENT_ERROR_MESSAGES["NO_ASSIGN_AUTHORITY"]


def test_assigning_to_peers_or_seniors_is_rejected(client, owner, team, quiz):
    for target in (owner, team["peer"]):
        response = assign(client, team["lead"], quiz["id"], [user_id(client, team["emp"]), user_id(client, target)])
        assert response.status_code == 403
        assert response.json()["detail"] == ASSIGNMENT_ERROR_MESSAGES["NO_PERMISSION"]
    # Nothing was assigned, not even the valid target
    assert client.get("/api/v1/quizzes/my-assignments", headers=team["emp"]).json() == []


def test_assignment_skips_existing_holders(client, team, quiz):
    emp_id, intern_id = user_id(client, team["emp"]), user_id(client, team["intern"])

    first = assign(client, team["lead"], quiz["id"], [emp_id])
    assert first.status_code == 201
    assert first.json()["assigned"] == [emp_id]

    second = assign(client, team["lead"], quiz["id"], [emp_id, intern_id]).json()
    assert second["assigned"] == [intern_id]
    assert second["skipped"] == [emp_id]


def test_assignment_targets_must_exist_in_the_company(client, team, quiz, register):
    outsider = register("staff@other.io", job_title="사원")
    response = assign(client, team["lead"], quiz["id"], [user_id(client, outsider)])
    assert response.status_code == 404


def test_assignable_members_rank_below_the_caller(client, team):
    members = client.get("/api/v1/quizzes/assignable-members", headers=team["lead"]).json()
    assert {m["email"] for m in members} == {"emp@acme.com", "intern@acme.com"}
    assert client.get("/api/v1/quizzes/assignable-members", headers=team["emp"]).status_code == 403


def test_quiz_listing_is_for_elevated_roles(client, owner, team, quiz):
    listed = client.get("/api/v1/quizzes", headers=team["lead"]).json()
    assert [(q["title"], q["question_count"]) for q in listed] == [("보안 교육", 3)]
    assert client.get("/api/v1/quizzes", headers=team["emp"]).status_code == 403


def test_taking_a_quiz_hides_the_answers(client, team, quiz):
    started = client.post(f"/api/v1/attempts/quizzes/{quiz['id']}", headers=team["emp"])
    assert started.status_code == 201
    body = started.json()
    assert body["status"] == "in_progress"
    option = body["quiz"]["questions"][0]["options"][0]
    assert "is_correct" not in option
    assert "explanation" not in option


def test_submit_scores_by_points(client, team, quiz):
    assign(client, team["lead"], quiz["id"], [user_id(client, team["emp"])])
    attempt_id = client.post(f"/api/v1/attempts/quizzes/{quiz['id']}", headers=team["emp"]).json()["attempt_id"]
    q1, q2, q3 = quiz["questions"]
    submit_url = f"/api/v1/attempts/{attempt_id}/submit"

    incomplete = client.post(submit_url, json={"answers": [
        {"question_id": q1["id"], "option_id": q1["options"][0]},
    ]}, headers=team["emp"])
    assert incomplete.status_code == 422

    foreign_option = client.post(submit_url, json={"answers": [
        {"question_id": q1["id"], "option_id": q1["options"][0]},
        {"question_id": q2["id"], "option_id": q1["options"][1]},
        {"question_id": q3["id"], "option_id": q3["options"][0]},
    ]}, headers=team["emp"])
    assert foreign_option.status_code == 422

    answers = [
        {"question_id": q1["id"], "option_id": q1["options"][0]},
        {"question_id": q2["id"], "option_id": q2["options"][0]},
        {"question_id": q3["id"], "option_id": q3["options"][1]},
    ]
    result = client.post(submit_url, json={"answers": answers, "time_spent": 95}, headers=team["emp"])
    assert result.status_code == 200
    assert result.json() == {
        "attempt_id": attempt_id,
        "status": "completed",
        "score": 2,
        "total_points": 4,
        "percentage": 50.0,
        "pass_score": 70,
        "passed": False,
    }

    again = client.post(submit_url, json={"answers": answers}, headers=team["emp"])
    assert again.status_code == 409

    assignments = client.get("/api/v1/quizzes/my-assignments", headers=team["emp"]).json()
    assert [(a["quiz_title"], a["latest_status"], a["latest_percentage"]) for a in assignments] == [
        ("보안 교육", "completed", 50.0),
    ]


def test_attempts_belong_to_their_taker(client, team, quiz):
    attempt_id = client.post(f"/api/v1/attempts/quizzes/{quiz['id']}", headers=team["emp"]).json()["attempt_id"]
    response = client.post(f"/api/v1/attempts/{attempt_id}/submit", json={"answers": []}, headers=team["intern"])
    assert response.status_code == 404


def test_dashboards(client, owner, team, quiz):
    emp_id = user_id(client, team["emp"])
    assign(client, team["lead"], quiz["id"], [emp_id, user_id(client, team["intern"])])
    attempt_id = client.post(f"/api/v1/attempts/quizzes/{quiz['id']}", headers=team["emp"]).json()["attempt_id"]
    client.post(f"/api/v1/attempts/{attempt_id}/submit", json={"answers": [
        {"question_id": q["id"], "option_id": q["options"][0]} for q in quiz["questions"]
    ]}, headers=team["emp"])

    me = client.get("/api/v1/dashboard/me", headers=team["emp"]).json()
    assert me == {"assigned": 1, "completed": 1, "completion": 100, "average_percentage": 100.0}

    company = client.get("/api/v1/dashboard/company", headers=owner).json()
    assert company["members"] == 5
    assert company["quizzes"] == 1
    assert company["completed_attempts"] == 1
    assert client.get("/api/v1/dashboard/company", headers=team["lead"]).status_code == 403

    rows = client.get("/api/v1/dashboard/team", headers=team["lead"]).json()
    assert [(r["name"], r["completion"], r["status"]) for r in rows] == [
        ("emp", 100, "completed"),
        ("intern", 0, "not_started"),
    ]
    assert rows[0]["latest_quiz"] == "보안 교육"
    assert client.get("/api/v1/dashboard/team", headers=team["emp"]).status_code == 403

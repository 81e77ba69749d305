# app/api/v1/endpoints/quizzes.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, require_assigner, require_elevated
from app.core.positions import ASSIGNMENT_ERROR_MESSAGES, can_assign_to_member, filter_assignable_members
from app.crud import crud_quiz, crud_user
from app.db.session import get_db
from app.models.quiz import Quiz
from app.models.user import User
from app.schemas.quiz import (
    AssignmentCreate, AssignmentResult, CategoryOut, MyAssignment, QuestionDetail, QuizDetail, QuizSummary,
)
from app.schemas.user import AssignableMember

router = APIRouter()


def quiz_summary(quiz: Quiz) -> QuizSummary:
    return QuizSummary(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description,
        is_active=quiz.is_active,
        pass_score=quiz.pass_score,
        category=CategoryOut.model_validate(quiz.category) if quiz.category else None,
        question_count=len(quiz.questions),
        created_at=quiz.created_at,
    )


@router.get("", response_model=List[QuizSummary], summary="Company quizzes")
def list_quizzes(user: User = Depends(require_elevated), db: Session = Depends(get_db)):
    return [quiz_summary(q) for q in crud_quiz.list_quizzes(db, user.profile.company_id)]


@router.get("/assignable-members", response_model=List[AssignableMember],
            summary="Company members ranked below the caller")
def assignable_members(user: User = Depends(require_assigner), db: Session = Depends(get_db)):
    members = [p for p in crud_user.list_company_users(db, user.profile.company_id) if p.id != user.id]
    return [
        AssignableMember(
            id=p.id, name=p.name, email=p.email, job_title=p.job_title, department_id=p.department_id
        )
        for p in filter_assignable_members(user.profile.job_title, members)
    ]


@router.get("/my-assignments", response_model=List[MyAssignment], summary="Quizzes assigned to the caller")
def my_assignments(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    latest = crud_quiz.latest_attempts_by_quiz(db, user.id)
    items = []
    for assignment in crud_quiz.list_user_assignments(db, user.id):
        attempt = latest.get(assignment.quiz_id)
        items.append(MyAssignment(
            assignment_id=assignment.id,
            quiz_id=assignment.quiz_id,
            quiz_title=assignment.quiz.title,
            category=assignment.quiz.category.name if assignment.quiz.category else None,
            due_date=assignment.due_date,
            assigned_at=assignment.assigned_at,
            latest_status=attempt.status if attempt else None,
            latest_percentage=attempt.percentage if attempt else None,
        ))
    return items


@router.get("/{quiz_id}", response_model=QuizDetail, summary="Quiz with questions and answers")
def read_quiz(quiz_id: int, user: User = Depends(require_elevated), db: Session = Depends(get_db)):
    quiz = crud_quiz.get_quiz(db, quiz_id, user.profile.company_id)
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    return QuizDetail(
        **quiz_summary(quiz).model_dump(),
        questions=[QuestionDetail.model_validate(q) for q in quiz.questions],
    )


@router.post("/{quiz_id}/assignments", response_model=AssignmentResult, status_code=status.HTTP_201_CREATED,
             summary="Assign a quiz to members")
def assign_quiz(
    quiz_id: int,
    payload: AssignmentCreate,
    user: User = Depends(require_assigner),
    db: Session = Depends(get_db),
):
    """
    Every target must belong to the caller's company and rank strictly below
    the caller; otherwise nothing is assigned.
    """
    company_id = user.profile.company_id
    quiz = crud_quiz.get_quiz(db, quiz_id, company_id)
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")

    for target_id in payload.user_ids:
        target = crud_user.get_company_profile(db, company_id, target_id)
        if target is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {target_id} not found")
        if not can_assign_to_member(user.profile.job_title, target.job_title):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ASSIGNMENT_ERROR_MESSAGES["NO_PERMISSION"])

    created = crud_quiz.create_assignments(
        db, quiz_id=quiz.id, user_ids=payload.user_ids, assigned_by=user.id, due_date=payload.due_date
    )
    assigned = [a.user_id for a in created]
    return AssignmentResult(
        quiz_id=quiz.id,
        assigned=assigned,
        skipped=[uid for uid in dict.fromkeys(payload.user_ids) if uid not in assigned],
    )

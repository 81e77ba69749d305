# app/api/v1/endpoints/dashboard.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, require_admin, require_elevated
from app.crud import crud_quiz, crud_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.quiz import CompanySummary, TeamMemberProgress, UserProgress

router = APIRouter()


@router.get("/me", response_model=UserProgress, summary="Caller's own quiz progress")
def my_progress(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return UserProgress(**crud_quiz.user_progress(db, user.id))


@router.get("/company", response_model=CompanySummary, summary="Company-wide totals")
def company_overview(user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return CompanySummary(**crud_quiz.company_summary(db, user.profile.company_id))


@router.get("/team", response_model=List[TeamMemberProgress], summary="Progress of the caller's department")
def team_overview(user: User = Depends(require_elevated), db: Session = Depends(get_db)):
    members = crud_user.list_department_members(
        db, user.profile.company_id, user.profile.department_id, exclude_user_id=user.id
    )
    return [TeamMemberProgress(**row) for row in crud_quiz.team_progress(db, members)]

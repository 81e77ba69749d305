# app/api/v1/endpoints/users.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_role, require_admin
from app.core.roles import ROLE_LABELS, UserRole
from app.crud import crud_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import CompanyUser, RoleUpdate

router = APIRouter()


def company_user(db: Session, profile) -> CompanyUser:
    role = crud_user.get_effective_role(db, profile.id)
    return CompanyUser(
        id=profile.id,
        email=profile.email,
        name=profile.name,
        job_title=profile.job_title,
        department=profile.department.name if profile.department else None,
        role=role,
        role_label=ROLE_LABELS[role],
    )


@router.get("", response_model=List[CompanyUser], summary="Users of the caller's company")
def list_users(user: User = Depends(require_admin), db: Session = Depends(get_db)):
    profiles = crud_user.list_company_users(db, user.profile.company_id)
    return [company_user(db, p) for p in profiles]


@router.put("/{user_id}/role", response_model=CompanyUser, summary="Replace a user's role")
def update_role(
    user_id: int,
    payload: RoleUpdate,
    user: User = Depends(require_admin),
    caller_role: UserRole = Depends(get_current_role),
    db: Session = Depends(get_db),
):
    profile = crud_user.get_company_profile(db, user.profile.company_id, user_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if payload.role == UserRole.super_admin and caller_role != UserRole.super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only a super admin can grant super admin")

    crud_user.set_user_role(db, user_id, payload.role)
    return company_user(db, profile)

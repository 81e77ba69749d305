# app/api/v1/endpoints/auth.py
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.core import security
from app.core.access import allowed_roles_for_path, evaluate_path_access, home_for_role
from app.core.config import settings
from app.core.deps import get_current_role, get_current_user, get_optional_user
from app.core.positions import can_assign, can_create_quiz, get_position_level
from app.core.roles import ROLE_LABELS, UserRole
from app.crud import crud_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.token import Token
from app.schemas.user import CurrentUser, PositionCapabilities, RouteAccessResponse, UserSignup

router = APIRouter()


def _issue_token(user: User) -> dict:
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = security.create_access_token(
        subject=user.email, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/auth/token", response_model=Token, summary="Login with email and password")
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)
):
    user = crud_user.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="이메일 또는 비밀번호가 올바르지 않습니다",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_token(user)


@router.post("/auth/signup", response_model=Token, status_code=status.HTTP_201_CREATED, summary="Register a user")
def signup(payload: UserSignup, db: Session = Depends(get_db)):
    """
    Creates the user, its profile and initial role. The first user of an
    email domain's company becomes super_admin.
    """
    try:
        user = crud_user.create_user(
            db,
            email=payload.email,
            password=payload.password,
            name=payload.name,
            department=payload.department,
            job_title=payload.job_title,
            company_name=payload.company_name,
        )
    except crud_user.EmailAlreadyRegistered:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="이미 등록된 이메일입니다")
    return _issue_token(user)


@router.get("/auth/me", response_model=CurrentUser, summary="Current user with effective role")
def read_me(user: User = Depends(get_current_user), role: UserRole = Depends(get_current_role)):
    profile = user.profile
    return CurrentUser(
        id=user.id,
        email=user.email,
        name=profile.name,
        job_title=profile.job_title,
        department_id=profile.department_id,
        department=profile.department.name if profile.department else None,
        company_id=profile.company_id,
        role=role,
        role_label=ROLE_LABELS[role],
        home=home_for_role(role),
        position=PositionCapabilities(
            level=get_position_level(profile.job_title),
            can_create_quiz=can_create_quiz(profile.job_title),
            can_assign=can_assign(profile.job_title),
        ),
    )


@router.get("/auth/route-access", response_model=RouteAccessResponse, summary="Evaluate the route guard")
def route_access(
    path: str = Query(..., min_length=1),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Tells the client whether it may render ``path`` or where to redirect.
    Role mismatches are answered with a redirect, never an error.
    """
    role = crud_user.get_effective_role(db, user.id) if user else UserRole.member
    decision = evaluate_path_access(path, authenticated=user is not None, role=role)
    allowed = allowed_roles_for_path(path)
    return RouteAccessResponse(
        path=path,
        outcome=decision.outcome.value,
        redirect_to=decision.redirect_to,
        allowed_roles=sorted(allowed, key=lambda r: r.value) if allowed is not None else None,
    )

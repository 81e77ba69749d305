from typing import Collection

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.positions import ASSIGNMENT_ERROR_MESSAGES, can_assign, can_create_quiz
from app.core.roles import ADMIN_ROLES, ELEVATED_ROLES, UserRole, is_elevated
from app.crud.crud_user import get_effective_role, get_user_by_email
from app.db.session import get_db
from app.models.user import User
from app.schemas.token import TokenPayload

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme)
) -> User:
    """
    Resolves the user from the bearer JWT.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise credentials_exception
        token_data = TokenPayload(sub=email)
    except JWTError:
        raise credentials_exception

    user = get_user_by_email(db, email=token_data.sub)
    if user is None or user.profile is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    request.state.user_id = user.id
    return user


def get_current_role(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserRole:
    return get_effective_role(db, user.id)


def require_roles(allowed: Collection[UserRole]):
    """Dependency factory: the caller's effective role must be in ``allowed``."""

    def dependency(
        user: User = Depends(get_current_user),
        role: UserRole = Depends(get_current_role),
    ) -> User:
        if role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
        return user

    return dependency


require_admin = require_roles(ADMIN_ROLES)
require_elevated = require_roles(ELEVATED_ROLES)


def require_quiz_creator(
    user: User = Depends(get_current_user),
    role: UserRole = Depends(get_current_role),
) -> User:
    """Elevated roles, or any position allowed to create quizzes."""
    if is_elevated(role) or can_create_quiz(user.profile.job_title):
        return user
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ASSIGNMENT_ERROR_MESSAGES["NO_CREATE_AUTHORITY"])


def require_assigner(user: User = Depends(get_current_user)) -> User:
    if not can_assign(user.profile.job_title):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ASSIGNMENT_ERROR_MESSAGES["NO_ASSIGN_AUTHORITY"])
    return user


optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    token: str = Depends(optional_oauth2_scheme),
):
    """Like get_current_user, but anonymous or invalid credentials give None."""
    if not token:
        return None
    try:
        return get_current_user(request, db, token)
    except HTTPException:
        return None

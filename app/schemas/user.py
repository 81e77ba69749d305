from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.roles import UserRole

MIN_PASSWORD_LENGTH = 6


class UserSignup(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(..., min_length=1)
    department: str
    job_title: str
    company_name: Optional[str] = None

    @field_validator('department', 'job_title')
    @classmethod
    def required_choice(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field is required")
        return v


class PositionCapabilities(BaseModel):
    level: int
    can_create_quiz: bool
    can_assign: bool


class CurrentUser(BaseModel):
    id: int
    email: str
    name: str
    job_title: Optional[str] = None
    department_id: Optional[int] = None
    department: Optional[str] = None
    company_id: int
    role: UserRole
    role_label: str
    home: str
    position: PositionCapabilities


class CompanyUser(BaseModel):
    id: int
    email: str
    name: str
    job_title: Optional[str] = None
    department: Optional[str] = None
    role: UserRole
    role_label: str


class RoleUpdate(BaseModel):
    role: UserRole


class AssignableMember(BaseModel):
    id: int
    name: str
    email: str
    job_title: Optional[str] = None
    department_id: Optional[int] = None


class RouteAccessResponse(BaseModel):
    path: str
    outcome: str
    redirect_to: Optional[str] = None
    allowed_roles: Optional[List[UserRole]] = None

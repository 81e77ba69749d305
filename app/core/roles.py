# app/core/roles.py
"""
Role enumeration and effective-role resolution.

A user may hold several role rows; authorization always uses the single
highest-priority one.
"""
import enum
from typing import Iterable, Optional, Union


class UserRole(str, enum.Enum):
    super_admin = "super_admin"
    admin = "admin"
    manager = "manager"
    member = "member"


# Descending privilege
ROLE_PRIORITY = (
    UserRole.super_admin,
    UserRole.admin,
    UserRole.manager,
    UserRole.member,
)

DEFAULT_ROLE = UserRole.member

ELEVATED_ROLES = frozenset({UserRole.super_admin, UserRole.admin, UserRole.manager})
ADMIN_ROLES = frozenset({UserRole.super_admin, UserRole.admin})

# Role granted at signup for each job title (first user of a company is super_admin)
JOB_TITLE_ROLES = {
    "이사": UserRole.admin,
    "본부장": UserRole.admin,
    "부장": UserRole.admin,
    "차장": UserRole.manager,
    "과장": UserRole.manager,
    "팀장": UserRole.manager,
    "대리": UserRole.member,
    "사원": UserRole.member,
    "인턴": UserRole.member,
}

ROLE_LABELS = {
    UserRole.super_admin: "최고 관리자",
    UserRole.admin: "관리자",
    UserRole.manager: "팀장",
    UserRole.member: "팀원",
}


def parse_role(value: Union[str, UserRole, None]) -> Optional[UserRole]:
    """Returns the enum member for a role string, or None if it is not a known role."""
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        return None


def resolve_role(roles: Iterable[Union[str, UserRole, None]]) -> UserRole:
    """
    Picks the effective role from a user's role rows.

    Scans ROLE_PRIORITY in order and returns the first role present;
    an empty set (or one with only unknown values) resolves to member.
    """
    held = {parse_role(r) for r in roles}
    for role in ROLE_PRIORITY:
        if role in held:
            return role
    return DEFAULT_ROLE


def is_elevated(role: UserRole) -> bool:
    return role in ELEVATED_ROLES


def is_admin(role: UserRole) -> bool:
    return role in ADMIN_ROLES


def role_for_job_title(job_title: Optional[str], first_in_company: bool = False) -> UserRole:
    """Role assigned at signup."""
    if first_in_company:
        return UserRole.super_admin
    if not job_title:
        return DEFAULT_ROLE
    return JOB_TITLE_ROLES.get(job_title, DEFAULT_ROLE)

# app/core/access.py
"""
Route-level access gate for client navigation.

Role mismatches are never reported as errors; the gate answers with the
place the client should go instead.
"""
import enum
from dataclasses import dataclass
from typing import Collection, Optional, Tuple

from app.core.roles import ADMIN_ROLES, ELEVATED_ROLES, UserRole, is_elevated

LOGIN_PATH = "/login"
ADMIN_HOME = "/admin/dashboard"
EMPLOYEE_HOME = "/employee/dashboard"

PUBLIC_PATHS = frozenset({"/", "/login", "/signup"})

# Longest prefix wins; None means any authenticated user
ROUTE_ACCESS: Tuple[Tuple[str, Optional[frozenset]], ...] = (
    ("/admin/users", ADMIN_ROLES),
    ("/admin/settings", ADMIN_ROLES),
    ("/admin", ELEVATED_ROLES),
    ("/manager", ELEVATED_ROLES),
    ("/employee", None),
)


class AccessOutcome(str, enum.Enum):
    loading = "loading"
    allow = "allow"
    redirect = "redirect"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    redirect_to: Optional[str] = None


def home_for_role(role: UserRole) -> str:
    return ADMIN_HOME if is_elevated(role) else EMPLOYEE_HOME


def allowed_roles_for_path(path: str) -> Optional[frozenset]:
    best: Optional[Tuple[str, Optional[frozenset]]] = None
    for prefix, roles in ROUTE_ACCESS:
        if path == prefix or path.startswith(prefix + "/"):
            if best is None or len(prefix) > len(best[0]):
                best = (prefix, roles)
    return best[1] if best else None


def evaluate_access(
    *,
    identity_loading: bool,
    role_loading: bool,
    authenticated: bool,
    role: UserRole,
    allowed_roles: Optional[Collection[UserRole]] = None,
) -> AccessDecision:
    """
    Decides what a guarded route should do for the current identity/role.

    Callers re-run this whenever any input changes; the function is pure.
    """
    if identity_loading or role_loading:
        return AccessDecision(AccessOutcome.loading)
    if not authenticated:
        return AccessDecision(AccessOutcome.redirect, LOGIN_PATH)
    if allowed_roles is not None and role not in allowed_roles:
        return AccessDecision(AccessOutcome.redirect, home_for_role(role))
    return AccessDecision(AccessOutcome.allow)


def evaluate_path_access(path: str, *, authenticated: bool, role: UserRole) -> AccessDecision:
    """Gate decision for a concrete client path once identity and role are known."""
    if path in PUBLIC_PATHS:
        return AccessDecision(AccessOutcome.allow)
    return evaluate_access(
        identity_loading=False,
        role_loading=False,
        authenticated=authenticated,
        role=role,
        allowed_roles=allowed_roles_for_path(path),
    )

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.roles import UserRole, resolve_role, role_for_job_title
from app.core.security import get_password_hash, verify_password
from app.models.company import Company, Department
from app.models.user import Profile, User, UserRoleAssignment

logger = logging.getLogger(__name__)


class EmailAlreadyRegistered(Exception):
    pass


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).options(joinedload(User.profile)).filter(User.id == user_id).first()


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Returns the user when the email/password pair is valid and the account is active.
    """
    user = get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


def get_role_values(db: Session, user_id: int) -> List[UserRole]:
    rows = db.query(UserRoleAssignment.role).filter(UserRoleAssignment.user_id == user_id).all()
    return [row.role for row in rows]


def get_effective_role(db: Session, user_id: int) -> UserRole:
    """
    Highest-priority role held by the user, recomputed on every call.
    A failed lookup resolves to member, never to an elevated role.
    """
    try:
        roles = get_role_values(db, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Role lookup failed for user {user_id}, falling back to member: {e}")
        db.rollback()
        return UserRole.member
    return resolve_role(roles)


# --- Signup ---

def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower()


def get_or_create_company(db: Session, domain: str, name: Optional[str] = None) -> Company:
    company = db.query(Company).filter(Company.domain == domain).first()
    if company:
        return company
    company = Company(domain=domain, name=name or domain)
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info(f"Created company for domain {domain}")
    return company


def get_or_create_department(db: Session, company_id: int, name: str) -> Department:
    department = (
        db.query(Department)
        .filter(Department.company_id == company_id, Department.name == name)
        .first()
    )
    if department:
        return department
    department = Department(company_id=company_id, name=name)
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    name: str,
    department: str,
    job_title: str,
    company_name: Optional[str] = None,
) -> User:
    """
    Registers a user with profile and initial role.

    The company is the one owning the email domain; its first user becomes
    super_admin, later users get the role mapped from their job title.
    """
    email = email.lower()
    if get_user_by_email(db, email):
        raise EmailAlreadyRegistered(email)

    company = get_or_create_company(db, email_domain(email), company_name)
    first_in_company = db.query(Profile).filter(Profile.company_id == company.id).count() == 0
    dept = get_or_create_department(db, company.id, department)
    role = role_for_job_title(job_title, first_in_company=first_in_company)

    user = User(email=email, hashed_password=get_password_hash(password), is_active=True)
    user.profile = Profile(
        email=email,
        name=name,
        job_title=job_title,
        department_id=dept.id,
        company_id=company.id,
    )
    user.roles = [UserRoleAssignment(role=role)]
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} signed up as {role.value} in company {company.id}")
    return user


# --- Company users ---

def list_company_users(db: Session, company_id: int) -> List[Profile]:
    return (
        db.query(Profile)
        .options(joinedload(Profile.department))
        .filter(Profile.company_id == company_id)
        .order_by(Profile.created_at.desc(), Profile.id.desc())
        .all()
    )


def get_company_profile(db: Session, company_id: int, user_id: int) -> Optional[Profile]:
    return (
        db.query(Profile)
        .filter(Profile.company_id == company_id, Profile.id == user_id)
        .first()
    )


def set_user_role(db: Session, user_id: int, role: UserRole) -> None:
    """Replaces every role row of the user with a single one."""
    db.query(UserRoleAssignment).filter(UserRoleAssignment.user_id == user_id).delete()
    db.add(UserRoleAssignment(user_id=user_id, role=role))
    db.commit()
    logger.info(f"Role of user {user_id} set to {role.value}")


def list_department_members(db: Session, company_id: int, department_id: Optional[int],
                            exclude_user_id: Optional[int] = None) -> List[Profile]:
    query = db.query(Profile).filter(
        Profile.company_id == company_id, Profile.department_id == department_id
    )
    if exclude_user_id is not None:
        query = query.filter(Profile.id != exclude_user_id)
    return query.order_by(Profile.name).all()

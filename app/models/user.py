# app/models/user.py
from sqlalchemy import (
    Boolean, Column, Integer, String, ForeignKey,
    TIMESTAMP, Enum as SAEnum, func
)
from sqlalchemy.orm import relationship

from app.core.roles import UserRole
from app.db.base import Base


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, server_default='1', nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    roles = relationship("UserRoleAssignment", back_populates="user", cascade="all, delete-orphan")


class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    # Free-text rank label, matched against the position hierarchy
    job_title = Column(String(50), nullable=True)
    department_id = Column(Integer, ForeignKey('departments.id', ondelete='SET NULL'), nullable=True, index=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="profile")
    department = relationship("Department")
    company = relationship("Company")


class UserRoleAssignment(Base):
    __tablename__ = 'user_roles'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role = Column(
        SAEnum(UserRole, name='app_role'),
        nullable=False, default=UserRole.member
    )
    scope = Column(String(50), nullable=True)
    scope_id = Column(Integer, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="roles")

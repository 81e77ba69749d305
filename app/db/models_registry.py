# app/db/models_registry.py
# Imports every model so Base.metadata is complete (alembic autogenerate, prestart init_db, tests).

from app.db.base import Base
from app.models.company import Company, Department
from app.models.user import User, Profile, UserRoleAssignment
from app.models.document import Document
from app.models.quiz import (
    Category, Quiz, QuizQuestion, QuizOption,
    QuizAssignment, QuizAttempt, QuizAnswer,
)

__all__ = [
    "Base", "Company", "Department", "User", "Profile", "UserRoleAssignment",
    "Document", "Category", "Quiz", "QuizQuestion", "QuizOption",
    "QuizAssignment", "QuizAttempt", "QuizAnswer",
]

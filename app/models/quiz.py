# app/models/quiz.py
import enum
from sqlalchemy import (
    Boolean, Column, Float, Integer, String, Text, ForeignKey,
    TIMESTAMP, Enum as SAEnum, Index, UniqueConstraint, func, text
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class AttemptStatus(str, enum.Enum):
    in_progress = "in_progress"
    completed = "completed"


class Category(Base):
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    document_id = Column(Integer, ForeignKey('documents.id', ondelete='CASCADE'), nullable=True, index=True)
    parent_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, default=0)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    document = relationship("Document", back_populates="categories")
    parent = relationship("Category", remote_side=[id], back_populates="children")
    children = relationship("Category", back_populates="parent")
    quizzes = relationship("Quiz", back_populates="category", cascade="all, delete-orphan")


class Quiz(Base):
    __tablename__ = 'quizzes'

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Percentage needed to pass
    pass_score = Column(Integer, nullable=False, default=70)
    time_limit = Column(Integer, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), onupdate=func.now())

    category = relationship("Category", back_populates="quizzes")
    questions = relationship(
        "QuizQuestion", back_populates="quiz",
        cascade="all, delete-orphan", order_by="QuizQuestion.order_index"
    )
    assignments = relationship("QuizAssignment", back_populates="quiz", cascade="all, delete-orphan")
    attempts = relationship("QuizAttempt", back_populates="quiz", cascade="all, delete-orphan")


class QuizQuestion(Base):
    __tablename__ = 'quiz_questions'

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(30), nullable=False, default='multiple_choice')
    points = Column(Integer, nullable=False, default=1)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuizOption", back_populates="question",
        cascade="all, delete-orphan", order_by="QuizOption.order_index"
    )


class QuizOption(Base):
    __tablename__ = 'quiz_options'
    __table_args__ = (
        # At most one correct option per question
        Index(
            'uq_quiz_options_single_correct', 'question_id',
            unique=True,
            postgresql_where=text('is_correct'),
            sqlite_where=text('is_correct = 1'),
        ),
    )

    id = Column(Integer, primary_key=True)
    question_id = Column(Integer, ForeignKey('quiz_questions.id', ondelete='CASCADE'), nullable=False, index=True)
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    explanation = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    question = relationship("QuizQuestion", back_populates="options")


class QuizAssignment(Base):
    __tablename__ = 'quiz_assignments'
    __table_args__ = (
        UniqueConstraint('quiz_id', 'user_id', name='uq_quiz_assignment_user'),
    )

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    due_date = Column(TIMESTAMP(timezone=True), nullable=True)
    assigned_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    quiz = relationship("Quiz", back_populates="assignments")


class QuizAttempt(Base):
    __tablename__ = 'quiz_attempts'

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(
        SAEnum(AttemptStatus, name='attempt_status'),
        nullable=False, default=AttemptStatus.in_progress
    )
    score = Column(Integer, nullable=True)
    total_points = Column(Integer, nullable=True)
    percentage = Column(Float, nullable=True)
    # Seconds
    time_spent = Column(Integer, nullable=True)
    started_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)

    quiz = relationship("Quiz", back_populates="attempts")
    answers = relationship("QuizAnswer", back_populates="attempt", cascade="all, delete-orphan")


class QuizAnswer(Base):
    __tablename__ = 'quiz_answers'

    id = Column(Integer, primary_key=True)
    attempt_id = Column(Integer, ForeignKey('quiz_attempts.id', ondelete='CASCADE'), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey('quiz_questions.id', ondelete='CASCADE'), nullable=False)
    option_id = Column(Integer, ForeignKey('quiz_options.id', ondelete='SET NULL'), nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    answered_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    attempt = relationship("QuizAttempt", back_populates="answers")

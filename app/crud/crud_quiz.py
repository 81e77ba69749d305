import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.config import settings
from app.crud.errors import PersistenceError
from app.models.document import Document, DocumentStatus
from app.models.quiz import (
    AttemptStatus, Category, Quiz, QuizAnswer, QuizAssignment,
    QuizAttempt, QuizOption, QuizQuestion,
)
from app.models.user import Profile
from app.schemas.ai import GeneratedImageCategory
from app.services.quiz_generation import CategoryChoice
from app.services.quiz_scoring import ScoreResult, completion_rate, progress_status

logger = logging.getLogger(__name__)


class SqlQuizStore:
    """
    Row writes for the generation save chain. Every call commits on its own;
    a failure rolls back only that call and surfaces as PersistenceError.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(self, obj, entity: str) -> int:
        try:
            self.db.add(obj)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save {entity}: {e.__class__.__name__}", entity=entity) from e
        return obj.id

    def _find_category(self, company_id: int, parent_id: Optional[int], name: str,
                       document_id: Optional[int] = None) -> Optional[Category]:
        query = self.db.query(Category).filter(Category.company_id == company_id, Category.name == name)
        if document_id is None:
            query = query.filter(Category.document_id.is_(None))
        else:
            query = query.filter(Category.document_id == document_id)
        if parent_id is None:
            query = query.filter(Category.parent_id.is_(None))
        else:
            query = query.filter(Category.parent_id == parent_id)
        return query.first()

    def ensure_category_path(self, company_id: int, document_id: int, category: CategoryChoice) -> int:
        """
        Creates or reuses level1 > level2 > level3. Upper levels are shared across
        the company; the leaf belongs to the document, so deleting one document
        never takes another document's quizzes with it.
        """
        parent_id = None
        last = len(category.names) - 1
        for depth, (name, slug) in enumerate(zip(category.names, category.slugs)):
            leaf_document_id = document_id if depth == last else None
            existing = self._find_category(company_id, parent_id, name, leaf_document_id)
            if existing is not None:
                parent_id = existing.id
                continue
            parent_id = self.insert(
                Category(
                    company_id=company_id,
                    parent_id=parent_id,
                    name=name,
                    slug=slug,
                    document_id=leaf_document_id,
                ),
                "category",
            )
        return parent_id

    def ensure_default_category(self, company_id: int, document_id: int, name: str, description: str) -> int:
        existing = (
            self.db.query(Category)
            .filter(Category.company_id == company_id, Category.document_id == document_id, Category.name == name)
            .first()
        )
        if existing is not None:
            return existing.id
        return self.insert(
            Category(company_id=company_id, document_id=document_id, name=name, description=description),
            "category",
        )

    def create_quiz(self, company_id: int, category_id: int, title: str, description: str,
                    created_by: int, pass_score: int) -> int:
        return self.insert(
            Quiz(
                company_id=company_id,
                category_id=category_id,
                title=title,
                description=description,
                created_by=created_by,
                is_active=True,
                pass_score=pass_score,
            ),
            "quiz",
        )

    def create_question(self, quiz_id: int, question_text: str, order_index: int) -> int:
        return self.insert(
            QuizQuestion(
                quiz_id=quiz_id,
                question_text=question_text,
                question_type="multiple_choice",
                points=1,
                order_index=order_index,
            ),
            "question",
        )

    def create_option(self, question_id: int, option_text: str, is_correct: bool,
                      explanation: Optional[str], order_index: int) -> int:
        return self.insert(
            QuizOption(
                question_id=question_id,
                option_text=option_text,
                is_correct=is_correct,
                explanation=explanation,
                order_index=order_index,
            ),
            "option",
        )

    def approve_document(self, document_id: int) -> None:
        document = self.db.get(Document, document_id)
        if document is None:
            raise PersistenceError(f"Document {document_id} no longer exists", entity="document")
        document.status = DocumentStatus.approved
        self.insert(document, "document")


def save_image_quizzes(
    db: Session,
    *,
    document: Document,
    categories: Iterable[GeneratedImageCategory],
    created_by: int,
) -> Tuple[int, int, int]:
    """
    Persists AI output of the page-image variant: one category per entry,
    one quiz per generated question. Returns (categories, quizzes, questions).
    """
    store = SqlQuizStore(db)
    category_count = quiz_count = question_count = 0
    for category_index, generated in enumerate(categories):
        category_id = store.insert(
            Category(
                company_id=document.company_id,
                document_id=document.id,
                name=generated.name,
                description=generated.description,
                order_index=category_index,
            ),
            "category",
        )
        category_count += 1
        for quiz in generated.quizzes:
            quiz_id = store.create_quiz(
                company_id=document.company_id,
                category_id=category_id,
                title=quiz.title,
                description=quiz.description,
                created_by=created_by,
                pass_score=settings.DEFAULT_PASS_SCORE,
            )
            quiz_count += 1
            question_id = store.create_question(quiz_id, quiz.question.question_text, 0)
            question_count += 1
            for option_index, option in enumerate(quiz.question.options):
                store.create_option(
                    question_id=question_id,
                    option_text=option.text,
                    is_correct=option.is_correct,
                    explanation=quiz.question.explanation if option.is_correct else None,
                    order_index=option_index,
                )
    store.approve_document(document.id)
    return category_count, quiz_count, question_count


# --- Queries ---

def list_quizzes(db: Session, company_id: int) -> List[Quiz]:
    return (
        db.query(Quiz)
        .options(joinedload(Quiz.category), selectinload(Quiz.questions))
        .filter(Quiz.company_id == company_id)
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
        .all()
    )


def get_quiz(db: Session, quiz_id: int, company_id: int) -> Optional[Quiz]:
    return (
        db.query(Quiz)
        .options(
            joinedload(Quiz.category),
            selectinload(Quiz.questions).selectinload(QuizQuestion.options),
        )
        .filter(Quiz.id == quiz_id, Quiz.company_id == company_id)
        .first()
    )


# --- Assignments ---

def create_assignments(
    db: Session,
    *,
    quiz_id: int,
    user_ids: Iterable[int],
    assigned_by: int,
    due_date: Optional[datetime] = None,
) -> List[QuizAssignment]:
    """Assigns the quiz to each user not already holding it."""
    user_ids = list(dict.fromkeys(user_ids))
    already = {
        row.user_id
        for row in db.query(QuizAssignment.user_id)
        .filter(QuizAssignment.quiz_id == quiz_id, QuizAssignment.user_id.in_(user_ids))
        .all()
    }
    created = [
        QuizAssignment(quiz_id=quiz_id, user_id=user_id, assigned_by=assigned_by, due_date=due_date)
        for user_id in user_ids
        if user_id not in already
    ]
    db.add_all(created)
    db.commit()
    for assignment in created:
        db.refresh(assignment)
    return created


def list_user_assignments(db: Session, user_id: int) -> List[QuizAssignment]:
    return (
        db.query(QuizAssignment)
        .options(joinedload(QuizAssignment.quiz).joinedload(Quiz.category))
        .filter(QuizAssignment.user_id == user_id)
        .order_by(QuizAssignment.assigned_at.desc(), QuizAssignment.id.desc())
        .all()
    )


def latest_attempts_by_quiz(db: Session, user_id: int) -> Dict[int, QuizAttempt]:
    attempts = (
        db.query(QuizAttempt)
        .filter(QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.started_at.asc(), QuizAttempt.id.asc())
        .all()
    )
    latest: Dict[int, QuizAttempt] = {}
    for attempt in attempts:
        latest[attempt.quiz_id] = attempt
    return latest


# --- Attempts ---

def start_attempt(db: Session, quiz_id: int, user_id: int) -> QuizAttempt:
    attempt = QuizAttempt(quiz_id=quiz_id, user_id=user_id, status=AttemptStatus.in_progress)
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def get_attempt(db: Session, attempt_id: int, user_id: int) -> Optional[QuizAttempt]:
    return (
        db.query(QuizAttempt)
        .filter(QuizAttempt.id == attempt_id, QuizAttempt.user_id == user_id)
        .first()
    )


def complete_attempt(
    db: Session,
    attempt: QuizAttempt,
    result: ScoreResult,
    time_spent: Optional[int] = None,
) -> QuizAttempt:
    """Writes all answers in one batch, then finalizes the attempt row."""
    db.add_all([
        QuizAnswer(
            attempt_id=attempt.id,
            question_id=answer.question_id,
            option_id=answer.option_id,
            is_correct=answer.is_correct,
        )
        for answer in result.answers
    ])
    db.commit()

    attempt.status = AttemptStatus.completed
    attempt.score = result.score
    attempt.total_points = result.total_points
    attempt.percentage = result.percentage
    attempt.time_spent = time_spent
    attempt.completed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(attempt)
    return attempt


# --- Dashboards ---

def user_progress(db: Session, user_id: int) -> Dict[str, object]:
    assigned = db.query(func.count(QuizAssignment.id)).filter(QuizAssignment.user_id == user_id).scalar() or 0
    completed_rows = (
        db.query(QuizAttempt.quiz_id, func.max(QuizAttempt.percentage))
        .filter(QuizAttempt.user_id == user_id, QuizAttempt.status == AttemptStatus.completed)
        .group_by(QuizAttempt.quiz_id)
        .all()
    )
    best_scores = [pct for _, pct in completed_rows if pct is not None]
    average = round(sum(best_scores) / len(best_scores), 2) if best_scores else None
    return {
        "assigned": assigned,
        "completed": len(completed_rows),
        "average_percentage": average,
        "completion": completion_rate(len(completed_rows), assigned),
    }


def company_summary(db: Session, company_id: int) -> Dict[str, object]:
    members = db.query(func.count(Profile.id)).filter(Profile.company_id == company_id).scalar() or 0
    documents = db.query(func.count(Document.id)).filter(Document.company_id == company_id).scalar() or 0
    quizzes = db.query(func.count(Quiz.id)).filter(Quiz.company_id == company_id).scalar() or 0
    completed_query = (
        db.query(QuizAttempt)
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .filter(Quiz.company_id == company_id, QuizAttempt.status == AttemptStatus.completed)
    )
    completed = completed_query.count()
    average = completed_query.with_entities(func.avg(QuizAttempt.percentage)).scalar()
    return {
        "members": members,
        "documents": documents,
        "quizzes": quizzes,
        "completed_attempts": completed,
        "average_percentage": round(float(average), 2) if average is not None else None,
    }


def team_progress(db: Session, members: Iterable[Profile]) -> List[Dict[str, object]]:
    """Per-member completion rate, latest quiz and status for a manager's team."""
    rows = []
    for member in members:
        assigned = (
            db.query(func.count(QuizAssignment.id)).filter(QuizAssignment.user_id == member.id).scalar() or 0
        )
        attempts = (
            db.query(QuizAttempt)
            .options(joinedload(QuizAttempt.quiz))
            .filter(QuizAttempt.user_id == member.id)
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
            .all()
        )
        completed = sum(1 for a in attempts if a.status == AttemptStatus.completed)
        completion = completion_rate(completed, assigned)
        latest = attempts[0] if attempts else None
        rows.append({
            "user_id": member.id,
            "name": member.name,
            "job_title": member.job_title,
            "completion": completion,
            "latest_quiz": latest.quiz.title if latest else None,
            "latest_score": latest.percentage if latest else None,
            "status": progress_status(completion),
        })
    return rows

# app/api/v1/endpoints/attempts.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.endpoints.quizzes import quiz_summary
from app.core.deps import get_current_user
from app.core.logging_config import QUIZ_SUBMISSIONS_TOTAL
from app.crud import crud_quiz
from app.db.session import get_db
from app.models.quiz import AttemptStatus
from app.models.user import User
from app.schemas.quiz import AttemptResult, AttemptStarted, AttemptSubmit, QuestionOut, QuizForTaking
from app.services.quiz_scoring import (
    IncompleteAnswersError, ScoredQuestion, UnknownOptionError, score_attempt,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/quizzes/{quiz_id}", response_model=AttemptStarted, status_code=status.HTTP_201_CREATED,
             summary="Open a quiz and start an attempt")
def start_attempt(quiz_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    quiz = crud_quiz.get_quiz(db, quiz_id, user.profile.company_id)
    if quiz is None or not quiz.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")

    attempt = crud_quiz.start_attempt(db, quiz.id, user.id)
    return AttemptStarted(
        attempt_id=attempt.id,
        status=attempt.status,
        quiz=QuizForTaking(
            **quiz_summary(quiz).model_dump(),
            questions=[QuestionOut.model_validate(q) for q in quiz.questions],
        ),
    )


@router.post("/{attempt_id}/submit", response_model=AttemptResult, summary="Submit answers and score")
def submit_attempt(
    attempt_id: int,
    payload: AttemptSubmit,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    attempt = crud_quiz.get_attempt(db, attempt_id, user.id)
    if attempt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found")
    if attempt.status == AttemptStatus.completed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt already submitted")

    selections = {}
    for answer in payload.answers:
        if answer.question_id in selections:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Question {answer.question_id} answered more than once",
            )
        selections[answer.question_id] = answer.option_id

    quiz = crud_quiz.get_quiz(db, attempt.quiz_id, user.profile.company_id)
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    questions = [
        ScoredQuestion(
            question_id=q.id,
            points=q.points,
            correct_option_ids=frozenset(o.id for o in q.options if o.is_correct),
            option_ids=frozenset(o.id for o in q.options),
        )
        for q in quiz.questions
    ]

    try:
        result = score_attempt(questions, selections, quiz.pass_score)
    except IncompleteAnswersError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except UnknownOptionError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    attempt = crud_quiz.complete_attempt(db, attempt, result, time_spent=payload.time_spent)
    QUIZ_SUBMISSIONS_TOTAL.labels(verdict="pass" if result.passed else "fail").inc()
    logger.info(
        f"Attempt {attempt.id} completed: {result.score}/{result.total_points}",
        extra={"user_id": user.id, "attempt_id": attempt.id, "quiz_id": quiz.id},
    )
    return AttemptResult(
        attempt_id=attempt.id,
        status=attempt.status,
        score=result.score,
        total_points=result.total_points,
        percentage=result.percentage,
        pass_score=quiz.pass_score,
        passed=result.passed,
    )

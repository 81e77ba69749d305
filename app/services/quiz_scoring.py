# app/services/quiz_scoring.py
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence


class IncompleteAnswersError(ValueError):
    def __init__(self, missing_question_ids: Sequence[int]):
        super().__init__(f"Unanswered questions: {list(missing_question_ids)}")
        self.missing_question_ids = list(missing_question_ids)


class UnknownOptionError(ValueError):
    pass


@dataclass(frozen=True)
class ScoredQuestion:
    question_id: int
    points: int
    correct_option_ids: frozenset
    option_ids: frozenset


@dataclass(frozen=True)
class AnswerResult:
    question_id: int
    option_id: int
    is_correct: bool


@dataclass(frozen=True)
class ScoreResult:
    score: int
    total_points: int
    percentage: float
    passed: bool
    answers: tuple


def score_attempt(
    questions: Iterable[ScoredQuestion],
    selections: Mapping[int, int],
    pass_score: Optional[int],
) -> ScoreResult:
    """
    Scores a single-select attempt.

    Every question needs a selection. The score is the sum of points for
    questions whose chosen option is correct; percentage is that over the
    total available points, times 100, and passes when it reaches pass_score.
    """
    questions = list(questions)
    missing = [q.question_id for q in questions if q.question_id not in selections]
    if missing:
        raise IncompleteAnswersError(missing)

    score = 0
    total = 0
    answers = []
    for question in questions:
        option_id = selections[question.question_id]
        if option_id not in question.option_ids:
            raise UnknownOptionError(
                f"Option {option_id} does not belong to question {question.question_id}"
            )
        correct = option_id in question.correct_option_ids
        total += question.points
        if correct:
            score += question.points
        answers.append(AnswerResult(question.question_id, option_id, correct))

    percentage = (score / total * 100) if total else 0.0
    threshold = pass_score if pass_score is not None else 0
    return ScoreResult(
        score=score,
        total_points=total,
        percentage=round(percentage, 2),
        passed=percentage >= threshold,
        answers=tuple(answers),
    )


def completion_rate(completed: int, assigned: int) -> int:
    """Completed attempts over assignments, as a rounded percentage."""
    if assigned <= 0:
        return 0
    return round(completed / assigned * 100)


def progress_status(completion: int) -> str:
    """Team dashboard status label for a member's completion rate."""
    if completion >= 90:
        return "completed"
    if completion >= 50:
        return "in_progress"
    if completion > 0:
        return "delayed"
    return "not_started"

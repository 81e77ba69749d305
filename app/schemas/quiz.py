from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.models.quiz import AttemptStatus


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: Optional[str] = None
    parent_id: Optional[int] = None
    document_id: Optional[int] = None

    class Config:
        from_attributes = True


class QuizSummary(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    is_active: bool
    pass_score: int
    category: Optional[CategoryOut] = None
    question_count: int = 0
    created_at: Optional[datetime] = None


# Options are served without is_correct/explanation to quiz takers
class OptionOut(BaseModel):
    id: int
    option_text: str
    order_index: int

    class Config:
        from_attributes = True


class OptionDetail(OptionOut):
    is_correct: bool
    explanation: Optional[str] = None


class QuestionOut(BaseModel):
    id: int
    question_text: str
    points: int
    order_index: int
    options: List[OptionOut]

    class Config:
        from_attributes = True


class QuestionDetail(QuestionOut):
    options: List[OptionDetail]


class QuizDetail(QuizSummary):
    questions: List[QuestionDetail]


class QuizForTaking(QuizSummary):
    questions: List[QuestionOut]


class AssignmentCreate(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    due_date: Optional[datetime] = None


class AssignmentResult(BaseModel):
    quiz_id: int
    assigned: List[int]
    skipped: List[int] = []


class MyAssignment(BaseModel):
    assignment_id: int
    quiz_id: int
    quiz_title: str
    category: Optional[str] = None
    due_date: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    latest_status: Optional[AttemptStatus] = None
    latest_percentage: Optional[float] = None


class AttemptStarted(BaseModel):
    attempt_id: int
    status: AttemptStatus
    quiz: QuizForTaking


class AnswerIn(BaseModel):
    question_id: int
    option_id: int


class AttemptSubmit(BaseModel):
    answers: List[AnswerIn]
    time_spent: Optional[int] = Field(None, ge=0)


class AttemptResult(BaseModel):
    attempt_id: int
    status: AttemptStatus
    score: int
    total_points: int
    percentage: float
    pass_score: int
    passed: bool


class UserProgress(BaseModel):
    assigned: int
    completed: int
    completion: int
    average_percentage: Optional[float] = None


class CompanySummary(BaseModel):
    members: int
    documents: int
    quizzes: int
    completed_attempts: int
    average_percentage: Optional[float] = None


class TeamMemberProgress(BaseModel):
    user_id: int
    name: str
    job_title: Optional[str] = None
    completion: int
    latest_quiz: Optional[str] = None
    latest_score: Optional[float] = None
    status: str

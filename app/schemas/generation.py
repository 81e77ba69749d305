from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from app.schemas.ai import CategoryPath


class SessionCreate(BaseModel):
    document_id: int


class TextEdit(BaseModel):
    text: str


class QuestionEdit(BaseModel):
    question_text: Optional[str] = None
    explanation: Optional[str] = None


class OptionEdit(BaseModel):
    text: Optional[str] = None
    is_correct: Optional[bool] = None


class SuggestRequest(BaseModel):
    quiz_title: Optional[str] = None


class ManualCategory(BaseModel):
    level1: str = Field(..., min_length=1)
    level2: str = Field(..., min_length=1)
    level3: str = Field(..., min_length=1)


class TitleSubmit(BaseModel):
    """
    Title plus at most one category source: an index into the suggested
    paths, a manual three-level path, or neither for the default category.
    """
    title: str
    suggestion_index: Optional[int] = Field(None, ge=0, le=2)
    manual_category: Optional[ManualCategory] = None

    @model_validator(mode='after')
    def one_category_source(self) -> "TitleSubmit":
        if self.suggestion_index is not None and self.manual_category is not None:
            raise ValueError("choose a suggested category or enter one manually, not both")
        return self


class DraftOptionOut(BaseModel):
    text: str
    is_correct: bool
    saved_id: Optional[int] = None


class DraftQuestionOut(BaseModel):
    key: int
    question_text: str
    explanation: str
    options: List[DraftOptionOut]
    saved_id: Optional[int] = None


class SessionState(BaseModel):
    session_id: str
    document_id: int
    step: str
    progress: int
    can_cancel: bool
    text: Optional[str] = None
    quality: Optional[str] = None
    from_cache: bool = False
    questions: List[DraftQuestionOut] = []
    suggestions: List[CategoryPath] = []
    title: Optional[str] = None
    quiz_id: Optional[int] = None
    fallback: Optional[str] = None
    error: Optional[str] = None

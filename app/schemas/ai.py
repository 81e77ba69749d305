# app/schemas/ai.py
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

QUESTION_OPTION_COUNT = 4
SUGGESTED_PATH_COUNT = 3


# --- Text transformation endpoints ---

class TextRequest(BaseModel):
    text: str = Field("", description="Text to process")


class CleanedTextResponse(BaseModel):
    cleanedText: str


class FormattedTextResponse(BaseModel):
    formattedText: str


class HighlightedTextResponse(BaseModel):
    highlightedText: str


class AIErrorResponse(BaseModel):
    error: str


# --- Category suggestion ---

class CategoryLevels(BaseModel):
    level1: str = Field(..., min_length=1, description="Major category")
    level2: str = Field(..., min_length=1, description="Medium category")
    level3: str = Field(..., min_length=1, description="Minor category")

    @field_validator('level1', 'level2', 'level3')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("category level must not be blank")
        return v


class CategoryPath(BaseModel):
    displayPath: str = ""
    levels: CategoryLevels
    slugPath: List[str] = Field(..., min_length=3, max_length=3)

    @field_validator('slugPath')
    @classmethod
    def slugs_present(cls, v: List[str]) -> List[str]:
        if any(not s or not s.strip() for s in v):
            raise ValueError("every level needs a slug")
        return [s.strip() for s in v]

    @model_validator(mode='after')
    def fill_display_path(self) -> "CategoryPath":
        if not self.displayPath:
            self.displayPath = " > ".join(
                [self.levels.level1, self.levels.level2, self.levels.level3]
            )
        return self


class SuggestCategoriesRequest(BaseModel):
    company_name: Optional[str] = None
    onboarding_document_title: str = ""
    quiz_title: Optional[str] = None
    onboarding_document_plaintext: str = ""


class SuggestCategoriesResponse(BaseModel):
    suggested_category_paths: List[CategoryPath]

    @field_validator('suggested_category_paths')
    @classmethod
    def exactly_three(cls, v: List[CategoryPath]) -> List[CategoryPath]:
        if len(v) != SUGGESTED_PATH_COUNT:
            raise ValueError(f"expected exactly {SUGGESTED_PATH_COUNT} category paths, got {len(v)}")
        return v


# --- Quiz generation ---

class GeneratedOption(BaseModel):
    text: str
    is_correct: bool = False
    explanation: Optional[str] = None


class GeneratedQuestion(BaseModel):
    question_text: str = Field(..., min_length=1)
    options: List[GeneratedOption]
    explanation: str = ""

    @model_validator(mode='after')
    def single_correct_option(self) -> "GeneratedQuestion":
        if len(self.options) != QUESTION_OPTION_COUNT:
            raise ValueError(f"expected {QUESTION_OPTION_COUNT} options, got {len(self.options)}")
        correct = [o for o in self.options if o.is_correct]
        if len(correct) != 1:
            raise ValueError(f"expected exactly one correct option, got {len(correct)}")
        if not self.explanation:
            self.explanation = correct[0].explanation or ""
        return self


class GenerateQuizRequest(BaseModel):
    text: str = ""


class GenerateQuizResponse(BaseModel):
    questions: List[GeneratedQuestion]


class GeneratedImageQuiz(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    question: GeneratedQuestion


class GeneratedImageCategory(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    quizzes: List[GeneratedImageQuiz] = Field(..., min_length=1)


class GenerateFromImagesRequest(BaseModel):
    images: List[str] = Field(..., min_length=1, description="Page images as data URLs or https URLs")


class GenerateFromImagesResponse(BaseModel):
    success: bool
    categories_created: int
    quizzes_created: int
    questions_created: int

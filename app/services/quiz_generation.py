# app/services/quiz_generation.py
"""
Document-to-quiz generation wizard.

The wizard is a state machine driven by explicit events:

    extracting -> text_review -> generating -> quiz_review -> title_input -> saving -> complete

Human-gated steps (text_review, quiz_review, title_input) never advance on
their own. Each step carries only the data it needs. Persistence is
deliberately non-transactional; every row written is remembered as Saved so a
retry resumes where the failed insert left off.
"""
import asyncio
import enum
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union

from app.core.config import settings
from app.crud.errors import PersistenceError
from app.schemas.ai import CategoryPath, GeneratedQuestion
from app.services.ai_text_service import AIServiceError, AITextService
from app.services.document_extraction import DocumentText, ExtractionError
from app.services.text_pipeline import PipelineQuality
from app.utils.highlight_utils import render_highlighted, to_plain_text
from app.utils.text_utils import slugify

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_NAME = "기본 카테고리"
DEFAULT_CATEGORY_DESCRIPTION = "자동 생성된 카테고리"


class WizardStep(str, enum.Enum):
    extracting = "extracting"
    text_review = "text_review"
    generating = "generating"
    quiz_review = "quiz_review"
    title_input = "title_input"
    saving = "saving"
    complete = "complete"
    extraction_failed = "extraction_failed"
    cancelled = "cancelled"


class WizardEvent(str, enum.Enum):
    text_ready = "text_ready"
    extraction_failed = "extraction_failed"
    confirm_text = "confirm_text"
    generation_succeeded = "generation_succeeded"
    generation_failed = "generation_failed"
    confirm_questions = "confirm_questions"
    back = "back"
    submit_title = "submit_title"
    save_failed = "save_failed"
    retry_save = "retry_save"
    save_succeeded = "save_succeeded"
    cancel = "cancel"


# (current step, event) -> next step. Anything missing is an illegal transition.
TRANSITIONS: Dict[Tuple[WizardStep, WizardEvent], WizardStep] = {
    (WizardStep.extracting, WizardEvent.text_ready): WizardStep.text_review,
    (WizardStep.extracting, WizardEvent.extraction_failed): WizardStep.extraction_failed,
    (WizardStep.text_review, WizardEvent.confirm_text): WizardStep.generating,
    (WizardStep.generating, WizardEvent.generation_succeeded): WizardStep.quiz_review,
    (WizardStep.generating, WizardEvent.generation_failed): WizardStep.text_review,
    (WizardStep.quiz_review, WizardEvent.confirm_questions): WizardStep.title_input,
    (WizardStep.quiz_review, WizardEvent.back): WizardStep.text_review,
    (WizardStep.title_input, WizardEvent.back): WizardStep.quiz_review,
    (WizardStep.title_input, WizardEvent.submit_title): WizardStep.saving,
    (WizardStep.saving, WizardEvent.save_failed): WizardStep.saving,
    (WizardStep.saving, WizardEvent.retry_save): WizardStep.saving,
    (WizardStep.saving, WizardEvent.save_succeeded): WizardStep.complete,
}

# Nothing has been written before saving, so cancelling is free everywhere
# except mid-AI-call and once the save chain has started.
CANCELLABLE_STEPS = frozenset({
    WizardStep.extracting,
    WizardStep.text_review,
    WizardStep.quiz_review,
    WizardStep.title_input,
    WizardStep.extraction_failed,
})
for _step in CANCELLABLE_STEPS:
    TRANSITIONS[(_step, WizardEvent.cancel)] = WizardStep.cancelled


class WorkflowError(Exception):
    """Event not allowed in the current step."""

    def __init__(self, step: WizardStep, event: WizardEvent):
        super().__init__(f"'{event.value}' is not allowed while the wizard is in '{step.value}'")
        self.step = step
        self.event = event


class WorkflowValidationError(WorkflowError):
    """Transition blocked by input the human has to fix."""

    def __init__(self, step: WizardStep, event: WizardEvent, message: str):
        Exception.__init__(self, message)
        self.step = step
        self.event = event
        self.message = message


# --- Row identity ---

@dataclass(frozen=True)
class Saved:
    id: int


@dataclass(frozen=True)
class Draft:
    local_index: int


RowRef = Union[Saved, Draft]


@dataclass
class DraftOption:
    text: str
    is_correct: bool
    ref: RowRef


@dataclass
class DraftQuestion:
    ref: RowRef
    question_text: str
    options: List[DraftOption]
    explanation: str = ""

    @property
    def key(self) -> int:
        """Stable handle used by the API; the draft index assigned at generation."""
        return self.ref.local_index if isinstance(self.ref, Draft) else self.ref.id

    @classmethod
    def from_generated(cls, index: int, question: GeneratedQuestion) -> "DraftQuestion":
        return cls(
            ref=Draft(index),
            question_text=question.question_text,
            explanation=question.explanation,
            options=[
                DraftOption(text=o.text, is_correct=o.is_correct, ref=Draft(i))
                for i, o in enumerate(question.options)
            ],
        )


@dataclass(frozen=True)
class CategoryChoice:
    """Three-level category path with a slug per level."""
    names: Tuple[str, str, str]
    slugs: Tuple[str, str, str]

    @classmethod
    def from_path(cls, path: CategoryPath) -> "CategoryChoice":
        levels = path.levels
        return cls(
            names=(levels.level1, levels.level2, levels.level3),
            slugs=tuple(path.slugPath),
        )

    @classmethod
    def manual(cls, level1: str, level2: str, level3: str) -> "CategoryChoice":
        names = tuple(n.strip() for n in (level1, level2, level3))
        if not all(names):
            raise ValueError("all three category levels are required")
        return cls(names=names, slugs=tuple(slugify(n) for n in names))


# --- Per-step data ---

@dataclass
class ExtractingData:
    pass


@dataclass
class ExtractionFailedData:
    reason: str
    fallback: str = "download"


@dataclass
class TextReviewData:
    text: str
    quality: Optional[PipelineQuality] = None
    from_cache: bool = False
    error: Optional[str] = None


@dataclass
class GeneratingData:
    text: str


@dataclass
class QuizReviewData:
    text: str
    questions: List[DraftQuestion]


@dataclass
class TitleInputData:
    text: str
    questions: List[DraftQuestion]
    suggestions: List[CategoryPath] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class SavingData:
    text: str
    title: str
    category: Optional[CategoryChoice]
    questions: List[DraftQuestion]
    category_ref: RowRef = Draft(0)
    quiz_ref: RowRef = Draft(0)
    document_approved: bool = False
    error: Optional[str] = None


@dataclass
class CompleteData:
    quiz_id: int
    category_id: int
    question_count: int


@dataclass
class CancelledData:
    pass


StepData = Union[
    ExtractingData, ExtractionFailedData, TextReviewData, GeneratingData, QuizReviewData,
    TitleInputData, SavingData, CompleteData, CancelledData,
]


class SyntheticProgress:
    """Cosmetic progress for the generating step: +10 per tick, capped at 90 until done."""

    STEP = 10
    CEILING = 90

    def __init__(self):
        self.value = 0

    def tick(self) -> int:
        self.value = min(self.value + self.STEP, self.CEILING)
        return self.value

    def complete(self) -> None:
        self.value = 100

    async def run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.tick()


class QuizStore(Protocol):
    """Row writes used by the save chain. Each call commits on its own."""

    def ensure_category_path(self, company_id: int, document_id: int, category: CategoryChoice) -> int: ...

    def ensure_default_category(self, company_id: int, document_id: int, name: str, description: str) -> int: ...

    def create_quiz(self, company_id: int, category_id: int, title: str, description: str,
                    created_by: int, pass_score: int) -> int: ...

    def create_question(self, quiz_id: int, question_text: str, order_index: int) -> int: ...

    def create_option(self, question_id: int, option_text: str, is_correct: bool,
                      explanation: Optional[str], order_index: int) -> int: ...

    def approve_document(self, document_id: int) -> None: ...


class QuizGenerationWorkflow:
    def __init__(
        self,
        *,
        document_id: int,
        document_title: str,
        company_id: int,
        user_id: int,
        service: AITextService,
        company_name: Optional[str] = None,
        progress_interval: float = 0.5,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.document_id = document_id
        self.document_title = document_title
        self.company_id = company_id
        self.user_id = user_id
        self.company_name = company_name
        self.service = service
        self.progress = SyntheticProgress()
        self.progress_interval = progress_interval
        self.step = WizardStep.extracting
        self.data: StepData = ExtractingData()

    # --- Transition core ---

    def can(self, event: WizardEvent) -> bool:
        return (self.step, event) in TRANSITIONS

    def _fire(self, event: WizardEvent, data: StepData) -> None:
        target = TRANSITIONS.get((self.step, event))
        if target is None:
            raise WorkflowError(self.step, event)
        logger.info(
            f"Wizard {self.session_id}: {self.step.value} --{event.value}--> {target.value}",
            extra={"session_id": self.session_id, "document_id": self.document_id},
        )
        self.step = target
        self.data = data

    def _require(self, event: WizardEvent) -> None:
        if not self.can(event):
            raise WorkflowError(self.step, event)

    def _find_question(self, key: int) -> DraftQuestion:
        for question in self.data.questions:
            if question.key == key:
                return question
        raise KeyError(key)

    # --- extracting ---

    async def begin_extraction(self, prepare: Callable[[], Awaitable[DocumentText]]) -> None:
        """Runs extraction + text pipeline and lands in text_review (or extraction_failed)."""
        try:
            result = await prepare()
        except ExtractionError as e:
            if self.step == WizardStep.extracting:
                self._fire(WizardEvent.extraction_failed, ExtractionFailedData(reason=str(e)))
            return
        if self.step != WizardStep.extracting:
            # Cancelled while extracting
            return
        self._fire(
            WizardEvent.text_ready,
            TextReviewData(text=result.text, quality=result.quality, from_cache=result.from_cache),
        )

    # --- text_review ---

    def edit_text(self, text: str) -> None:
        if self.step != WizardStep.text_review:
            raise WorkflowError(self.step, WizardEvent.confirm_text)
        self.data = replace(self.data, text=text, error=None)

    async def confirm_text(self) -> None:
        """
        Sends the reviewed text for quiz generation.

        On failure the wizard returns to text_review with the edited text intact
        and the AI error is re-raised for the caller to report.
        """
        self._require(WizardEvent.confirm_text)
        text = self.data.text
        if not text.strip():
            raise WorkflowValidationError(self.step, WizardEvent.confirm_text, "퀴즈를 생성할 텍스트가 없습니다")

        self._fire(WizardEvent.confirm_text, GeneratingData(text=text))
        self.progress = SyntheticProgress()
        ticker = asyncio.create_task(self.progress.run(self.progress_interval))
        try:
            questions = await self.service.generate_quiz_questions(text)
        except AIServiceError as e:
            self._fire(WizardEvent.generation_failed, TextReviewData(text=text, error=e.message))
            raise
        finally:
            ticker.cancel()

        self.progress.complete()
        self._fire(
            WizardEvent.generation_succeeded,
            QuizReviewData(
                text=text,
                questions=[DraftQuestion.from_generated(i, q) for i, q in enumerate(questions)],
            ),
        )

    # --- quiz_review ---

    def _require_review(self) -> None:
        if self.step != WizardStep.quiz_review:
            raise WorkflowError(self.step, WizardEvent.confirm_questions)

    def edit_question(self, key: int, question_text: Optional[str] = None,
                      explanation: Optional[str] = None) -> DraftQuestion:
        self._require_review()
        question = self._find_question(key)
        if question_text is not None:
            question.question_text = question_text
        if explanation is not None:
            question.explanation = explanation
        return question

    def edit_option(self, key: int, option_index: int, text: Optional[str] = None,
                    is_correct: Optional[bool] = None) -> DraftQuestion:
        """Marking an option correct clears every sibling on the same question."""
        self._require_review()
        question = self._find_question(key)
        if not 0 <= option_index < len(question.options):
            raise IndexError(option_index)
        option = question.options[option_index]
        if text is not None:
            option.text = text
        if is_correct is not None:
            option.is_correct = is_correct
            if is_correct:
                for index, sibling in enumerate(question.options):
                    if index != option_index:
                        sibling.is_correct = False
        return question

    def delete_question(self, key: int) -> None:
        self._require_review()
        question = self._find_question(key)
        self.data.questions.remove(question)

    def confirm_questions(self) -> None:
        self._require(WizardEvent.confirm_questions)
        questions = self.data.questions
        if not questions:
            raise WorkflowValidationError(self.step, WizardEvent.confirm_questions, "최소 1개의 문제가 필요합니다")
        for number, question in enumerate(questions, start=1):
            if not question.question_text.strip():
                raise WorkflowValidationError(
                    self.step, WizardEvent.confirm_questions,
                    f"문제 {number}의 내용을 입력해주세요",
                )
            if not any(o.is_correct for o in question.options):
                raise WorkflowValidationError(
                    self.step, WizardEvent.confirm_questions,
                    f"문제 {number}의 정답을 선택해주세요",
                )
        self._fire(WizardEvent.confirm_questions, TitleInputData(text=self.data.text, questions=questions))

    def back(self) -> None:
        self._require(WizardEvent.back)
        if self.step == WizardStep.quiz_review:
            self._fire(WizardEvent.back, TextReviewData(text=self.data.text))
        else:
            self._fire(WizardEvent.back, QuizReviewData(text=self.data.text, questions=self.data.questions))

    # --- title_input ---

    async def suggest_categories(self, quiz_title: Optional[str] = None) -> List[CategoryPath]:
        """
        Fetches three suggested category paths for the reviewed text with its
        emphasis markers stripped. An invalid reply leaves the suggestion list
        empty and propagates.
        """
        if self.step != WizardStep.title_input:
            raise WorkflowError(self.step, WizardEvent.submit_title)
        self.data.suggestions = []
        self.data.error = None
        try:
            response = await self.service.suggest_categories(
                document_title=self.document_title,
                document_text=to_plain_text(render_highlighted(self.data.text)),
                quiz_title=quiz_title,
                company_name=self.company_name,
            )
        except AIServiceError as e:
            self.data.error = e.message
            raise
        self.data.suggestions = response.suggested_category_paths
        return self.data.suggestions

    def submit_title(self, title: str, category: Optional[CategoryChoice], store: QuizStore) -> None:
        """Moves to saving and runs the save chain. ``category=None`` files the quiz under the default category."""
        self._require(WizardEvent.submit_title)
        if not title or not title.strip():
            raise WorkflowValidationError(self.step, WizardEvent.submit_title, "퀴즈 제목을 입력해주세요")
        self._fire(
            WizardEvent.submit_title,
            SavingData(
                text=self.data.text,
                title=title.strip(),
                category=category,
                questions=self.data.questions,
            ),
        )
        self._save(store)

    # --- saving ---

    def retry_save(self, store: QuizStore) -> None:
        self._require(WizardEvent.retry_save)
        self._fire(WizardEvent.retry_save, replace(self.data, error=None))
        self._save(store)

    def _save(self, store: QuizStore) -> None:
        data: SavingData = self.data
        try:
            self._run_save_chain(data, store)
        except PersistenceError as e:
            logger.error(
                f"Wizard {self.session_id}: save failed, partial rows kept: {e}",
                extra={"session_id": self.session_id, "document_id": self.document_id},
            )
            data.error = str(e)
            self._fire(WizardEvent.save_failed, data)
            raise

        category_id = data.category_ref.id
        self._fire(
            WizardEvent.save_succeeded,
            CompleteData(quiz_id=data.quiz_ref.id, category_id=category_id, question_count=len(data.questions)),
        )

    def _run_save_chain(self, data: SavingData, store: QuizStore) -> None:
        """
        category -> quiz -> each question then its options -> document approved.
        Rows already marked Saved are skipped, so calling this again resumes.
        """
        if isinstance(data.category_ref, Draft):
            if data.category is None:
                category_id = store.ensure_default_category(
                    self.company_id, self.document_id, DEFAULT_CATEGORY_NAME, DEFAULT_CATEGORY_DESCRIPTION
                )
            else:
                category_id = store.ensure_category_path(self.company_id, self.document_id, data.category)
            data.category_ref = Saved(category_id)

        if isinstance(data.quiz_ref, Draft):
            quiz_id = store.create_quiz(
                company_id=self.company_id,
                category_id=data.category_ref.id,
                title=data.title,
                description=f"{self.document_title}에서 생성된 퀴즈",
                created_by=self.user_id,
                pass_score=settings.DEFAULT_PASS_SCORE,
            )
            data.quiz_ref = Saved(quiz_id)

        for question_index, question in enumerate(data.questions):
            if isinstance(question.ref, Draft):
                question_id = store.create_question(data.quiz_ref.id, question.question_text, question_index)
                question.ref = Saved(question_id)
            for option_index, option in enumerate(question.options):
                if isinstance(option.ref, Saved):
                    continue
                option_id = store.create_option(
                    question_id=question.ref.id,
                    option_text=option.text,
                    is_correct=option.is_correct,
                    explanation=question.explanation if option.is_correct else None,
                    order_index=option_index,
                )
                option.ref = Saved(option_id)

        if not data.document_approved:
            store.approve_document(self.document_id)
            data.document_approved = True

    # --- any step ---

    def cancel(self) -> None:
        self._fire(WizardEvent.cancel, CancelledData())


class WorkflowRegistry:
    """
    Process-local wizard sessions keyed by session id.

    Sessions untouched for ``idle_seconds`` are dropped whenever a new one is
    added, which covers wizards abandoned in any step.
    """

    def __init__(self, idle_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._sessions: Dict[str, QuizGenerationWorkflow] = {}
        self._last_seen: Dict[str, float] = {}
        self.idle_seconds = idle_seconds if idle_seconds is not None else settings.WIZARD_SESSION_IDLE_SECONDS
        self.clock = clock

    def add(self, workflow: QuizGenerationWorkflow) -> QuizGenerationWorkflow:
        self.prune()
        self._sessions[workflow.session_id] = workflow
        self._last_seen[workflow.session_id] = self.clock()
        return workflow

    def get(self, session_id: str) -> QuizGenerationWorkflow:
        workflow = self._sessions[session_id]
        self._last_seen[session_id] = self.clock()
        return workflow

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)

    def prune(self) -> int:
        """Drops idle sessions and returns how many went."""
        cutoff = self.clock() - self.idle_seconds
        stale = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in stale:
            logger.info(f"Wizard {session_id}: dropped after being idle", extra={"session_id": session_id})
            self.discard(session_id)
        return len(stale)

    def clear(self) -> None:
        self._sessions.clear()
        self._last_seen.clear()

    def __len__(self) -> int:
        return len(self._sessions)


registry = WorkflowRegistry()


def get_registry() -> WorkflowRegistry:
    return registry

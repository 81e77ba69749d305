# app/api/v1/endpoints/generation.py
"""
HTTP surface of the quiz generation wizard. Each session lives in the
process-local registry and belongs to the user who created it.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.deps import require_quiz_creator
from app.core.errors import to_http_exception
from app.crud import crud_document
from app.crud.crud_quiz import SqlQuizStore
from app.crud.errors import PersistenceError
from app.db.session import get_db
from app.models.document import DocumentStatus
from app.models.user import User
from app.schemas.generation import (
    DraftOptionOut, DraftQuestionOut, OptionEdit, QuestionEdit, SessionCreate, SessionState,
    SuggestRequest, TextEdit, TitleSubmit,
)
from app.schemas.ai import CategoryPath
from app.services.ai_text_service import AIServiceError, AITextService, get_ai_service
from app.services.document_extraction import ExtractionError, prepare_document_text
from app.services.file_storage import LocalFileStorage, StoredFileNotFound, get_storage
from app.services.quiz_generation import (
    CategoryChoice, CompleteData, ExtractionFailedData, QuizGenerationWorkflow, Saved,
    SavingData, TextReviewData, TitleInputData, WizardEvent, WizardStep, WorkflowError,
    WorkflowRegistry, get_registry,
)
from app.utils.highlight_utils import has_highlight_markers

logger = logging.getLogger(__name__)

router = APIRouter()


def _saved_id(ref):
    return ref.id if isinstance(ref, Saved) else None


def snapshot(workflow: QuizGenerationWorkflow) -> SessionState:
    data = workflow.data
    state = SessionState(
        session_id=workflow.session_id,
        document_id=workflow.document_id,
        step=workflow.step.value,
        progress=workflow.progress.value,
        can_cancel=workflow.can(WizardEvent.cancel),
        text=getattr(data, "text", None),
        error=getattr(data, "error", None),
    )
    if isinstance(data, TextReviewData):
        state.quality = data.quality.value if data.quality else None
        state.from_cache = data.from_cache
    if hasattr(data, "questions"):
        state.questions = [
            DraftQuestionOut(
                key=q.key,
                question_text=q.question_text,
                explanation=q.explanation,
                saved_id=_saved_id(q.ref),
                options=[
                    DraftOptionOut(text=o.text, is_correct=o.is_correct, saved_id=_saved_id(o.ref))
                    for o in q.options
                ],
            )
            for q in data.questions
        ]
    if isinstance(data, TitleInputData):
        state.suggestions = data.suggestions
    if isinstance(data, SavingData):
        state.title = data.title
    if isinstance(data, CompleteData):
        state.quiz_id = data.quiz_id
    if isinstance(data, ExtractionFailedData):
        state.fallback = data.fallback
        state.error = data.reason
    return state


def finish(workflow: QuizGenerationWorkflow, registry: WorkflowRegistry) -> SessionState:
    """Final snapshot of a completed wizard; the session is released from the registry."""
    state = snapshot(workflow)
    if workflow.step == WizardStep.complete:
        registry.discard(workflow.session_id)
    return state


def get_session(
    session_id: str,
    user: User = Depends(require_quiz_creator),
    registry: WorkflowRegistry = Depends(get_registry),
) -> QuizGenerationWorkflow:
    try:
        workflow = registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    if workflow.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return workflow


@router.post("/sessions", response_model=SessionState, status_code=status.HTTP_201_CREATED,
             summary="Start a wizard and extract the document")
async def create_session(
    payload: SessionCreate,
    user: User = Depends(require_quiz_creator),
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
    service: AITextService = Depends(get_ai_service),
    registry: WorkflowRegistry = Depends(get_registry),
):
    document = crud_document.get_document(db, payload.document_id, user.profile.company_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    workflow = registry.add(QuizGenerationWorkflow(
        document_id=document.id,
        document_title=document.title,
        company_id=document.company_id,
        user_id=user.id,
        company_name=user.profile.company.name if user.profile.company else None,
        service=service,
    ))

    async def prepare():
        try:
            data = storage.read(document.file_url)
        except StoredFileNotFound as e:
            raise ExtractionError(f"Stored file not found: {e}") from e
        return await prepare_document_text(
            document.ocr_text, lambda: data, document.file_type, service, filename=document.file_url
        )

    await workflow.begin_extraction(prepare)

    if workflow.step == WizardStep.extraction_failed:
        crud_document.set_status(db, document, DocumentStatus.failed)
    elif isinstance(workflow.data, TextReviewData):
        if not workflow.data.from_cache and has_highlight_markers(workflow.data.text):
            crud_document.update_ocr_text(db, document, workflow.data.text)
    return snapshot(workflow)


@router.get("/sessions/{session_id}", response_model=SessionState)
def read_session(workflow: QuizGenerationWorkflow = Depends(get_session)):
    return snapshot(workflow)


@router.put("/sessions/{session_id}/text", response_model=SessionState, summary="Edit the reviewed text")
def edit_text(payload: TextEdit, workflow: QuizGenerationWorkflow = Depends(get_session)):
    try:
        workflow.edit_text(payload.text)
    except WorkflowError as e:
        raise to_http_exception(e)
    return snapshot(workflow)


@router.post("/sessions/{session_id}/confirm-text", response_model=SessionState,
             summary="Confirm the text and generate questions")
async def confirm_text(workflow: QuizGenerationWorkflow = Depends(get_session)):
    try:
        await workflow.confirm_text()
    except (WorkflowError, AIServiceError) as e:
        raise to_http_exception(e)
    return snapshot(workflow)


@router.patch("/sessions/{session_id}/questions/{key}", response_model=SessionState)
def edit_question(key: int, payload: QuestionEdit, workflow: QuizGenerationWorkflow = Depends(get_session)):
    try:
        workflow.edit_question(key, question_text=payload.question_text, explanation=payload.explanation)
    except WorkflowError as e:
        raise to_http_exception(e)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
    return snapshot(workflow)


@router.patch("/sessions/{session_id}/questions/{key}/options/{option_index}", response_model=SessionState)
def edit_option(
    key: int,
    option_index: int,
    payload: OptionEdit,
    workflow: QuizGenerationWorkflow = Depends(get_session),
):
    try:
        workflow.edit_option(key, option_index, text=payload.text, is_correct=payload.is_correct)
    except WorkflowError as e:
        raise to_http_exception(e)
    except (KeyError, IndexError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Option not found")
    return snapshot(workflow)


@router.delete("/sessions/{session_id}/questions/{key}", response_model=SessionState)
def delete_question(key: int, workflow: QuizGenerationWorkflow = Depends(get_session)):
    try:
        workflow.delete_question(key)
    except WorkflowError as e:
        raise to_http_exception(e)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
    return snapshot(workflow)


@router.post("/sessions/{session_id}/confirm-questions", response_model=SessionState)
def confirm_questions(workflow: QuizGenerationWorkflow = Depends(get_session)):
    try:
        workflow.confirm_questions()
    except WorkflowError as e:
        raise to_http_exception(e)
    return snapshot(workflow)


@router.post("/sessions/{session_id}/back", response_model=SessionState)
def go_back(workflow: QuizGenerationWorkflow = Depends(get_session)):
    try:
        workflow.back()
    except WorkflowError as e:
        raise to_http_exception(e)
    return snapshot(workflow)


@router.post("/sessions/{session_id}/suggest-categories", response_model=SessionState)
async def suggest_categories(payload: SuggestRequest, workflow: QuizGenerationWorkflow = Depends(get_session)):
    try:
        await workflow.suggest_categories(payload.quiz_title)
    except (WorkflowError, AIServiceError) as e:
        raise to_http_exception(e)
    return snapshot(workflow)


def _category_choice(payload: TitleSubmit, workflow: QuizGenerationWorkflow):
    if payload.manual_category is not None:
        m = payload.manual_category
        try:
            return CategoryChoice.manual(m.level1, m.level2, m.level3)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if payload.suggestion_index is not None:
        suggestions = getattr(workflow.data, "suggestions", [])
        if payload.suggestion_index >= len(suggestions):
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="No such suggested category")
        path: CategoryPath = suggestions[payload.suggestion_index]
        return CategoryChoice.from_path(path)
    return None


@router.post("/sessions/{session_id}/title", response_model=SessionState, summary="Set the title and save")
def submit_title(
    payload: TitleSubmit,
    workflow: QuizGenerationWorkflow = Depends(get_session),
    db: Session = Depends(get_db),
    registry: WorkflowRegistry = Depends(get_registry),
):
    category = _category_choice(payload, workflow)
    try:
        workflow.submit_title(payload.title, category, SqlQuizStore(db))
    except (WorkflowError, PersistenceError) as e:
        raise to_http_exception(e)
    return finish(workflow, registry)


@router.post("/sessions/{session_id}/retry-save", response_model=SessionState,
             summary="Resume a save that failed part way")
def retry_save(
    workflow: QuizGenerationWorkflow = Depends(get_session),
    db: Session = Depends(get_db),
    registry: WorkflowRegistry = Depends(get_registry),
):
    try:
        workflow.retry_save(SqlQuizStore(db))
    except (WorkflowError, PersistenceError) as e:
        raise to_http_exception(e)
    return finish(workflow, registry)


@router.post("/sessions/{session_id}/cancel", response_model=SessionState)
def cancel(
    workflow: QuizGenerationWorkflow = Depends(get_session),
    registry: WorkflowRegistry = Depends(get_registry),
):
    try:
        workflow.cancel()
    except WorkflowError as e:
        raise to_http_exception(e)
    registry.discard(workflow.session_id)
    return snapshot(workflow)

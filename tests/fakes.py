"""
Test doubles: a stubbed AI gateway served through httpx.MockTransport, a
stub AI service for the wizard, and an in-memory quiz store.
"""
import io
import json
from typing import Dict, List, Optional

import httpx
from PyPDF2 import PdfWriter

from app.crud.errors import PersistenceError
from app.schemas.ai import GeneratedQuestion, SuggestCategoriesResponse
from app.services.ai_text_service import (
    CLEAN_DIAGNOSIS_PROMPT, FORMAT_PROMPT, HIGHLIGHT_PROMPT, IMAGE_QUIZ_TOOL,
    QUIZ_QUESTIONS_TOOL, SUGGEST_CATEGORIES_PROMPT, AIServiceError, AITextService,
)

GATEWAY_URL = "https://gateway.test/v1/chat/completions"

_PROMPT_OPERATIONS = {
    CLEAN_DIAGNOSIS_PROMPT: "clean",
    FORMAT_PROMPT: "format",
    HIGHLIGHT_PROMPT: "highlight",
    SUGGEST_CATEGORIES_PROMPT: "suggest_categories",
}
_TOOL_OPERATIONS = {
    QUIZ_QUESTIONS_TOOL["function"]["name"]: "generate_quiz",
    IMAGE_QUIZ_TOOL["function"]["name"]: "generate_quiz_from_images",
}


def blank_pdf() -> bytes:
    """A one-page PDF with no text on it."""
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def chat_reply(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def tool_reply(name: str, arguments: dict) -> dict:
    return {
        "choices": [{
            "message": {
                "role": "assistant",
                "tool_calls": [{"type": "function", "function": {"name": name, "arguments": json.dumps(arguments)}}],
            }
        }]
    }


def question_payload(text: str = "연차 신청 기한은?", correct: int = 0) -> dict:
    return {
        "question_text": text,
        "options": [
            {"text": f"보기 {i}", "is_correct": i == correct, "explanation": "규정 3조" if i == correct else None}
            for i in range(4)
        ],
        "explanation": "규정 3조에 따릅니다",
    }


def category_path(level1: str, level2: str, level3: str) -> dict:
    return {
        "displayPath": f"{level1} > {level2} > {level3}",
        "levels": {"level1": level1, "level2": level2, "level3": level3},
        "slugPath": [level1.lower(), level2.lower(), level3.lower()],
    }


class FakeGateway:
    """
    Chat-completions gateway keyed by operation. Unconfigured operations
    answer 500 so unexpected calls fail loudly.
    """

    def __init__(self):
        self.replies: Dict[str, List[tuple]] = {}
        self.calls: List[str] = []
        self.payloads: List[dict] = []

    def reply(self, operation: str, body: dict, status_code: int = 200) -> None:
        self.replies.setdefault(operation, []).append((status_code, body))

    def reply_text(self, operation: str, content: str) -> None:
        self.reply(operation, chat_reply(content))

    def fail(self, operation: str, status_code: int = 500) -> None:
        self.reply(operation, {"error": "boom"}, status_code=status_code)

    def reply_questions(self, questions: List[dict]) -> None:
        self.reply("generate_quiz", tool_reply(QUIZ_QUESTIONS_TOOL["function"]["name"], {"questions": questions}))

    @staticmethod
    def operation_of(payload: dict) -> str:
        if payload.get("tools"):
            return _TOOL_OPERATIONS[payload["tools"][0]["function"]["name"]]
        system = payload["messages"][0]["content"]
        return _PROMPT_OPERATIONS.get(system, "unknown")

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        operation = self.operation_of(payload)
        self.calls.append(operation)
        self.payloads.append(payload)
        queue = self.replies.get(operation)
        if not queue:
            return httpx.Response(500, json={"error": f"unexpected call: {operation}"})
        status_code, body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status_code, json=body)

    def service(self) -> AITextService:
        return AITextService(
            gateway_url=GATEWAY_URL,
            api_key="test-key",
            model="test-model",
            transport=httpx.MockTransport(self.handler),
        )


class StubAIService:
    """Just the two calls the wizard makes, with scripted results."""

    def __init__(self, questions: Optional[List[dict]] = None, suggestions: Optional[List[dict]] = None):
        self.questions = questions if questions is not None else [question_payload()]
        self.suggestions = suggestions
        self.generate_error: Optional[AIServiceError] = None
        self.suggest_error: Optional[AIServiceError] = None
        self.generate_calls: List[str] = []
        self.suggest_texts: List[str] = []

    async def generate_quiz_questions(self, text: str) -> List[GeneratedQuestion]:
        self.generate_calls.append(text)
        if self.generate_error is not None:
            raise self.generate_error
        return [GeneratedQuestion.model_validate(q) for q in self.questions]

    async def suggest_categories(self, document_title, document_text, quiz_title=None, company_name=None):
        self.suggest_texts.append(document_text)
        if self.suggest_error is not None:
            raise self.suggest_error
        return SuggestCategoriesResponse.model_validate({"suggested_category_paths": self.suggestions})


class MemoryQuizStore:
    """QuizStore keeping rows in lists; ``fail_on`` makes the nth insert of an entity fail once."""

    def __init__(self):
        self.rows: Dict[str, List[dict]] = {"category": [], "quiz": [], "question": [], "option": []}
        self.approved: List[int] = []
        self.fail_on: Optional[tuple] = None

    def _insert(self, entity: str, **values) -> int:
        if self.fail_on is not None:
            fail_entity, nth = self.fail_on
            if fail_entity == entity and len(self.rows[entity]) + 1 == nth:
                self.fail_on = None
                raise PersistenceError(f"Failed to save {entity}", entity=entity)
        row_id = sum(len(r) for r in self.rows.values()) + 1
        self.rows[entity].append(dict(values, id=row_id))
        return row_id

    def ensure_category_path(self, company_id, document_id, category):
        parent_id = None
        for name, slug in zip(category.names, category.slugs):
            existing = [r for r in self.rows["category"] if r["name"] == name and r["parent_id"] == parent_id]
            if existing:
                parent_id = existing[0]["id"]
            else:
                parent_id = self._insert("category", name=name, slug=slug, parent_id=parent_id)
        return parent_id

    def ensure_default_category(self, company_id, document_id, name, description):
        return self._insert("category", name=name, description=description, parent_id=None)

    def create_quiz(self, company_id, category_id, title, description, created_by, pass_score):
        return self._insert("quiz", category_id=category_id, title=title, description=description)

    def create_question(self, quiz_id, question_text, order_index):
        return self._insert("question", quiz_id=quiz_id, question_text=question_text, order_index=order_index)

    def create_option(self, question_id, option_text, is_correct, explanation, order_index):
        return self._insert(
            "option", question_id=question_id, option_text=option_text,
            is_correct=is_correct, explanation=explanation, order_index=order_index,
        )

    def approve_document(self, document_id):
        self.approved.append(document_id)

# app/services/ai_text_service.py
"""
Client for the OpenAI-compatible chat-completions gateway that backs the
text pipeline, quiz generation and category suggestion.

Every call is logged through the AI logger; gateway status codes 429 and 402
surface as their own exception types so callers can report them distinctly.
"""
import json
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.core.logging_config import get_ai_logger, log_ai_operation
from app.schemas.ai import (
    GeneratedImageCategory,
    GeneratedQuestion,
    SuggestCategoriesResponse,
)
from app.utils import text_utils

logger = get_ai_logger()


class AIServiceError(Exception):
    """Gateway call failed. ``status_code`` is what the API reports to its caller."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AIRateLimitError(AIServiceError):
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429)


class AIPaymentRequiredError(AIServiceError):
    def __init__(self, message: str = "Payment required. Please add credits to the AI workspace."):
        super().__init__(message, status_code=402)


class InvalidAIResponseError(AIServiceError):
    """The call succeeded but the content is missing or does not match the expected shape."""


class EmptyTextError(AIServiceError):
    def __init__(self, message: str = "text is required"):
        super().__init__(message, status_code=400)


CLEAN_DIAGNOSIS_PROMPT = """당신은 기업 온보딩 문서 분석 전문 AI입니다.
입력 문서는 "1-1. 제목" 형식의 번호가 붙은 섹션으로 이루어져 있습니다.
문서를 수정하거나 재구성하지 말고, 각 섹션의 제목과 본문이 잘 맞는지만 진단하세요.

각 섹션마다 다음 키를 가진 객체를 만들어 JSON 배열로만 출력하세요:
- id: 섹션 번호 (예: "1-1")
- title: 원래 제목
- summary: 본문 한 문장 요약
- title_body_match: "high" | "medium" | "low"
- reason: 판단 이유 한 줄
- suggested_fixed_title: "low"일 때만 대체 제목, 그 외에는 null

JSON 이외의 텍스트는 출력하지 마세요."""

FORMAT_PROMPT = """당신은 기업 온보딩 문서를 구조화하고 편집하는 전문 AI입니다.

입력된 OCR 원문을 다음 구조로 정리하세요:
- 문서 제목
- 번호가 붙은 다섯 개의 섹션 (기존 넘버링이 있으면 보존하고 누락을 보완)
- 요약

규칙:
- 깨진 문장을 복원하고 붙은 단어의 띄어쓰기를 고치되 원문 정보는 삭제하지 마세요.
- 용어 정의, 규정, 주의사항, 기한, 연락처, 시스템 이름을 <highlight>...</highlight>로 표시하세요.
- 하이라이트는 전체의 10~20% 범위로 유지하세요.
- 순수 텍스트만 반환하고 <highlight> 태그 외의 HTML/마크다운은 사용하지 마세요."""

HIGHLIGHT_PROMPT = """당신은 온보딩 문서에서 중요한 정보를 식별하는 전문가입니다.

핵심 개념, 중요한 규칙과 절차, 주의사항, 필수 요구사항, 기한, 책임과 의무를
<highlight> 태그로 감싸서 반환하세요.
예시: "회사의 <highlight>보안 정책</highlight>을 준수해야 합니다."

원본 텍스트의 구조와 내용은 그대로 유지하고 전체의 10-20% 정도만 하이라이트하세요."""

SUGGEST_CATEGORIES_PROMPT = """당신은 온보딩 자료 카테고리 추천 AI입니다.
업로드된 온보딩 문서 1개에 대해 3단계 카테고리 경로 후보를 정확히 3개 제안하세요.

- level1: 회사/조직 관점의 큰 영역 (예: 인사/복지, 보안/컴플라이언스, 시스템 사용법)
- level2: level1 안의 구체적인 주제
- level3: 문서가 실제로 다루는 세부 내용

아래 JSON 형식만 출력하세요:
{"suggested_category_paths": [
  {"displayPath": "대 > 중 > 소",
   "levels": {"level1": "...", "level2": "...", "level3": "..."},
   "slugPath": ["level1_slug", "level2_slug", "level3_slug"]}
]}

규칙:
- 항상 정확히 3개의 경로, 각 경로는 세 단계를 모두 가져야 합니다.
- slugPath는 영문 소문자, 숫자, 밑줄만 사용합니다.
- 카테고리 이름에 회사 이름을 넣지 마세요."""

GENERATE_QUIZ_PROMPT = """당신은 기업 온보딩 자료를 분석하여 퀴즈를 생성하는 전문가입니다.
주어진 텍스트를 바탕으로 10-20개의 객관식 문제를 생성하세요.
각 문제는 4개의 선택지를 가지며 정답은 1개만 있어야 합니다.
각 선택지에는 정답 또는 오답인 이유를 설명하는 해설을 포함하세요."""

GENERATE_FROM_IMAGES_PROMPT = """당신은 온보딩 문서 페이지 이미지를 분석하여 학습 카테고리와 퀴즈를 만드는 전문가입니다.
문서 내용을 주제별 카테고리로 나누고, 카테고리마다 여러 개의 퀴즈를 만드세요.
각 퀴즈는 문제 1개를 가지며, 문제는 4개의 선택지 중 정답 1개와 해설을 포함해야 합니다."""

_OPTION_SCHEMA = {
    "type": "object",
    "properties": {
        "text": {"type": "string"},
        "is_correct": {"type": "boolean"},
        "explanation": {"type": "string"},
    },
    "required": ["text", "is_correct", "explanation"],
}

_QUESTION_SCHEMA = {
    "type": "object",
    "properties": {
        "question_text": {"type": "string"},
        "options": {"type": "array", "items": _OPTION_SCHEMA, "minItems": 4, "maxItems": 4},
        "explanation": {"type": "string"},
    },
    "required": ["question_text", "options"],
}

QUIZ_QUESTIONS_TOOL = {
    "type": "function",
    "function": {
        "name": "create_quiz_questions",
        "description": "온보딩 자료에서 퀴즈 문제를 생성합니다",
        "parameters": {
            "type": "object",
            "properties": {"questions": {"type": "array", "items": _QUESTION_SCHEMA}},
            "required": ["questions"],
        },
    },
}

IMAGE_QUIZ_TOOL = {
    "type": "function",
    "function": {
        "name": "create_categories_with_quizzes",
        "description": "문서 이미지에서 카테고리와 퀴즈를 생성합니다",
        "parameters": {
            "type": "object",
            "properties": {
                "categories": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "description": {"type": "string"},
                            "quizzes": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "title": {"type": "string"},
                                        "description": {"type": "string"},
                                        "question": _QUESTION_SCHEMA,
                                    },
                                    "required": ["title", "question"],
                                },
                            },
                        },
                        "required": ["name", "quizzes"],
                    },
                }
            },
            "required": ["categories"],
        },
    },
}


class AITextService:
    def __init__(
        self,
        gateway_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.gateway_url = gateway_url or settings.AI_GATEWAY_URL
        self.api_key = api_key if api_key is not None else settings.AI_API_KEY
        self.model = model or settings.AI_MODEL
        self.timeout = timeout if timeout is not None else settings.AI_TIMEOUT_SECONDS
        # Injected in tests to stub the gateway
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self.transport)

    async def _chat(self, operation: str, messages: List[Dict[str, Any]], **options) -> Dict[str, Any]:
        """
        Sends one chat-completions request and returns the first choice's message.

        Raises:
            AIRateLimitError / AIPaymentRequiredError: gateway returned 429 / 402
            AIServiceError: any other non-2xx status or transport failure
            InvalidAIResponseError: the reply has no message
        """
        payload = {"model": self.model, "messages": messages}
        payload.update(options)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        start = time.time()
        try:
            async with self._client() as client:
                response = await client.post(self.gateway_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log_ai_operation(logger, operation, success=False,
                             response_time_ms=int((time.time() - start) * 1000),
                             error=str(e))
            raise AIServiceError(f"AI gateway unreachable: {e}") from e

        elapsed_ms = int((time.time() - start) * 1000)
        if response.status_code == 429:
            log_ai_operation(logger, operation, success=False, response_time_ms=elapsed_ms, status_code=429)
            raise AIRateLimitError()
        if response.status_code == 402:
            log_ai_operation(logger, operation, success=False, response_time_ms=elapsed_ms, status_code=402)
            raise AIPaymentRequiredError()
        if response.status_code >= 400:
            log_ai_operation(logger, operation, success=False, response_time_ms=elapsed_ms,
                             status_code=response.status_code, error=response.text[:500])
            raise AIServiceError(f"AI API error: {response.status_code}")

        try:
            message = response.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            log_ai_operation(logger, operation, success=False, response_time_ms=elapsed_ms,
                             status_code=response.status_code, error="malformed reply")
            raise InvalidAIResponseError("No message in AI response") from e

        log_ai_operation(logger, operation, success=True, response_time_ms=elapsed_ms,
                         status_code=response.status_code)
        return message

    async def _complete(self, operation: str, system_prompt: str, user_content: str, **options) -> str:
        message = await self._chat(
            operation,
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            **options,
        )
        content = message.get("content")
        if not content or not content.strip():
            raise InvalidAIResponseError("No content in AI response")
        return content

    async def _tool_call(self, operation: str, messages: List[Dict[str, Any]], tool: Dict[str, Any]) -> Dict[str, Any]:
        name = tool["function"]["name"]
        message = await self._chat(
            operation,
            messages,
            tools=[tool],
            tool_choice={"type": "function", "function": {"name": name}},
        )
        tool_calls = message.get("tool_calls") or []
        if not tool_calls:
            raise InvalidAIResponseError("No tool call in AI response")
        try:
            arguments = json.loads(tool_calls[0]["function"]["arguments"])
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidAIResponseError("Tool call arguments are not valid JSON") from e
        if not isinstance(arguments, dict):
            raise InvalidAIResponseError("Tool call arguments must be an object")
        return arguments

    # --- Text pipeline operations ---

    async def clean_ocr_text(self, text: str) -> str:
        """
        Strips OCR noise while keeping numbering and headings.

        Text without section numbers is auto-numbered locally and the gateway
        is not called. Numbered text is sent for a title/body diagnosis and
        low-match sections are appended as a review note.
        """
        if not text or not text.strip():
            raise EmptyTextError()

        preprocessed = text_utils.preprocess_for_analysis(text_utils.strip_ocr_noise(text))
        logger.info(
            "Cleaning OCR text",
            extra={"operation": "clean", "original_length": len(text), "preprocessed_length": len(preprocessed)},
        )

        if not text_utils.has_section_numbering(preprocessed):
            return text_utils.auto_number_plain_text(preprocessed)

        content = await self._complete("clean", CLEAN_DIAGNOSIS_PROMPT, preprocessed)
        try:
            sections = text_utils.extract_json(content)
        except ValueError:
            logger.warning("Section diagnosis was not valid JSON; returning text without note",
                           extra={"operation": "clean"})
            return preprocessed

        if not isinstance(sections, list):
            return preprocessed
        return preprocessed + text_utils.build_mismatch_note(sections)

    async def format_ocr_text(self, text: str) -> str:
        if not text or not text.strip():
            raise EmptyTextError()
        return await self._complete("format", FORMAT_PROMPT, f"OCR 원문:\n\n{text}")

    async def highlight_text(self, text: str) -> str:
        if not text or not text.strip():
            raise EmptyTextError()
        return await self._complete("highlight", HIGHLIGHT_PROMPT, text)

    # --- Structured operations ---

    async def suggest_categories(
        self,
        document_title: str,
        document_text: str,
        quiz_title: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> SuggestCategoriesResponse:
        """
        Asks for exactly three level1/level2/level3 category paths.

        Raises:
            InvalidAIResponseError: unparsable JSON, a count other than three,
                or any path with a missing level or slug
        """
        if not document_title or not document_text or not document_text.strip():
            raise EmptyTextError("Document title and text are required")

        excerpt = text_utils.truncate(document_text, settings.CATEGORY_SUGGESTION_CHAR_LIMIT)
        user_prompt = (
            f"회사명: {company_name or '알 수 없음'}\n"
            f"온보딩 자료 제목: {document_title}\n"
            f"퀴즈 제목: {quiz_title or '없음'}\n\n"
            f"문서 내용:\n{excerpt}\n"
        )
        content = await self._complete(
            "suggest_categories", SUGGEST_CATEGORIES_PROMPT, user_prompt, temperature=0.7
        )

        try:
            data = text_utils.extract_json(content)
        except ValueError as e:
            raise InvalidAIResponseError("Failed to parse category suggestions from AI") from e
        try:
            return SuggestCategoriesResponse.model_validate(data)
        except ValidationError as e:
            logger.warning("Rejected category suggestions",
                           extra={"operation": "suggest_categories", "error": str(e)})
            raise InvalidAIResponseError("Invalid category suggestions format") from e

    async def generate_quiz_questions(self, text: str) -> List[GeneratedQuestion]:
        """
        Generates multiple-choice questions from reviewed document text.

        Every question must have four options with exactly one correct; a single
        malformed question rejects the whole reply.
        """
        if not text or not text.strip():
            raise EmptyTextError()

        logger.info("Generating quiz", extra={"operation": "generate_quiz", "text_length": len(text)})
        arguments = await self._tool_call(
            "generate_quiz",
            [
                {"role": "system", "content": GENERATE_QUIZ_PROMPT},
                {"role": "user", "content": f"다음 온보딩 자료의 내용을 바탕으로 퀴즈를 생성해주세요:\n\n{text}"},
            ],
            QUIZ_QUESTIONS_TOOL,
        )
        raw_questions = arguments.get("questions")
        if not isinstance(raw_questions, list) or not raw_questions:
            raise InvalidAIResponseError("AI response contains no questions")
        try:
            return [GeneratedQuestion.model_validate(q) for q in raw_questions]
        except ValidationError as e:
            raise InvalidAIResponseError(f"Invalid question in AI response: {e.errors()[0]['msg']}") from e

    async def generate_quiz_from_images(self, images: List[str]) -> List[GeneratedImageCategory]:
        """Categories, each with one-question quizzes, generated from page images."""
        if not images:
            raise EmptyTextError("images are required")

        content: List[Dict[str, Any]] = [
            {"type": "text", "text": "다음 문서 페이지들을 분석하여 카테고리와 퀴즈를 생성해주세요."}
        ]
        content.extend({"type": "image_url", "image_url": {"url": url}} for url in images)

        arguments = await self._tool_call(
            "generate_quiz_from_images",
            [
                {"role": "system", "content": GENERATE_FROM_IMAGES_PROMPT},
                {"role": "user", "content": content},
            ],
            IMAGE_QUIZ_TOOL,
        )
        raw_categories = arguments.get("categories")
        if not isinstance(raw_categories, list) or not raw_categories:
            raise InvalidAIResponseError("AI response contains no categories")
        try:
            return [GeneratedImageCategory.model_validate(c) for c in raw_categories]
        except ValidationError as e:
            raise InvalidAIResponseError(f"Invalid category in AI response: {e.errors()[0]['msg']}") from e


def get_ai_service() -> AITextService:
    """FastAPI dependency; overridden in tests with a stubbed transport."""
    return AITextService()

# app/utils/text_utils.py
"""
Local text helpers for OCR output: whitespace cleanup, section numbering,
slugs and JSON extraction from LLM replies.
"""
import json
import re
from typing import Any, Dict, Iterable, List, Optional

URL_RE = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
# Any tag except the highlight markers
MARKUP_RE = re.compile(r"</?(?!highlight>)[a-zA-Z][^>]*>")
SECTION_NUMBER_RE = re.compile(r"^\d+(-\d+)?\.", re.MULTILINE)
SLUG_RE = re.compile(r"[^a-z0-9]+")
CODE_FENCE_RE = re.compile(r"```(?:json)?\s*\n([\s\S]*?)\n\s*```")

# "첫 번째 본문:" ... "열 번째 본문:" labels some OCR exports put in front of paragraphs
BODY_LABEL_RE = re.compile(
    r"(?:첫|두|세|네|다섯|여섯|일곱|여덟|아홉|열)\s*번째\s*본문:"
)
_SPLIT_TOKEN = "@@SPLIT@@"


def strip_ocr_noise(raw: str) -> str:
    """Removes URLs and stray markup; highlight markers survive."""
    text = URL_RE.sub("", raw)
    return MARKUP_RE.sub("", text)


def preprocess_for_analysis(raw: str) -> str:
    """
    Light cleanup that keeps numbering and headings: trailing spaces are
    dropped and runs of blank lines collapse to one.
    """
    compressed: List[str] = []
    last_was_empty = False
    for line in raw.split("\n"):
        line = line.rstrip()
        if not line.strip():
            if not last_was_empty:
                compressed.append("")
            last_was_empty = True
        else:
            compressed.append(line)
            last_was_empty = False
    return "\n".join(compressed).strip()


def has_section_numbering(text: str) -> bool:
    return bool(SECTION_NUMBER_RE.search(text))


def auto_number_plain_text(raw: str) -> str:
    """
    Numbers the paragraphs of unstructured text as 1-1., 1-2., ...

    Body labels ("첫 번째 본문:") split sections when present; otherwise
    paragraphs are separated by blank lines.
    """
    text = raw.strip()
    if not text:
        return ""

    parts = [
        p.strip()
        for p in BODY_LABEL_RE.sub(f"\n\n{_SPLIT_TOKEN} ", text).split(_SPLIT_TOKEN)
        if p.strip()
    ]
    if len(parts) > 1:
        chunks = parts
    else:
        chunks = [c.strip() for c in re.split(r"\n{2,}", text) if c.strip()]

    lines: List[str] = []
    index = 0
    for chunk in chunks:
        cleaned = BODY_LABEL_RE.sub("", chunk).strip()
        if not cleaned:
            continue
        index += 1
        lines.append(f"1-{index}. {cleaned}")
        lines.append("")
    return "\n".join(lines).strip()


def build_mismatch_note(sections: Iterable[Dict[str, Any]]) -> str:
    """
    Review note listing sections whose title does not match their body
    (title_body_match == "low"). Empty string when there are none.
    """
    mismatches = [s for s in sections if isinstance(s, dict) and s.get("title_body_match") == "low"]
    if not mismatches:
        return ""

    lines = [
        "",
        "",
        "기타) 제목과 본문이 일치하지 않을 수 있는 섹션:",
        "(아래 섹션들은 제목과 본문 내용이 서로 안 맞을 수 있으니, 검토 후 제목을 수정하거나 재배치해주세요.)",
        "",
    ]
    for section in mismatches:
        line = f'- 섹션 {section.get("id") or "(id 없음)"} "{section.get("title") or "(제목 없음)"}"'
        suggested = section.get("suggested_fixed_title")
        if isinstance(suggested, str) and suggested:
            line += f' → 제안 제목: "{suggested}"'
        if section.get("reason"):
            line += f' (사유: {section["reason"]})'
        if section.get("summary"):
            line += f' / 본문 요약: {section["summary"]}'
        lines.append(line)
    return "\n".join(lines)


def slugify(value: str) -> str:
    """Lower-cases and replaces every run of characters outside [a-z0-9] with '_'."""
    return SLUG_RE.sub("_", value.lower())


def extract_json(content: str) -> Any:
    """
    Parses JSON from an LLM reply, tolerating a surrounding ```json fence.

    Raises:
        ValueError: if no valid JSON can be parsed
    """
    match = CODE_FENCE_RE.search(content)
    candidate = match.group(1) if match else content
    return json.loads(candidate.strip())


def truncate(text: str, limit: Optional[int]) -> str:
    if limit is None or len(text) <= limit:
        return text
    return text[:limit]

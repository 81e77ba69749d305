# app/utils/highlight_utils.py
import re
from dataclasses import dataclass
from typing import List

HIGHLIGHT_OPEN = "<highlight>"
HIGHLIGHT_CLOSE = "</highlight>"

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_MARKER_RE = re.compile(f"({re.escape(HIGHLIGHT_OPEN)}|{re.escape(HIGHLIGHT_CLOSE)})")


@dataclass(frozen=True)
class Segment:
    text: str
    emphasized: bool = False


def has_highlight_markers(text: str) -> bool:
    return HIGHLIGHT_OPEN in text


def render_paragraph(paragraph: str) -> List[Segment]:
    """
    Splits one paragraph on the highlight markers. Markers are dropped;
    an opening marker without a close emphasizes the rest of the paragraph.
    """
    segments: List[Segment] = []
    emphasized = False
    for part in _MARKER_RE.split(paragraph):
        if part == HIGHLIGHT_OPEN:
            emphasized = True
        elif part == HIGHLIGHT_CLOSE:
            emphasized = False
        elif part:
            segments.append(Segment(part, emphasized))
    return segments


def render_highlighted(text: str) -> List[List[Segment]]:
    """Paragraphs (split on blank lines) of emphasized/plain segments."""
    paragraphs = []
    for paragraph in _PARAGRAPH_RE.split(text):
        if not paragraph.strip():
            continue
        segments = render_paragraph(paragraph)
        if segments:
            paragraphs.append(segments)
    return paragraphs


def to_plain_text(paragraphs: List[List[Segment]]) -> str:
    return "\n\n".join("".join(s.text for s in segments) for segments in paragraphs)

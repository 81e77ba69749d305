# app/services/text_pipeline.py
"""
Best-effort clean -> format (-> highlight) chain over extracted document text.

Each step either transforms the text or hands the previous value on. Only
extraction can fail hard; by the time text reaches this module the caller
always gets something displayable back.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from app.services.ai_text_service import AIServiceError, AITextService

logger = logging.getLogger(__name__)

TextOperation = Callable[[str], Awaitable[str]]


class PipelineQuality(str, enum.Enum):
    """How far the text got; ordered from best to worst."""
    formatted = "formatted"
    highlighted = "highlighted"
    cleaned = "cleaned"
    raw = "raw"


@dataclass(frozen=True)
class PipelineStep:
    name: str
    operation: TextOperation
    quality: PipelineQuality
    # Tried on the same input when this step fails
    fallback: Optional["PipelineStep"] = None


@dataclass
class PipelineResult:
    text: str
    quality: PipelineQuality = PipelineQuality.raw
    completed_steps: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


def build_default_steps(service: AITextService) -> List[PipelineStep]:
    highlight = PipelineStep("highlight", service.highlight_text, PipelineQuality.highlighted)
    return [
        PipelineStep("clean", service.clean_ocr_text, PipelineQuality.cleaned),
        PipelineStep("format", service.format_ocr_text, PipelineQuality.formatted, fallback=highlight),
    ]


async def _attempt(step: PipelineStep, text: str, result: PipelineResult) -> Optional[str]:
    """Runs a step and its fallbacks; returns None when every one of them failed."""
    current: Optional[PipelineStep] = step
    while current is not None:
        try:
            output = await current.operation(text)
        except (AIServiceError, httpx.HTTPError) as e:
            result.failures[current.name] = str(e)
            logger.warning(f"Pipeline step '{current.name}' failed: {e}",
                           extra={"operation": current.name})
        else:
            if output and output.strip():
                result.completed_steps.append(current.name)
                if current.quality != PipelineQuality.cleaned or result.quality == PipelineQuality.raw:
                    result.quality = current.quality
                return output
            result.failures[current.name] = "empty output"
            logger.warning(f"Pipeline step '{current.name}' returned no text",
                           extra={"operation": current.name})
        current = current.fallback
    return None


async def run_pipeline(raw_text: str, steps: Sequence[PipelineStep]) -> PipelineResult:
    """
    Feeds the text through ``steps`` in order.

    A failed step (after its fallbacks) leaves the text as it was, so the
    result is never empty for non-empty input.
    """
    result = PipelineResult(text=raw_text)
    if not raw_text or not raw_text.strip():
        return result

    text = raw_text
    for step in steps:
        output = await _attempt(step, text, result)
        if output is not None:
            text = output

    result.text = text
    logger.info(
        f"Text pipeline finished with quality '{result.quality.value}'",
        extra={"operation": "pipeline", "success": not result.failures},
    )
    return result


async def process_text(raw_text: str, service: AITextService) -> PipelineResult:
    return await run_pipeline(raw_text, build_default_steps(service))

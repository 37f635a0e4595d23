"""Pre-reply analysis of an incoming message."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..memory.extractor import strip_code_fence
from ..memory.models import Memory, render_value

if TYPE_CHECKING:
    from .completion import CompletionClient

logger = logging.getLogger(__name__)

DEPTH_GUIDANCE = {
    "basic": "Give a one or two sentence assessment.",
    "advanced": "Reason step by step about intent, relevant context and gaps.",
    "expert": (
        "Reason step by step about intent, relevant context, gaps, risks "
        "and alternative interpretations."
    ),
}

ANALYSIS_PROMPT = """Analyze the user's message before answering it.
{guidance}

Relevant memories:
{context}

User message:
{message}

Return ONLY valid JSON:
{{"thoughts": "<your reasoning>", "confidence": <number between 0 and 1>}}"""


@dataclass
class Analysis:
    thoughts: str
    confidence: float


FALLBACK_ANALYSIS = Analysis(thoughts="Unable to analyze message", confidence=0.5)


class MessageAnalyzer:
    """Asks the LLM to reason about a message and rate its confidence."""

    def __init__(self, llm: CompletionClient) -> None:
        self.llm = llm

    async def analyze(
        self,
        message: str,
        context: list[Memory],
        depth: str = "advanced",
    ) -> Analysis:
        """Analyze a message; any failure yields a neutral fallback."""
        context_lines = "\n".join(
            f"- [{m.type.value}, importance {m.importance}] {m.key}: {render_value(m.value)}"
            for m in context
        ) or "(none)"
        prompt = ANALYSIS_PROMPT.format(
            guidance=DEPTH_GUIDANCE.get(depth, DEPTH_GUIDANCE["advanced"]),
            context=context_lines,
            message=message,
        )

        try:
            content = await self.llm.complete(
                [{"role": "user", "content": prompt}], temperature=0.2
            )
            data = json.loads(strip_code_fence(content))
            thoughts = str(data["thoughts"])
            confidence = float(data["confidence"])
        except Exception as e:
            logger.warning(f"Message analysis failed: {e}")
            return FALLBACK_ANALYSIS

        return Analysis(thoughts=thoughts, confidence=max(0.0, min(1.0, confidence)))

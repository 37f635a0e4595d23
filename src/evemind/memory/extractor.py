"""Insight extraction from conversations using an LLM."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ..errors import ExtractionError
from .models import INSIGHT_TYPES, Insight, InsightSource, MemoryType

if TYPE_CHECKING:
    from ..chat.completion import CompletionClient

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """Analyze the text below and extract factual, preference and relationship insights worth remembering in future conversations.

Return ONLY valid JSON:
{
  "insights": [
    {
      "type": "fact" | "preference" | "relationship",
      "key": "<short snake_case label>",
      "value": <string, number, boolean or object>,
      "confidence": <number between 0 and 1>,
      "source": "conversation" | "observation" | "inference"
    },
    ...
  ]
}

Rules:
- Only STABLE information (not passing states like "is tired")
- Keys are short and descriptive: favorite_color, timezone, manager, preferred_language, ...
- Use an object value when the insight has several related parts
- confidence reflects how explicitly the text states the insight
- source is "conversation" when stated outright, "inference" when deduced
- If there is nothing new, return {"insights": []}
- Do not turn questions or hypotheses into insights

Text to analyze:
"""


class InsightExtractor:
    """Extracts candidate insights from text using an LLM."""

    def __init__(self, llm: CompletionClient, temperature: float = 0.1) -> None:
        """Initialize the extractor.

        Args:
            llm: The completion client used for extraction calls.
            temperature: Sampling temperature, kept low for consistent output.
        """
        self.llm = llm
        self.temperature = temperature

    async def extract_insights(self, text: str) -> list[Insight]:
        """Extract insights from a piece of conversation.

        A failed extraction never blocks a conversation turn: any error is
        logged and an empty list is returned.

        Args:
            text: Conversation text to analyze.

        Returns:
            List of candidate insights, empty if none found or on error.
        """
        if not text or not text.strip():
            return []

        try:
            content = await self._request(text)
            return self.parse_insights(content)
        except ExtractionError as e:
            logger.warning(f"Insight extraction failed: {e}")
            return []

    async def _request(self, text: str) -> str:
        try:
            return await self.llm.complete(
                [{"role": "user", "content": EXTRACTION_PROMPT + text}],
                temperature=self.temperature,
            )
        except Exception as e:
            raise ExtractionError(f"extraction call failed: {e}") from e

    def parse_insights(self, content: str) -> list[Insight]:
        """Parse an LLM response into insights.

        Args:
            content: The raw LLM response.

        Returns:
            The valid insights; malformed items are skipped.

        Raises:
            ExtractionError: If the payload is not JSON or lacks an
                ``insights`` list.
        """
        json_str = strip_code_fence(content)

        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"unparseable extraction response: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("insights"), list):
            raise ExtractionError("invalid response structure: missing 'insights' list")

        insights = []
        for item in data["insights"]:
            insight = _parse_item(item)
            if insight is None:
                logger.warning(f"Skipping invalid insight item: {item}")
                continue
            insights.append(insight)
        return insights


def strip_code_fence(content: str) -> str:
    """Remove a surrounding markdown code block, if any."""
    text = content.strip()
    if not text.startswith("```"):
        return text
    lines = [line for line in text.split("\n") if not line.startswith("```")]
    return "\n".join(lines)


def _parse_item(item: Any) -> Insight | None:
    if not isinstance(item, dict):
        return None
    if not {"type", "key", "value", "confidence"} <= item.keys():
        return None

    try:
        memory_type = MemoryType(item["type"])
        source = InsightSource(item.get("source", InsightSource.CONVERSATION.value))
    except ValueError:
        return None
    if memory_type not in INSIGHT_TYPES:
        return None

    confidence = item["confidence"]
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return None
    if not 0.0 <= confidence <= 1.0:
        return None

    key = str(item["key"]).strip()
    if not key:
        return None

    return Insight(
        type=memory_type,
        key=key,
        value=item["value"],
        confidence=float(confidence),
        source=source,
    )

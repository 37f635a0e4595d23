"""Tests for InsightExtractor."""

import json
from unittest.mock import AsyncMock

import pytest

from evemind.errors import ConnectivityError, ExtractionError
from evemind.memory import InsightExtractor, InsightSource, MemoryType, Scalar, Structured
from evemind.memory.extractor import EXTRACTION_PROMPT, strip_code_fence


@pytest.fixture
def mock_llm() -> AsyncMock:
    """Create a mock completion client."""
    return AsyncMock()


@pytest.fixture
def extractor(mock_llm: AsyncMock) -> InsightExtractor:
    """Create an InsightExtractor with the mock client."""
    return InsightExtractor(mock_llm)


def payload(*insights: dict) -> str:
    return json.dumps({"insights": list(insights)})


class TestInsightExtractorExtract:
    """Tests for extract_insights."""

    @pytest.mark.asyncio
    async def test_empty_text_returns_empty(self, extractor: InsightExtractor, mock_llm: AsyncMock):
        """Blank text never reaches the LLM."""
        assert await extractor.extract_insights("   ") == []
        mock_llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_extraction(self, extractor: InsightExtractor, mock_llm: AsyncMock):
        mock_llm.complete.return_value = payload(
            {"type": "preference", "key": "favorite_color", "value": "blue",
             "confidence": 0.9, "source": "conversation"},
            {"type": "relationship", "key": "manager", "value": {"name": "Alice"},
             "confidence": 0.6, "source": "inference"},
        )

        insights = await extractor.extract_insights("My favorite color is blue")

        assert len(insights) == 2
        assert insights[0].type is MemoryType.PREFERENCE
        assert insights[0].key == "favorite_color"
        assert insights[0].value == Scalar("blue")
        assert insights[0].confidence == 0.9
        assert isinstance(insights[1].value, Structured)
        assert insights[1].source is InsightSource.INFERENCE

    @pytest.mark.asyncio
    async def test_sends_prompt_at_low_temperature(
        self, extractor: InsightExtractor, mock_llm: AsyncMock
    ):
        mock_llm.complete.return_value = payload()
        await extractor.extract_insights("I live in Lisbon")

        args, kwargs = mock_llm.complete.call_args
        messages = args[0]
        assert messages == [{"role": "user", "content": EXTRACTION_PROMPT + "I live in Lisbon"}]
        assert kwargs["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_empty_insights_list(self, extractor: InsightExtractor, mock_llm: AsyncMock):
        mock_llm.complete.return_value = payload()
        assert await extractor.extract_insights("hello") == []

    @pytest.mark.asyncio
    async def test_code_fence_stripped(self, extractor: InsightExtractor, mock_llm: AsyncMock):
        mock_llm.complete.return_value = (
            "```json\n"
            + payload({"type": "fact", "key": "timezone", "value": "PST", "confidence": 0.8})
            + "\n```"
        )
        insights = await extractor.extract_insights("I am on Pacific time")
        assert [i.key for i in insights] == ["timezone"]
        assert insights[0].source is InsightSource.CONVERSATION

    @pytest.mark.asyncio
    async def test_invalid_json_returns_empty(
        self, extractor: InsightExtractor, mock_llm: AsyncMock
    ):
        mock_llm.complete.return_value = "not json at all"
        assert await extractor.extract_insights("hello") == []

    @pytest.mark.asyncio
    async def test_missing_insights_list_returns_empty(
        self, extractor: InsightExtractor, mock_llm: AsyncMock
    ):
        mock_llm.complete.return_value = '{"facts": []}'
        assert await extractor.extract_insights("hello") == []

    @pytest.mark.asyncio
    async def test_llm_failure_returns_empty(
        self, extractor: InsightExtractor, mock_llm: AsyncMock
    ):
        """Extraction failures never propagate."""
        mock_llm.complete.side_effect = ConnectivityError("offline")
        assert await extractor.extract_insights("hello") == []


class TestInsightExtractorParse:
    """Tests for parse_insights."""

    def test_raises_on_bad_json(self, extractor: InsightExtractor):
        with pytest.raises(ExtractionError):
            extractor.parse_insights("{broken")

    def test_raises_on_wrong_structure(self, extractor: InsightExtractor):
        with pytest.raises(ExtractionError, match="insights"):
            extractor.parse_insights('{"insights": "nope"}')

    @pytest.mark.parametrize(
        "item",
        [
            {"type": "conversation", "key": "k", "value": "v", "confidence": 0.5},
            {"type": "opinion", "key": "k", "value": "v", "confidence": 0.5},
            {"type": "fact", "key": "k", "value": "v", "confidence": 1.5},
            {"type": "fact", "key": "k", "value": "v", "confidence": "high"},
            {"type": "fact", "key": "k", "value": "v", "confidence": True},
            {"type": "fact", "key": "  ", "value": "v", "confidence": 0.5},
            {"type": "fact", "key": "k", "value": "v", "confidence": 0.5, "source": "rumor"},
            {"type": "fact", "key": "k", "confidence": 0.5},
            "just a string",
        ],
    )
    def test_skips_invalid_items(self, extractor: InsightExtractor, item):
        valid = {"type": "fact", "key": "timezone", "value": "PST", "confidence": 0.9}
        insights = extractor.parse_insights(payload(item, valid))
        assert [i.key for i in insights] == ["timezone"]


class TestStripCodeFence:
    """Tests for strip_code_fence."""

    def test_plain_text_unchanged(self):
        assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'

    def test_removes_fence_lines(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

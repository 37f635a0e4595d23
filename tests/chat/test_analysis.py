"""Tests for MessageAnalyzer."""

from unittest.mock import AsyncMock

import pytest

from evemind.chat import MessageAnalyzer
from evemind.chat.analysis import FALLBACK_ANALYSIS
from evemind.memory import Memory, MemoryType


@pytest.fixture
def mock_llm() -> AsyncMock:
    return AsyncMock()


@pytest.mark.asyncio
async def test_parses_analysis(mock_llm: AsyncMock):
    mock_llm.complete.return_value = '{"thoughts": "Wants a summary", "confidence": 0.8}'
    analysis = await MessageAnalyzer(mock_llm).analyze("Summarize this", [])
    assert analysis.thoughts == "Wants a summary"
    assert analysis.confidence == 0.8


@pytest.mark.asyncio
async def test_prompt_includes_context(mock_llm: AsyncMock):
    mock_llm.complete.return_value = '{"thoughts": "ok", "confidence": 0.5}'
    context = [Memory("eve-1", "acme", MemoryType.FACT, "timezone", "PST", importance=3)]
    await MessageAnalyzer(mock_llm).analyze("When is the call?", context, depth="basic")

    prompt = mock_llm.complete.call_args.args[0][0]["content"]
    assert 'timezone: "PST"' in prompt
    assert "When is the call?" in prompt


@pytest.mark.asyncio
async def test_confidence_is_clamped(mock_llm: AsyncMock):
    mock_llm.complete.return_value = '```json\n{"thoughts": "sure", "confidence": 7}\n```'
    analysis = await MessageAnalyzer(mock_llm).analyze("hi", [])
    assert analysis.confidence == 1.0


@pytest.mark.asyncio
async def test_failure_returns_fallback(mock_llm: AsyncMock):
    mock_llm.complete.return_value = "I think the user is happy"
    assert await MessageAnalyzer(mock_llm).analyze("hi", []) == FALLBACK_ANALYSIS

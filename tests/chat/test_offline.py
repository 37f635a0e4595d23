"""Tests for the offline responder."""

import pytest

from evemind.chat import OfflineCompletionClient, generate_mock_response
from evemind.config import EVEProfile
from evemind.errors import ConnectivityError


def test_mock_response_mentions_persona_and_prompt():
    profile = EVEProfile(name="Ada", company_name="Acme Corp", capabilities=["scheduling"])
    reply = generate_mock_response("Book a room", profile)

    assert "I'm Ada, a virtual employee at Acme Corp" in reply
    assert "scheduling" in reply
    assert 'You asked: "Book a room"' in reply
    assert "offline mode" in reply


def test_mock_response_default_profile():
    assert "I'm EVE" in generate_mock_response("hi")


@pytest.mark.asyncio
async def test_offline_client_complete_raises():
    with pytest.raises(ConnectivityError, match="GROQ_API_KEY"):
        await OfflineCompletionClient().complete([])


@pytest.mark.asyncio
async def test_offline_client_stream_raises():
    with pytest.raises(ConnectivityError):
        async for _ in OfflineCompletionClient("no network").stream([]):
            pass

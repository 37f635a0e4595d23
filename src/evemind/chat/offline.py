"""Canned replies used when the completion API or the store is unreachable."""

from collections.abc import AsyncIterator
from typing import Any

from ..config import EVEProfile
from ..errors import ConnectivityError


def generate_mock_response(prompt: str, profile: EVEProfile | None = None) -> str:
    """Build a simulated reply for offline and development mode.

    Args:
        prompt: The user's message.
        profile: Persona to answer as.

    Returns:
        A reply explaining the EVE is offline.
    """
    profile = profile or EVEProfile()
    capabilities = ", ".join(profile.capabilities) or "general assistance"

    return f"""Hello! I'm {profile.name}, a virtual employee at {profile.company_name}.

I'm designed to assist with {capabilities}.

You asked: "{prompt}"

I'm currently running in offline mode, so this is a simulated response. Once my connection is restored I'll be able to give you a proper answer.

If you keep seeing this message, either:
1. No API key is configured for the language model
2. The language model service or my memory database is unreachable
3. The deployment configuration needs to be checked

Is there anything else you'd like to know about my capabilities?"""


class OfflineCompletionClient:
    """Completion client used when no API key is configured.

    Every call raises ConnectivityError, so the orchestrator answers with
    the offline responder and extraction yields nothing.
    """

    def __init__(self, reason: str = "No GROQ_API_KEY configured") -> None:
        self.reason = reason

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        raise ConnectivityError(self.reason)

    async def stream(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        raise ConnectivityError(self.reason)
        yield ""

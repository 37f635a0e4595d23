"""Completion clients for chat, extraction and analysis.

This module defines the CompletionClient Protocol consumed by the rest of
the package, plus the Groq-backed implementation.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

import groq
import httpx
from groq import AsyncGroq

from ..config import DEFAULT_MODEL
from ..errors import CompletionError, ConnectivityError, StreamingError

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Protocol for chat completion access.

    Lets the orchestrator, extractor and analyzer call an LLM without
    depending on a specific provider.
    """

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Return the full completion text for a message list."""
        ...

    def stream(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        """Yield completion text chunk by chunk."""
        ...


class GroqCompletionClient:
    """CompletionClient implementation that wraps AsyncGroq.

    Example:
        from groq import AsyncGroq
        from evemind.chat.completion import GroqCompletionClient

        llm = GroqCompletionClient(AsyncGroq(api_key="..."))
        text = await llm.complete([{"role": "user", "content": "Hi"}])
    """

    def __init__(
        self,
        client: AsyncGroq,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> None:
        """Initialize the Groq client wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
            temperature: Default sampling temperature.
            max_tokens: Default completion length cap.
        """
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    def _params(
        self,
        messages: list[dict[str, Any]],
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature if temperature is None else temperature,
            "max_tokens": self._max_tokens if max_tokens is None else max_tokens,
        }

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Complete a conversation and return the text response.

        Raises:
            ConnectivityError: The API could not be reached.
            CompletionError: The API answered with an error.
        """
        try:
            response = await self._client.chat.completions.create(
                **self._params(messages, temperature, max_tokens)
            )
        except groq.APIConnectionError as e:
            raise ConnectivityError(f"Completion API unreachable: {e}") from e
        except groq.APIStatusError as e:
            raise CompletionError(str(e), status_code=e.status_code) from e
        except groq.APIError as e:
            raise CompletionError(str(e)) from e

        return response.choices[0].message.content or ""

    async def stream(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        """Stream a completion, yielding each non-empty content delta.

        The stream ends at the first chunk that carries a finish reason.

        Raises:
            StreamingError: The stream could not be opened or broke midway.
        """
        try:
            stream = await self._client.chat.completions.create(
                **self._params(messages, temperature, max_tokens), stream=True
            )
            try:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    choice = chunk.choices[0]
                    content = choice.delta.content if choice.delta else None
                    if content:
                        yield content
                    if choice.finish_reason is not None:
                        break
            finally:
                await stream.close()
        except (groq.APIError, httpx.HTTPError) as e:
            raise StreamingError(f"Completion stream failed: {e}") from e

    async def verify_connection(self) -> bool:
        """Check that the API key works and the API is reachable."""
        try:
            await self._client.models.list()
        except groq.APIError as e:
            logger.warning("Completion API check failed: %s", e)
            return False
        return True

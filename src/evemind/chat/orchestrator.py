"""Conversation orchestrator: context retrieval, generation and learning.

Each turn moves through the stages

    IDLE -> CONTEXT_RETRIEVAL -> GENERATING -> PERSISTING -> LEARNING -> IDLE

Persisting and learning run after the reply is available. By default they
run as a background task, so callers can render the reply first.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..config import EVEConfig
from ..conversation_logger import ConversationLogger, get_conversation_logger
from ..errors import (
    CompletionError,
    ConnectivityError,
    EVEError,
    StoreError,
    StreamingError,
)
from ..memory.manager import MemoryManager
from ..memory.models import Memory, MemoryType, utcnow
from .analysis import MessageAnalyzer
from .offline import generate_mock_response
from .prompt import Message, build_messages, build_system_prompt

if TYPE_CHECKING:
    from ..memory.learning import InsightLearner
    from .completion import CompletionClient

logger = logging.getLogger(__name__)


class TurnStage(Enum):
    """Stages of a single conversation turn."""

    IDLE = "idle"
    CONTEXT_RETRIEVAL = "context_retrieval"
    GENERATING = "generating"
    PERSISTING = "persisting"
    LEARNING = "learning"


class ConversationOrchestrator:
    """Runs conversation turns for one EVE.

    All collaborators are injected: the memory manager, the completion
    client and, optionally, the insight learner and message analyzer.
    The public attributes mirror what a UI needs for live feedback.
    """

    def __init__(
        self,
        memory: MemoryManager,
        llm: CompletionClient,
        learner: InsightLearner | None = None,
        config: EVEConfig | None = None,
        analyzer: MessageAnalyzer | None = None,
        conversation_logger: ConversationLogger | None = None,
        on_partial: Callable[[str], None] | None = None,
        on_stage: Callable[[TurnStage], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.memory = memory
        self.llm = llm
        self.learner = learner
        self.config = config or EVEConfig()
        self.analyzer = analyzer or (
            MessageAnalyzer(llm) if self.config.reasoning_depth else None
        )
        self.conv_logger = conversation_logger or get_conversation_logger()
        self.on_partial = on_partial
        self.on_stage = on_stage
        self._clock = clock or utcnow

        self.session_id = self._new_session_id()
        self.history: list[Message] = []
        self.response: str | None = None
        self.partial_response = ""
        self.is_streaming = False
        self.is_loading = False
        self.error: str | None = None
        self.offline = False
        self.stage = TurnStage.IDLE
        self.relevant_context: list[Memory] = []
        self.thought_process: str | None = None
        self.confidence_score = 0.0
        self._pending: set[asyncio.Task[None]] = set()

    def _new_session_id(self) -> str:
        agent = re.sub(r"[^A-Za-z0-9_-]", "_", self.memory.agent_id)
        return f"{agent}-{uuid.uuid4().hex[:8]}"

    @property
    def is_learning(self) -> bool:
        """True while post-turn persisting or learning is still running."""
        if self._pending:
            return True
        return self.learner is not None and self.learner.is_learning

    def _enter(self, stage: TurnStage) -> None:
        self.stage = stage
        self.conv_logger.log_stage(self.session_id, stage.value)
        if self.on_stage is not None:
            self.on_stage(stage)

    async def send_message(self, text: str) -> str:
        """Run one conversation turn and return the assistant's reply.

        Connectivity problems never surface here: the offline responder
        answers instead. Other completion errors are re-raised unless
        ``config.dev_mode`` is set.

        Args:
            text: The user's message.

        Returns:
            The assistant's final text.

        Raises:
            CompletionError: The completion API rejected the request and
                dev mode is off.
        """
        self.is_loading = True
        self.error = None
        self.partial_response = ""
        self.conv_logger.log_user_message(self.session_id, text)

        try:
            self._enter(TurnStage.CONTEXT_RETRIEVAL)
            try:
                context = self.memory.relevant_context(text)
            except ConnectivityError as e:
                return self._respond_offline(text, str(e))
            except StoreError as e:
                logger.warning("Could not load context memories: %s", e)
                self.conv_logger.log_error(self.session_id, str(e), context="context_retrieval")
                context = []

            self.relevant_context = context
            context_block = self.memory.format_for_prompt(context)

            thought_process = None
            if self.analyzer is not None and self.config.reasoning_depth:
                analysis = await self.analyzer.analyze(
                    text, context, self.config.reasoning_depth
                )
                self.thought_process = thought_process = analysis.thoughts
                self.confidence_score = analysis.confidence

            messages = build_messages(
                build_system_prompt(self.config.profile, context_block, thought_process),
                self.history,
                text,
                self.config.context_window,
            )

            self._enter(TurnStage.GENERATING)
            self.conv_logger.log_llm_request(
                self.session_id,
                model=self.config.model,
                messages_count=len(messages),
                streaming=self.config.use_streaming,
                context_memories=len(context),
            )
            try:
                if self.config.use_streaming:
                    reply = await self._generate_streaming(messages)
                else:
                    reply = await self._generate_standard(messages)
            except ConnectivityError as e:
                return self._respond_offline(text, str(e))
            except CompletionError as e:
                self.error = str(e)
                self.conv_logger.log_error(self.session_id, str(e), context="generating")
                if self.config.dev_mode:
                    return self._respond_offline(text, str(e))
                self._enter(TurnStage.IDLE)
                raise

            self.history.append(Message("user", text))
            self.history.append(Message("assistant", reply))
            self.response = reply
            self.offline = False
            self.conv_logger.log_assistant_message(self.session_id, reply)

            if self.config.learn_in_background:
                task = asyncio.create_task(self._persist_and_learn(text, reply))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            else:
                await self._persist_and_learn(text, reply)

            return reply
        finally:
            self.is_loading = False
            self.is_streaming = False

    async def _generate_standard(self, messages: list[dict[str, Any]]) -> str:
        return await self.llm.complete(
            messages,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    async def _generate_streaming(self, messages: list[dict[str, Any]]) -> str:
        """Accumulate a streamed reply, falling back to a standard request."""
        self.is_streaming = True
        self.partial_response = ""
        chunks = 0
        try:
            async for chunk in self.llm.stream(
                messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            ):
                chunks += 1
                self.partial_response += chunk
                if self.on_partial is not None:
                    self.on_partial(self.partial_response)
        except (StreamingError, ConnectivityError) as e:
            logger.warning("Streaming failed, falling back to standard request: %s", e)
            self.conv_logger.log_stream_fallback(self.session_id, str(e), chunks)
            self.is_streaming = False
            self.partial_response = ""
            return await self._generate_standard(messages)
        finally:
            self.is_streaming = False

        return self.partial_response

    def _respond_offline(self, text: str, reason: str) -> str:
        logger.warning("Answering in offline mode: %s", reason)
        self.conv_logger.log_offline_response(self.session_id, reason)

        reply = generate_mock_response(text, self.config.profile)
        self.history.append(Message("user", text))
        self.history.append(Message("assistant", reply))
        self.response = reply
        self.offline = True
        self.conv_logger.log_assistant_message(self.session_id, reply)
        self._enter(TurnStage.IDLE)
        return reply

    def persist_exchange(self, user: str, reply: str) -> Memory:
        """Store a completed exchange as a conversation memory."""
        now = self._clock()
        return self.memory.add_memory(
            MemoryType.CONVERSATION,
            f"conversation_{int(now.timestamp() * 1000)}",
            {"user": user, "assistant": reply, "timestamp": now.isoformat()},
            importance=1,
        )

    async def _persist_and_learn(self, user: str, reply: str) -> None:
        """Persist the exchange, then learn from it.

        Neither stage can fail the turn: the user already has the reply.
        A failed write is logged and learning still runs.
        """
        self._enter(TurnStage.PERSISTING)
        try:
            self.persist_exchange(user, reply)
        except EVEError as e:
            logger.warning("Failed to persist conversation: %s", e)
            self.conv_logger.log_error(self.session_id, str(e), context="persisting")

        self._enter(TurnStage.LEARNING)
        if self.learner is not None:
            try:
                learned = await self.learner.learn(f"{user}\n{reply}")
            except Exception as e:
                logger.exception("Learning from conversation failed")
                self.conv_logger.log_error(self.session_id, str(e), context="learning")
            else:
                if learned:
                    self.conv_logger.log_insights_learned(
                        self.session_id, [m.key for m in learned]
                    )

        self._enter(TurnStage.IDLE)

    async def wait_for_learning(self) -> None:
        """Wait until every background persisting and learning task is done."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def clear_conversation(self) -> None:
        """Reset the in-memory conversation. Stored memories are kept."""
        self.conv_logger.log_session_end(self.session_id, reason="cleared")
        self.session_id = self._new_session_id()
        self.conv_logger.log_session_start(self.session_id)

        self.history = []
        self.response = None
        self.error = None
        self.partial_response = ""
        self.is_streaming = False
        self.offline = False
        self.relevant_context = []
        self.thought_process = None
        self.confidence_score = 0.0

"""Learning loop: extract insights, validate them, store the survivors."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..errors import EVEError
from .extractor import InsightExtractor
from .manager import MemoryManager
from .models import Insight, Memory, utcnow
from .validator import InsightValidator

logger = logging.getLogger(__name__)


class InsightLearner:
    """Turns conversation text into stored memories.

    Storage has its own duplicate guard, separate from the validator's
    contradiction check: a memory with a strictly higher confidence under
    a matching key blocks the write.
    """

    def __init__(
        self,
        memory: MemoryManager,
        extractor: InsightExtractor,
        validator: InsightValidator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the learner.

        Args:
            memory: Manager the learned memories are written through.
            extractor: Produces candidate insights from text.
            validator: Acceptance policy; built on ``memory`` if omitted.
            clock: Source of the ``learned_at`` timestamp.
        """
        self.memory = memory
        self.extractor = extractor
        self.validator = validator or InsightValidator(memory)
        self._clock = clock or utcnow
        self._active = 0

    @property
    def is_learning(self) -> bool:
        """True while an extraction or learning pass is running."""
        return self._active > 0

    async def extract_insights(self, text: str) -> list[Insight]:
        self._active += 1
        try:
            return await self.extractor.extract_insights(text)
        finally:
            self._active -= 1

    def validate_insight(self, insight: Insight) -> bool:
        return self.validator.validate(insight)

    def store_insight(self, insight: Insight) -> Memory | None:
        """Store an insight as a memory unless a more confident one exists.

        Equal confidence does not block, so re-storing the same insight
        inserts it again.

        Returns:
            The new memory, or None if an existing memory took precedence.
        """
        existing = self.memory.search_memories(insight.key, key_only=True)
        for memory in existing:
            confidence = memory.confidence
            if confidence is not None and confidence > insight.confidence:
                logger.debug(
                    "Skipping insight %r: memory %s is more confident",
                    insight.key,
                    memory.id,
                )
                return None

        return self.memory.add_memory(
            insight.type,
            insight.key,
            insight.value,
            importance=insight.importance,
            expiry=None,
            metadata={
                "confidence": insight.confidence,
                "source": insight.source.value,
                "learned_at": self._clock().isoformat(),
            },
        )

    async def learn(self, text: str) -> list[Memory]:
        """Extract, validate and store insights from conversation text.

        A failure on one insight is logged and does not stop the others.

        Returns:
            The memories that were written.
        """
        self._active += 1
        try:
            insights = await self.extractor.extract_insights(text)
            stored: list[Memory] = []
            for insight in insights:
                try:
                    if not self.validate_insight(insight):
                        logger.debug("Rejected insight %r", insight.key)
                        continue
                    memory = self.store_insight(insight)
                except EVEError as e:
                    logger.warning(f"Failed to learn insight {insight.key!r}: {e}")
                    continue
                if memory is not None:
                    stored.append(memory)
            return stored
        finally:
            self._active -= 1

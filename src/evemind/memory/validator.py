"""Acceptance policy for learned insights.

An insight is checked against the memories already stored under a
matching key:

1. Nothing related is stored: accept.
2. A more confident memory contradicts it: reject.
3. Above the high-confidence threshold: accept.
4. Above the medium threshold: accept with at least one supporting memory.
5. Otherwise: accept only with a quorum of supporting memories.
"""

from __future__ import annotations

import logging

from ..config import LearningThresholds
from ..errors import ConnectivityError, StoreError
from .manager import MemoryManager
from .models import Insight, Memory, Scalar, Structured, value_equal

logger = logging.getLogger(__name__)


def _more_confident(memory: Memory, insight: Insight) -> bool:
    confidence = memory.confidence
    return confidence is not None and confidence > insight.confidence


def contradicts(memory: Memory, insight: Insight) -> bool:
    """Whether a stored memory contradicts an insight.

    A scalar memory contradicts when its value differs; a structured one
    when any field shared with a structured insight differs. Either way
    the memory must carry a strictly higher confidence.
    """
    if not _more_confident(memory, insight):
        return False

    stored, candidate = memory.value, insight.value
    if isinstance(stored, Scalar):
        return not value_equal(stored, candidate)
    if isinstance(stored, Structured) and isinstance(candidate, Structured):
        return any(
            not value_equal(stored.fields[k], candidate.fields[k])
            for k in stored.shared_keys(candidate)
        )
    return False


def supports(memory: Memory, insight: Insight) -> bool:
    """Whether a stored memory agrees with an insight.

    A scalar memory supports on equal value; a structured one when at
    least one field shared with a structured insight is equal.
    """
    stored, candidate = memory.value, insight.value
    if isinstance(stored, Scalar):
        return value_equal(stored, candidate)
    if isinstance(stored, Structured) and isinstance(candidate, Structured):
        return any(
            value_equal(stored.fields[k], candidate.fields[k])
            for k in stored.shared_keys(candidate)
        )
    return False


class InsightValidator:
    """Decides whether an insight is trustworthy enough to store."""

    def __init__(
        self,
        memory: MemoryManager,
        thresholds: LearningThresholds | None = None,
    ) -> None:
        self.memory = memory
        self.thresholds = thresholds or LearningThresholds()

    def validate(self, insight: Insight) -> bool:
        """Accept or reject an insight against the current memories.

        Rejection is a normal outcome, not an error. If the related
        memories cannot be fetched the insight is rejected.
        """
        try:
            related = self.memory.search_memories(insight.key, key_only=True)
        except (StoreError, ConnectivityError) as e:
            logger.warning("Could not validate insight %r: %s", insight.key, e)
            return False

        return self.decide(insight, related)

    def decide(self, insight: Insight, related: list[Memory]) -> bool:
        """Apply the acceptance policy to an already fetched memory set."""
        if not related:
            return True

        if any(contradicts(memory, insight) for memory in related):
            logger.debug("Insight %r contradicts a more confident memory", insight.key)
            return False

        if insight.confidence > self.thresholds.high_confidence:
            return True

        supporting = sum(1 for memory in related if supports(memory, insight))

        if insight.confidence > self.thresholds.medium_confidence:
            return supporting >= 1

        return supporting >= self.thresholds.low_confidence_quorum

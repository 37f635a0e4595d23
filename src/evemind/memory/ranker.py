"""Relevance ranking of memories for the context block."""

import logging
from functools import cmp_to_key

from ..config import RankingWeights
from .models import Memory

logger = logging.getLogger(__name__)


def _accessed_ms(memory: Memory) -> float:
    if memory.last_accessed is None:
        return 0.0
    return memory.last_accessed.timestamp() * 1000


def compare_memories(a: Memory, b: Memory, weights: RankingWeights) -> float:
    """Comparator for a descending relevance sort.

    Negative when ``a`` should come first, positive when ``b`` should.
    Importance and last access (in milliseconds) are weighted and summed.
    """
    importance = (b.importance - a.importance) * weights.importance_weight
    recency = (_accessed_ms(b) - _accessed_ms(a)) * weights.recency_weight
    return importance + recency


class RelevanceRanker:
    """Orders pre-filtered memories by weighted importance and recency."""

    def __init__(self, weights: RankingWeights | None = None) -> None:
        self.weights = weights or RankingWeights()

    def rank(self, query: str, candidates: list[Memory]) -> list[Memory]:
        """Return the most relevant candidates, best first.

        Candidates are expected to be already filtered against the query
        by the store's search. The sort is stable, so ties keep their
        original order.

        Args:
            query: The text the candidates were retrieved for.
            candidates: Memories matching the query.

        Returns:
            At most ``weights.max_results`` memories.
        """
        if not candidates:
            return []

        ordered = sorted(
            candidates,
            key=cmp_to_key(lambda a, b: compare_memories(a, b, self.weights)),
        )
        ranked = ordered[: self.weights.max_results]
        logger.debug(
            "Ranked %d of %d memories for query %r", len(ranked), len(candidates), query
        )
        return ranked

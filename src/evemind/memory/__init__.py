"""Memory module for persistent EVE memories and learned insights."""

from .analytics import MemoryAnalytics, analyze_memories
from .extractor import InsightExtractor
from .learning import InsightLearner
from .manager import MemoryManager
from .models import (
    INSIGHT_TYPES,
    Insight,
    InsightSource,
    Memory,
    MemoryType,
    Scalar,
    Structured,
    Value,
    render_value,
    value_from_json,
    value_to_json,
)
from .ranker import RelevanceRanker, compare_memories
from .store import MemoryStore
from .validator import InsightValidator, contradicts, supports

__all__ = [
    "INSIGHT_TYPES",
    "Insight",
    "InsightExtractor",
    "InsightLearner",
    "InsightSource",
    "InsightValidator",
    "Memory",
    "MemoryAnalytics",
    "MemoryManager",
    "MemoryStore",
    "MemoryType",
    "RelevanceRanker",
    "Scalar",
    "Structured",
    "Value",
    "analyze_memories",
    "compare_memories",
    "contradicts",
    "render_value",
    "supports",
    "value_from_json",
    "value_to_json",
]

"""Memory usage analytics and housekeeping recommendations."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from .models import Memory, MemoryType, utcnow

TOP_MEMORIES = 5


class GrowthTrend(Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


@dataclass
class AccessBuckets:
    """How many memories were last read within each window."""

    last_24h: int = 0
    last_7d: int = 0
    last_30d: int = 0
    older: int = 0


@dataclass
class MemoryGrowth:
    last_7d: int = 0
    last_30d: int = 0
    trend: GrowthTrend = GrowthTrend.STABLE


@dataclass
class MemoryAnalytics:
    """Summary of an EVE's memory set.

    Attributes:
        total_count: Number of memories analyzed.
        by_type: Count per memory type value.
        by_importance: Count per importance level.
        by_access: Last-access buckets.
        growth: Creation counts and trend.
        recommendations: Human-readable suggestions.
        quality: Heuristic 0-100 score.
        top_memories: Most important memories, most recently read first.
    """

    total_count: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_importance: dict[int, int] = field(default_factory=dict)
    by_access: AccessBuckets = field(default_factory=AccessBuckets)
    growth: MemoryGrowth = field(default_factory=MemoryGrowth)
    recommendations: list[str] = field(default_factory=list)
    quality: int = 0
    top_memories: list[Memory] = field(default_factory=list)


def _at_or_after(moment: datetime | None, threshold: datetime) -> bool:
    return moment is not None and moment >= threshold


def _trend(last_7d: int, last_30d: int) -> GrowthTrend:
    weekly_rate = last_7d
    monthly_weekly_rate = last_30d / 4
    if weekly_rate > monthly_weekly_rate * 1.2:
        return GrowthTrend.INCREASING
    if weekly_rate < monthly_weekly_rate * 0.8:
        return GrowthTrend.DECREASING
    return GrowthTrend.STABLE


def _recommendations(
    total: int,
    by_type: dict[str, int],
    by_importance: dict[int, int],
    access: AccessBuckets,
) -> list[str]:
    recommendations = []
    if total < 10:
        recommendations.append(
            "Add more memories to improve EVE intelligence and context awareness"
        )
    if by_type.get(MemoryType.FACT.value, 0) < 3:
        recommendations.append(
            "Add more factual memories to improve the EVE's knowledge base"
        )
    if by_type.get(MemoryType.PREFERENCE.value, 0) < 2:
        recommendations.append(
            "Define user preferences to make EVE responses more personalized"
        )
    if len(by_importance) < 3:
        recommendations.append(
            "Use different importance levels (1-5) to prioritize critical memories"
        )
    if access.older > total * 0.7:
        recommendations.append(
            "Many memories haven't been accessed recently. "
            "Consider cleaning up unused memories"
        )
    return recommendations


def _quality(
    total: int,
    by_type: dict[str, int],
    by_importance: dict[int, int],
    access: AccessBuckets,
    trend: GrowthTrend,
) -> int:
    score = 50

    if total > 20:
        score += 10
    if len(by_type) >= 3:
        score += 10
    if len(by_importance) >= 3:
        score += 10
    if access.last_7d > total * 0.3:
        score += 10
    if trend is GrowthTrend.INCREASING:
        score += 10

    if total < 5:
        score -= 20
    if len(by_type) < 2:
        score -= 10
    if access.older > total * 0.8:
        score -= 10
    if trend is GrowthTrend.DECREASING:
        score -= 5

    return max(0, min(100, score))


def analyze_memories(memories: list[Memory], now: datetime | None = None) -> MemoryAnalytics:
    """Compute usage analytics for a set of memories."""
    now = now or utcnow()
    day_ago = now - timedelta(days=1)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    by_type: dict[str, int] = {}
    by_importance: dict[int, int] = {}
    access = AccessBuckets()
    growth = MemoryGrowth()

    for memory in memories:
        by_type[memory.type.value] = by_type.get(memory.type.value, 0) + 1
        by_importance[memory.importance] = by_importance.get(memory.importance, 0) + 1

        if _at_or_after(memory.last_accessed, day_ago):
            access.last_24h += 1
        if _at_or_after(memory.last_accessed, week_ago):
            access.last_7d += 1
        if _at_or_after(memory.last_accessed, month_ago):
            access.last_30d += 1
        else:
            access.older += 1

        if _at_or_after(memory.created_at, week_ago):
            growth.last_7d += 1
        if _at_or_after(memory.created_at, month_ago):
            growth.last_30d += 1

    growth.trend = _trend(growth.last_7d, growth.last_30d)
    total = len(memories)

    top = sorted(
        memories,
        key=lambda m: (
            -m.importance,
            -(m.last_accessed.timestamp() if m.last_accessed else 0.0),
        ),
    )[:TOP_MEMORIES]

    return MemoryAnalytics(
        total_count=total,
        by_type=by_type,
        by_importance=by_importance,
        by_access=access,
        growth=growth,
        recommendations=_recommendations(total, by_type, by_importance, access),
        quality=_quality(total, by_type, by_importance, access, growth.trend),
        top_memories=top,
    )

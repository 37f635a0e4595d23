"""Data models for the memory system."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


class MemoryType(Enum):
    """Kinds of things an EVE remembers."""

    CONVERSATION = "conversation"
    TASK = "task"
    FACT = "fact"
    PREFERENCE = "preference"
    RELATIONSHIP = "relationship"


INSIGHT_TYPES = frozenset(
    {MemoryType.FACT, MemoryType.PREFERENCE, MemoryType.RELATIONSHIP}
)


class InsightSource(Enum):
    """Where a learned insight came from."""

    CONVERSATION = "conversation"
    OBSERVATION = "observation"
    INFERENCE = "inference"


@dataclass(frozen=True)
class Scalar:
    """A single string, number, boolean or null payload.

    JSON arrays are kept here as tuples and compared as a whole.
    """

    value: str | int | float | bool | tuple | None

    def equals(self, other: Scalar) -> bool:
        """Type-aware equality: booleans never equal numbers."""
        if isinstance(self.value, bool) or isinstance(other.value, bool):
            return (
                isinstance(self.value, bool)
                and isinstance(other.value, bool)
                and self.value == other.value
            )
        return self.value == other.value


@dataclass(frozen=True)
class Structured:
    """A keyed payload whose fields are themselves values."""

    fields: dict[str, Value]

    def shared_keys(self, other: Structured) -> list[str]:
        return [k for k in self.fields if k in other.fields]


Value = Union[Scalar, Structured]


def value_from_json(raw: Any) -> Value:
    """Convert a JSON-native payload into a Value."""
    if isinstance(raw, (Scalar, Structured)):
        return raw
    if isinstance(raw, dict):
        return Structured({str(k): value_from_json(v) for k, v in raw.items()})
    if isinstance(raw, (list, tuple)):
        return Scalar(tuple(_freeze(item) for item in raw))
    if raw is None or isinstance(raw, (str, int, float, bool)):
        return Scalar(raw)
    return Scalar(str(raw))


class FrozenMapping(tuple):
    """An object nested inside a list, kept as sorted ``(key, value)`` pairs.

    Only equal to another FrozenMapping, so ``[{"a": 1}]`` and
    ``[["a", 1]]`` stay distinct values.
    """

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FrozenMapping) and tuple.__eq__(self, other)

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __hash__(self) -> int:
        return hash((FrozenMapping, tuple(self)))


def _freeze(raw: Any) -> Any:
    if isinstance(raw, (list, tuple)):
        return tuple(_freeze(item) for item in raw)
    if isinstance(raw, dict):
        return FrozenMapping(sorted((str(k), _freeze(v)) for k, v in raw.items()))
    return raw


def _thaw(raw: Any) -> Any:
    if isinstance(raw, FrozenMapping):
        return {k: _thaw(v) for k, v in raw}
    if isinstance(raw, tuple):
        return [_thaw(item) for item in raw]
    return raw


def value_equal(a: Value, b: Value) -> bool:
    """Structural equality between two values."""
    if isinstance(a, Scalar) and isinstance(b, Scalar):
        return a.equals(b)
    if isinstance(a, Structured) and isinstance(b, Structured):
        if a.fields.keys() != b.fields.keys():
            return False
        return all(value_equal(a.fields[k], b.fields[k]) for k in a.fields)
    return False


def value_to_json(value: Value) -> Any:
    """Convert a Value back into a JSON-native payload."""
    if isinstance(value, Structured):
        return {k: value_to_json(v) for k, v in value.fields.items()}
    return _thaw(value.value)


def render_value(value: Value) -> str:
    """Render a Value as the JSON text used in prompts and search."""
    return json.dumps(value_to_json(value), ensure_ascii=False)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Memory:
    """A persisted record of something an EVE should recall.

    Attributes:
        agent_id: The EVE that owns this memory.
        tenant_id: The company boundary the memory lives in.
        type: What kind of memory this is.
        key: Short label, not unique.
        value: Scalar or structured payload.
        importance: 1 (trivial) to 5 (critical).
        id: Database ID, None for unsaved memories.
        last_accessed: Refreshed whenever the memory is read for context.
        expiry: Optional time after which the memory is hidden.
        metadata: Open map; learned insights carry confidence, source, learned_at.
        created_at: When the memory was stored.
        updated_at: When the memory was last edited.
    """

    agent_id: str
    tenant_id: str
    type: MemoryType
    key: str
    value: Value
    importance: int = 1
    id: int | None = None
    last_accessed: datetime | None = None
    expiry: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.importance <= 5:
            raise ValueError(f"importance must be between 1 and 5, got {self.importance}")
        if not isinstance(self.value, (Scalar, Structured)):
            self.value = value_from_json(self.value)

    @property
    def confidence(self) -> float | None:
        """Confidence recorded for a learned memory, if any."""
        raw = self.metadata.get("confidence")
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return None
        return float(raw)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expiry is None:
            return False
        return self.expiry <= (now or utcnow())


@dataclass(frozen=True)
class Insight:
    """A candidate fact, preference or relationship that is not yet stored."""

    type: MemoryType
    key: str
    value: Value
    confidence: float
    source: InsightSource = InsightSource.CONVERSATION

    def __post_init__(self) -> None:
        if self.type not in INSIGHT_TYPES:
            raise ValueError(f"{self.type.value} memories cannot be learned as insights")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be between 0 and 1, got {self.confidence}")
        if not isinstance(self.value, (Scalar, Structured)):
            object.__setattr__(self, "value", value_from_json(self.value))

    @property
    def importance(self) -> int:
        """Importance given to the memory this insight becomes."""
        return max(1, math.ceil(self.confidence * 5))

"""Tests for the insight acceptance policy."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from evemind.config import LearningThresholds
from evemind.errors import StoreError
from evemind.memory import (
    Insight,
    InsightValidator,
    Memory,
    MemoryManager,
    MemoryStore,
    MemoryType,
    contradicts,
    supports,
)


@pytest.fixture
def store(tmp_path: Path) -> MemoryStore:
    store = MemoryStore(tmp_path / "test_memory.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def manager(store: MemoryStore) -> MemoryManager:
    return MemoryManager(store, "eve-1", "acme")


@pytest.fixture
def validator(manager: MemoryManager) -> InsightValidator:
    return InsightValidator(manager)


def remember(manager: MemoryManager, key: str, value, confidence: float | None = None) -> Memory:
    metadata = {} if confidence is None else {"confidence": confidence}
    return manager.add_memory(MemoryType.PREFERENCE, key, value, metadata=metadata)


def stored(value, confidence: float | None = None) -> Memory:
    metadata = {} if confidence is None else {"confidence": confidence}
    return Memory("eve-1", "acme", MemoryType.FACT, "k", value, metadata=metadata)


class TestContradicts:
    """Tests for the contradiction rule."""

    def test_more_confident_different_scalar(self):
        assert contradicts(stored("blue", 0.9), Insight(MemoryType.FACT, "k", "red", 0.4))

    def test_equal_confidence_never_contradicts(self):
        assert not contradicts(stored("blue", 0.4), Insight(MemoryType.FACT, "k", "red", 0.4))

    def test_less_confident_never_contradicts(self):
        assert not contradicts(stored("blue", 0.3), Insight(MemoryType.FACT, "k", "red", 0.4))

    def test_no_recorded_confidence_never_contradicts(self):
        assert not contradicts(stored("blue"), Insight(MemoryType.FACT, "k", "red", 0.1))

    def test_same_value_does_not_contradict(self):
        assert not contradicts(stored("blue", 0.9), Insight(MemoryType.FACT, "k", "blue", 0.4))

    def test_scalar_memory_contradicts_structured_insight(self):
        insight = Insight(MemoryType.FACT, "k", {"color": "blue"}, 0.4)
        assert contradicts(stored("blue", 0.9), insight)

    def test_bool_and_number_differ(self):
        assert contradicts(stored(True, 0.9), Insight(MemoryType.FACT, "k", 1, 0.4))

    def test_structured_shared_field_differs(self):
        memory = stored({"city": "Lisbon", "zip": 1000}, 0.9)
        insight = Insight(MemoryType.FACT, "k", {"city": "Porto"}, 0.4)
        assert contradicts(memory, insight)

    def test_structured_disjoint_fields_do_not_contradict(self):
        memory = stored({"city": "Lisbon"}, 0.9)
        insight = Insight(MemoryType.FACT, "k", {"zip": 1000}, 0.4)
        assert not contradicts(memory, insight)

    def test_structured_memory_never_contradicts_scalar_insight(self):
        memory = stored({"city": "Lisbon"}, 0.9)
        assert not contradicts(memory, Insight(MemoryType.FACT, "k", "Porto", 0.4))


class TestSupports:
    """Tests for the support rule."""

    def test_equal_scalar_supports(self):
        assert supports(stored("PST"), Insight(MemoryType.FACT, "k", "PST", 0.3))

    def test_different_scalar_does_not_support(self):
        assert not supports(stored("EST"), Insight(MemoryType.FACT, "k", "PST", 0.3))

    def test_structured_shared_equal_field_supports(self):
        memory = stored({"city": "Lisbon", "zip": 1000})
        insight = Insight(MemoryType.FACT, "k", {"city": "Lisbon", "zip": 2000}, 0.3)
        assert supports(memory, insight)

    def test_structured_no_shared_fields(self):
        memory = stored({"city": "Lisbon"})
        assert not supports(memory, Insight(MemoryType.FACT, "k", {"zip": 1000}, 0.3))


class TestInsightValidator:
    """Tests for InsightValidator.validate."""

    def test_accepts_when_nothing_related(self, validator: InsightValidator):
        insight = Insight(MemoryType.FACT, "timezone", "PST", 0.1)
        assert validator.validate(insight) is True

    def test_high_confidence_without_related(self, validator: InsightValidator):
        insight = Insight(MemoryType.FACT, "timezone", "PST", 0.95)
        assert validator.validate(insight) is True

    def test_rejects_contradicted_insight(
        self, validator: InsightValidator, manager: MemoryManager
    ):
        remember(manager, "favorite_color", "blue", confidence=0.9)
        insight = Insight(MemoryType.PREFERENCE, "favorite_color", "red", 0.4)
        assert validator.validate(insight) is False

    def test_high_confidence_accepted_over_weaker_memory(
        self, validator: InsightValidator, manager: MemoryManager
    ):
        remember(manager, "favorite_color", "blue", confidence=0.5)
        insight = Insight(MemoryType.PREFERENCE, "favorite_color", "red", 0.9)
        assert validator.validate(insight) is True

    def test_medium_confidence_needs_one_supporter(
        self, validator: InsightValidator, manager: MemoryManager
    ):
        remember(manager, "timezone", "EST")
        insight = Insight(MemoryType.FACT, "timezone", "PST", 0.6)
        assert validator.validate(insight) is False

        remember(manager, "timezone", "PST")
        assert validator.validate(insight) is True

    def test_low_confidence_quorum_of_two(
        self, validator: InsightValidator, manager: MemoryManager
    ):
        remember(manager, "timezone", "PST", confidence=0.5)
        insight = Insight(MemoryType.FACT, "timezone", "PST", 0.3)
        assert validator.validate(insight) is False

        remember(manager, "timezone", "PST", confidence=0.4)
        assert validator.validate(insight) is True

    def test_threshold_boundaries_are_strict(
        self, validator: InsightValidator, manager: MemoryManager
    ):
        """Exactly 0.8 is not high confidence, exactly 0.5 is not medium."""
        remember(manager, "timezone", "PST")
        assert validator.validate(Insight(MemoryType.FACT, "timezone", "CET", 0.8)) is False
        assert validator.validate(Insight(MemoryType.FACT, "timezone", "PST", 0.5)) is False

    def test_key_match_is_substring(
        self, validator: InsightValidator, manager: MemoryManager
    ):
        remember(manager, "work_timezone", "EST", confidence=0.9)
        insight = Insight(MemoryType.FACT, "timezone", "PST", 0.4)
        assert validator.validate(insight) is False

    def test_value_match_is_ignored(
        self, validator: InsightValidator, manager: MemoryManager
    ):
        """Related memories come from the key only."""
        remember(manager, "note", "timezone is EST", confidence=0.9)
        insight = Insight(MemoryType.FACT, "timezone", "PST", 0.1)
        assert validator.validate(insight) is True

    def test_custom_thresholds(self, manager: MemoryManager):
        remember(manager, "timezone", "EST")
        validator = InsightValidator(
            manager, LearningThresholds(high_confidence=0.6, medium_confidence=0.3)
        )
        assert validator.validate(Insight(MemoryType.FACT, "timezone", "PST", 0.7)) is True

    def test_store_failure_rejects(self):
        manager = Mock(spec=MemoryManager)
        manager.search_memories.side_effect = StoreError("disk I/O error")
        validator = InsightValidator(manager)
        assert validator.validate(Insight(MemoryType.FACT, "timezone", "PST", 0.9)) is False

    def test_deterministic(self, validator: InsightValidator, manager: MemoryManager):
        remember(manager, "timezone", "PST", confidence=0.2)
        insight = Insight(MemoryType.FACT, "timezone", "PST", 0.6)
        results = {validator.validate(insight) for _ in range(5)}
        assert results == {True}

"""Memory manager scoping storage and retrieval to one EVE."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .models import Memory, MemoryType, Value, render_value, value_from_json
from .ranker import RelevanceRanker
from .store import MemoryStore

TYPE_LABELS = {
    MemoryType.FACT: "Known fact",
    MemoryType.PREFERENCE: "Preference",
    MemoryType.RELATIONSHIP: "Relationship",
}


class MemoryManager:
    """Orchestrates memory operations for a single (agent, tenant) pair.

    This is the main interface for the memory system. Every read and
    write goes through the same scope, so callers never pass owner ids.
    """

    def __init__(
        self,
        store: MemoryStore,
        agent_id: str,
        tenant_id: str,
        ranker: RelevanceRanker | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: The MemoryStore for persistence.
            agent_id: The EVE whose memories are managed.
            tenant_id: The company the EVE belongs to.
            ranker: Ranker used for context retrieval.
        """
        self.store = store
        self.agent_id = agent_id
        self.tenant_id = tenant_id
        self.ranker = ranker or RelevanceRanker()

    def add_memory(
        self,
        type: MemoryType,
        key: str,
        value: Value | Any,
        importance: int = 1,
        expiry: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Memory:
        """Store a new memory for this EVE."""
        memory = Memory(
            agent_id=self.agent_id,
            tenant_id=self.tenant_id,
            type=type,
            key=key,
            value=value_from_json(value),
            importance=importance,
            expiry=expiry,
            metadata=dict(metadata or {}),
        )
        return self.store.create(memory)

    def update_memory(self, memory_id: int, **changes: Any) -> Memory | None:
        return self.store.update(memory_id, self.agent_id, self.tenant_id, **changes)

    def delete_memory(self, memory_id: int) -> bool:
        return self.store.delete(memory_id, self.agent_id, self.tenant_id)

    def forget(self, key: str) -> int:
        """Delete every memory stored under a key."""
        return self.store.delete_by_key(self.agent_id, self.tenant_id, key)

    def retrieve_memory(self, key: str) -> Memory | None:
        """Explicitly retrieve the most important memory stored under a key.

        Retrieval counts as a read, so the memory's access time is refreshed.
        """
        matches = self.store.get_by_key(self.agent_id, self.tenant_id, key)
        if not matches:
            return None
        memory = matches[0]
        self._touch([memory])
        return memory

    def search_memories(self, query: str, key_only: bool = False) -> list[Memory]:
        """Substring search that does not count as a read."""
        return self.store.search(
            self.agent_id, self.tenant_id, query, key_only=key_only
        )

    def get_memories_by_type(self, memory_type: MemoryType) -> list[Memory]:
        return self.store.get_by_type(self.agent_id, self.tenant_id, memory_type)

    def load_all(self) -> list[Memory]:
        """Load all unexpired memories, most recently accessed first."""
        return self.store.get_all(self.agent_id, self.tenant_id)

    def relevant_context(self, query: str) -> list[Memory]:
        """Find and rank the memories worth injecting for a message.

        The returned memories are read for context, so their access time
        is refreshed.
        """
        candidates = self.search_memories(query)
        ranked = self.ranker.rank(query, candidates)
        self._touch(ranked)
        return ranked

    def format_for_prompt(self, memories: list[Memory]) -> str:
        """Format memories as the context block for the system prompt.

        Returns:
            One ``<Label>: <key> - <json value>`` line per memory, or an
            empty string if there are none.
        """
        lines = []
        for memory in memories:
            label = TYPE_LABELS.get(memory.type, memory.type.value)
            lines.append(f"{label}: {memory.key} - {render_value(memory.value)}")
        return "\n".join(lines)

    def purge_expired(self) -> int:
        return self.store.purge_expired(self.agent_id, self.tenant_id)

    def _touch(self, memories: list[Memory]) -> None:
        ids = [m.id for m in memories if m.id is not None]
        if not ids:
            return
        now = self.store.now()
        self.store.touch(ids, self.agent_id, self.tenant_id, at=now)
        for memory in memories:
            if memory.id is not None:
                memory.last_accessed = now

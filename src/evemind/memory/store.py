"""SQLite storage for EVE memories."""

import json
import sqlite3
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..errors import ConnectivityError, StoreError
from .models import Memory, MemoryType, render_value, utcnow, value_from_json

_COLUMNS = (
    "id, agent_id, tenant_id, type, key, value, importance, last_accessed, "
    "expiry, metadata, created_at, updated_at"
)

_UPDATABLE = ("key", "value", "importance", "expiry", "metadata")


def _escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_db_time(value: datetime | None) -> str | None:
    # Stored as fixed-width UTC text so string comparison orders correctly.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class MemoryStore:
    """Persistent storage for memories using SQLite.

    Every query is scoped by (agent_id, tenant_id) so one EVE never sees
    another EVE's memories, nor another company's.
    """

    def __init__(
        self,
        db_path: Path,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
            clock: Source of "now", UTC-aware. Defaults to the wall clock.
        """
        self.db_path = db_path
        self._clock = clock or utcnow
        self._conn: sqlite3.Connection | None = None

    def now(self) -> datetime:
        """Current time according to the store's clock."""
        return self._clock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self.db_path)
                self._conn.execute("PRAGMA schema_version")
            except (OSError, sqlite3.Error) as e:
                raise ConnectivityError(f"Cannot open memory database {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        conn = self._get_connection()
        try:
            return conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Memory store rejected query: {e}") from e

    def _commit(self) -> None:
        try:
            self._get_connection().commit()
        except sqlite3.Error as e:
            raise StoreError(f"Memory store commit failed: {e}") from e

    def init_db(self) -> None:
        """Create the memories table if it doesn't exist."""
        self._execute("""
            CREATE TABLE IF NOT EXISTS memories (
                id             INTEGER PRIMARY KEY AUTOINCREMENT,
                agent_id       TEXT NOT NULL,
                tenant_id      TEXT NOT NULL,
                type           TEXT NOT NULL,
                key            TEXT NOT NULL,
                value          TEXT NOT NULL,
                importance     INTEGER NOT NULL DEFAULT 1
                               CHECK (importance BETWEEN 1 AND 5),
                last_accessed  TEXT NOT NULL,
                expiry         TEXT,
                metadata       TEXT NOT NULL DEFAULT '{}',
                created_at     TEXT NOT NULL,
                updated_at     TEXT NOT NULL
            )
        """)
        self._execute(
            "CREATE INDEX IF NOT EXISTS idx_memories_owner "
            "ON memories(agent_id, tenant_id)"
        )
        self._execute(
            "CREATE INDEX IF NOT EXISTS idx_memories_key "
            "ON memories(agent_id, tenant_id, key)"
        )
        self._commit()

    def create(self, memory: Memory) -> Memory:
        """Insert a memory.

        created_at, updated_at and last_accessed are all set to now.

        Args:
            memory: The memory to save; its id is ignored.

        Returns:
            The memory with its assigned id and timestamps.
        """
        now = self._clock()
        cursor = self._execute(
            """
            INSERT INTO memories (
                agent_id, tenant_id, type, key, value, importance,
                last_accessed, expiry, metadata, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                memory.agent_id,
                memory.tenant_id,
                memory.type.value,
                memory.key,
                render_value(memory.value),
                memory.importance,
                _to_db_time(now),
                _to_db_time(memory.expiry),
                json.dumps(memory.metadata, ensure_ascii=False),
                _to_db_time(now),
                _to_db_time(now),
            ),
        )
        self._commit()
        return Memory(
            id=cursor.lastrowid,
            agent_id=memory.agent_id,
            tenant_id=memory.tenant_id,
            type=memory.type,
            key=memory.key,
            value=memory.value,
            importance=memory.importance,
            last_accessed=now,
            expiry=memory.expiry,
            metadata=dict(memory.metadata),
            created_at=now,
            updated_at=now,
        )

    def get(self, memory_id: int, agent_id: str, tenant_id: str) -> Memory | None:
        """Get one memory by id without refreshing its access time."""
        cursor = self._execute(
            f"SELECT {_COLUMNS} FROM memories "
            "WHERE id = ? AND agent_id = ? AND tenant_id = ?",
            (memory_id, agent_id, tenant_id),
        )
        row = cursor.fetchone()
        return self._row_to_memory(row) if row else None

    def get_by_key(
        self,
        agent_id: str,
        tenant_id: str,
        key: str,
        include_expired: bool = False,
    ) -> list[Memory]:
        """Get memories whose key matches exactly, most important first."""
        sql = (
            f"SELECT {_COLUMNS} FROM memories "
            "WHERE agent_id = ? AND tenant_id = ? AND key = ?"
        )
        params: list[Any] = [agent_id, tenant_id, key]
        sql, params = self._expiry_filter(sql, params, include_expired)
        sql += " ORDER BY importance DESC, id ASC"
        return [self._row_to_memory(row) for row in self._execute(sql, params).fetchall()]

    def update(
        self,
        memory_id: int,
        agent_id: str,
        tenant_id: str,
        **changes: Any,
    ) -> Memory | None:
        """Apply changes to a memory.

        Only key, value, importance, expiry and metadata can change. The
        access time is left alone: an edit is not a read.

        Returns:
            The updated memory, or None if no such memory exists.

        Raises:
            ValueError: On unknown fields or an out-of-range importance.
        """
        unknown = set(changes) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        current = self.get(memory_id, agent_id, tenant_id)
        if current is None:
            return None

        if "importance" in changes and not 1 <= changes["importance"] <= 5:
            raise ValueError(f"importance must be between 1 and 5, got {changes['importance']}")

        assignments: list[str] = []
        params: list[Any] = []
        for name in _UPDATABLE:
            if name not in changes:
                continue
            raw = changes[name]
            if name == "value":
                raw = render_value(value_from_json(raw))
            elif name == "expiry":
                raw = _to_db_time(raw)
            elif name == "metadata":
                raw = json.dumps(raw or {}, ensure_ascii=False)
            elif name == "key":
                raw = str(raw)
            assignments.append(f"{name} = ?")
            params.append(raw)

        assignments.append("updated_at = ?")
        params.append(_to_db_time(self._clock()))
        params.extend([memory_id, agent_id, tenant_id])

        self._execute(
            f"UPDATE memories SET {', '.join(assignments)} "
            "WHERE id = ? AND agent_id = ? AND tenant_id = ?",
            params,
        )
        self._commit()
        return self.get(memory_id, agent_id, tenant_id)

    def touch(
        self,
        memory_ids: Iterable[int],
        agent_id: str,
        tenant_id: str,
        at: datetime | None = None,
    ) -> int:
        """Refresh last_accessed on the given memories.

        Returns:
            Number of memories touched.
        """
        ids = [i for i in memory_ids if i is not None]
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        cursor = self._execute(
            f"UPDATE memories SET last_accessed = ? "
            f"WHERE agent_id = ? AND tenant_id = ? AND id IN ({placeholders})",
            [_to_db_time(at or self._clock()), agent_id, tenant_id, *ids],
        )
        self._commit()
        return cursor.rowcount

    def delete(self, memory_id: int, agent_id: str, tenant_id: str) -> bool:
        """Delete a memory by its id.

        Returns:
            True if a memory was deleted, False otherwise.
        """
        cursor = self._execute(
            "DELETE FROM memories WHERE id = ? AND agent_id = ? AND tenant_id = ?",
            (memory_id, agent_id, tenant_id),
        )
        self._commit()
        return cursor.rowcount > 0

    def delete_by_key(self, agent_id: str, tenant_id: str, key: str) -> int:
        """Delete all memories with a given key.

        Returns:
            Number of memories deleted.
        """
        cursor = self._execute(
            "DELETE FROM memories WHERE agent_id = ? AND tenant_id = ? AND key = ?",
            (agent_id, tenant_id, key),
        )
        self._commit()
        return cursor.rowcount

    def get_all(
        self,
        agent_id: str,
        tenant_id: str,
        include_expired: bool = False,
    ) -> list[Memory]:
        """Get every memory of an EVE, most recently accessed first."""
        sql = f"SELECT {_COLUMNS} FROM memories WHERE agent_id = ? AND tenant_id = ?"
        params: list[Any] = [agent_id, tenant_id]
        sql, params = self._expiry_filter(sql, params, include_expired)
        sql += " ORDER BY last_accessed DESC, id DESC"
        return [self._row_to_memory(row) for row in self._execute(sql, params).fetchall()]

    def search(
        self,
        agent_id: str,
        tenant_id: str,
        query: str,
        key_only: bool = False,
        include_expired: bool = False,
    ) -> list[Memory]:
        """Case-insensitive substring search over key and rendered value.

        Args:
            agent_id: Owning EVE.
            tenant_id: Owning company.
            query: Text to look for.
            key_only: Match against the key alone.
            include_expired: Also return memories past their expiry.

        Returns:
            Matching memories, most important first, then oldest first.
        """
        pattern = f"%{_escape_like(query)}%"
        sql = (
            f"SELECT {_COLUMNS} FROM memories WHERE agent_id = ? AND tenant_id = ? "
        )
        params: list[Any] = [agent_id, tenant_id]
        if key_only:
            sql += "AND key LIKE ? ESCAPE '\\'"
            params.append(pattern)
        else:
            sql += "AND (key LIKE ? ESCAPE '\\' OR value LIKE ? ESCAPE '\\')"
            params.extend([pattern, pattern])
        sql, params = self._expiry_filter(sql, params, include_expired)
        sql += " ORDER BY importance DESC, id ASC"
        return [self._row_to_memory(row) for row in self._execute(sql, params).fetchall()]

    def get_by_type(
        self,
        agent_id: str,
        tenant_id: str,
        memory_type: MemoryType,
        include_expired: bool = False,
    ) -> list[Memory]:
        """Get memories of one type, most important first."""
        sql = (
            f"SELECT {_COLUMNS} FROM memories "
            "WHERE agent_id = ? AND tenant_id = ? AND type = ?"
        )
        params: list[Any] = [agent_id, tenant_id, memory_type.value]
        sql, params = self._expiry_filter(sql, params, include_expired)
        sql += " ORDER BY importance DESC, id ASC"
        return [self._row_to_memory(row) for row in self._execute(sql, params).fetchall()]

    def purge_expired(
        self,
        agent_id: str,
        tenant_id: str,
        now: datetime | None = None,
    ) -> int:
        """Delete memories whose expiry has passed.

        Returns:
            Number of memories deleted.
        """
        cursor = self._execute(
            "DELETE FROM memories WHERE agent_id = ? AND tenant_id = ? "
            "AND expiry IS NOT NULL AND expiry <= ?",
            (agent_id, tenant_id, _to_db_time(now or self._clock())),
        )
        self._commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _expiry_filter(
        self, sql: str, params: list[Any], include_expired: bool
    ) -> tuple[str, list[Any]]:
        if include_expired:
            return sql, params
        return (
            sql + " AND (expiry IS NULL OR expiry > ?)",
            [*params, _to_db_time(self._clock())],
        )

    def _row_to_memory(self, row: sqlite3.Row) -> Memory:
        """Convert a database row to a Memory."""
        return Memory(
            id=row["id"],
            agent_id=row["agent_id"],
            tenant_id=row["tenant_id"],
            type=MemoryType(row["type"]),
            key=row["key"],
            value=value_from_json(json.loads(row["value"])),
            importance=row["importance"],
            last_accessed=_from_db_time(row["last_accessed"]),
            expiry=_from_db_time(row["expiry"]),
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=_from_db_time(row["created_at"]),
            updated_at=_from_db_time(row["updated_at"]),
        )

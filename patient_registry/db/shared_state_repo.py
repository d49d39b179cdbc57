"""Repository for the ``shared_state`` table: the storage scope shared by every
execution context that opens the same database file."""

from __future__ import annotations

import json
from typing import Optional

from patient_registry.db.database import Database


class SharedStateRepository:
    """Key-value store for the change signal and console history."""

    def __init__(self, db: Database):
        self._db = db

    def get(self, key: str) -> Optional[str]:
        row = self._db.fetchone("SELECT value FROM shared_state WHERE key = ?", (key,))
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """INSERT INTO shared_state (key, value, updated_at)
                   VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%fZ','now'))
                   ON CONFLICT(key) DO UPDATE
                   SET value = excluded.value, updated_at = excluded.updated_at""",
                (key, value),
            )

    def delete(self, key: str) -> bool:
        with self._db.transaction() as conn:
            cur = conn.execute("DELETE FROM shared_state WHERE key = ?", (key,))
        return cur.rowcount > 0


class QueryHistoryRepository:
    """Most-recent-first list of console statements, stored as a JSON list."""

    def __init__(self, db: Database, key: str = "query-history", limit: int = 10):
        self._state = SharedStateRepository(db)
        self._key = key
        self._limit = limit

    def list_all(self) -> list[str]:
        raw = self._state.get(self._key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return [str(q) for q in items if isinstance(q, str)][: self._limit]

    def record(self, sql: str) -> list[str]:
        """Move *sql* to the front, dropping duplicates and the overflow."""
        history = [sql] + [q for q in self.list_all() if q != sql]
        history = history[: self._limit]
        self._state.set(self._key, json.dumps(history))
        return history

    def clear(self) -> None:
        self._state.delete(self._key)

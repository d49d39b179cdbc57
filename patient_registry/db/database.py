"""Core database connection with ACID transaction support."""

from __future__ import annotations

import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generator, Optional, Sequence

from patient_registry.db.schema import SCHEMA_DDL


@dataclass
class QueryResult:
    """Row set plus column metadata returned by :meth:`Database.query`."""

    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    execution_time_ms: float = 0.0
    changes: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "row_count": self.row_count,
            "execution_time_ms": self.execution_time_ms,
            "changes": self.changes,
        }


class Database:
    """
    SQLite database wrapper with explicit ACID transaction support.

    Every mutation goes through ``transaction()``, which commits on success
    and rolls back on failure.  The connection is shared by every consumer
    of one execution context; calls are serialized by a re-entrant lock.
    """

    def __init__(self, path: Path | str):
        self.path: Path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # -- connection lifecycle --------------------------------------------------

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._ensure_dir()
                self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA foreign_keys = ON")
                self._conn.execute("PRAGMA busy_timeout = 5000")
            return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def init(self) -> None:
        """Create all tables and triggers (idempotent)."""
        with self._lock:
            conn = self.connection()
            conn.executescript(SCHEMA_DDL)
            conn.commit()

    # -- transaction helpers ---------------------------------------------------

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """ACID transaction: commits on success, rolls back on exception."""
        with self._lock:
            conn = self.connection()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    # -- low-level query helpers -----------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self.connection().execute(sql, tuple(params))

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[dict[str, Any]]:
        with self._lock:
            row = self.connection().execute(sql, tuple(params)).fetchone()
        return dict(row) if row else None

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        with self._lock:
            rows = self.connection().execute(sql, tuple(params)).fetchall()
        return [dict(r) for r in rows]

    def query(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """
        Run one statement verbatim and return its rows with column names.

        Used both for structured CRUD and for free-form console SQL, so the
        statement is committed whether it reads or writes.
        """
        started = time.perf_counter()
        with self.transaction() as conn:
            cursor = conn.execute(sql, tuple(params))
            columns = [d[0] for d in cursor.description] if cursor.description else []
            rows = [dict(zip(columns, r)) for r in cursor.fetchall()]
            # rows touched by the statement itself, not by triggers
            changes = max(cursor.rowcount, 0)
        elapsed = (time.perf_counter() - started) * 1000.0
        return QueryResult(
            columns=columns,
            rows=rows,
            execution_time_ms=round(elapsed, 3),
            changes=changes,
        )

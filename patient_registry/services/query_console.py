"""Raw-SQL query console.

Statements are sent to the shared session verbatim.  Successful statements
go to a short most-recent-first history kept in the shared storage scope.
"""

from __future__ import annotations

import csv
import io
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from patient_registry.db.database import QueryResult
from patient_registry.db.session import SessionProvider
from patient_registry.db.shared_state_repo import QueryHistoryRepository
from patient_registry.errors import QueryError, ValidationError
from patient_registry.sync.notifier import ChangeNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleQuery:
    title: str
    query: str


SAMPLE_QUERIES: tuple[SampleQuery, ...] = (
    SampleQuery(
        "All Patients",
        "SELECT * FROM patients ORDER BY created_at DESC;",
    ),
    SampleQuery(
        "Patients by Gender",
        "SELECT gender, COUNT(*) AS count FROM patients "
        "WHERE gender IS NOT NULL GROUP BY gender;",
    ),
    SampleQuery(
        "Recent Registrations",
        "SELECT first_name, last_name, created_at FROM patients "
        "WHERE created_at >= strftime('%Y-%m-%dT%H:%M:%fZ', 'now', '-30 days') "
        "ORDER BY created_at DESC;",
    ),
    SampleQuery(
        "Patients with Allergies",
        "SELECT first_name, last_name, allergies FROM patients "
        "WHERE allergies IS NOT NULL AND allergies != '';",
    ),
    SampleQuery(
        "Age Distribution",
        """SELECT
    CASE
        WHEN age < 18 THEN 'Under 18'
        WHEN age BETWEEN 18 AND 35 THEN '18-35'
        WHEN age BETWEEN 36 AND 55 THEN '36-55'
        WHEN age > 55 THEN 'Over 55'
        ELSE 'Unknown'
    END AS age_group,
    COUNT(*) AS count
FROM (
    SELECT CAST((julianday('now') - julianday(date_of_birth)) / 365.25 AS INTEGER) AS age
    FROM patients
    WHERE date_of_birth IS NOT NULL
)
GROUP BY age_group;""",
    ),
    SampleQuery(
        "Table Schema",
        "SELECT name AS column_name, type AS data_type, "
        "CASE WHEN \"notnull\" THEN 'NO' ELSE 'YES' END AS is_nullable "
        "FROM pragma_table_info('patients') ORDER BY cid;",
    ),
)


def to_csv(result: QueryResult) -> str:
    """Header row plus one line per result row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(result.columns)
    for row in result.rows:
        writer.writerow(["" if row.get(c) is None else row.get(c) for c in result.columns])
    return buf.getvalue()


def export_filename(day: Optional[date] = None) -> str:
    return f"query-results-{(day or date.today()).isoformat()}.csv"


class QueryConsole:
    def __init__(
        self,
        session: SessionProvider,
        notifier: Optional[ChangeNotifier] = None,
        history_key: str = "query-history",
        history_size: int = 10,
    ):
        self._session = session
        self._notifier = notifier
        self._history_key = history_key
        self._history_size = history_size

    def _history(self) -> QueryHistoryRepository:
        return QueryHistoryRepository(
            self._session.require_db(), key=self._history_key, limit=self._history_size
        )

    @property
    def samples(self) -> list[dict[str, str]]:
        return [{"title": s.title, "query": s.query} for s in SAMPLE_QUERIES]

    def history(self) -> list[str]:
        return self._history().list_all()

    def clear_history(self) -> None:
        self._history().clear()

    def execute(self, sql: str, params: Optional[list[Any]] = None) -> QueryResult:
        """Run *sql* and record it in history; rejected statements are not recorded."""
        if not sql or not sql.strip():
            raise ValidationError("Query is empty")
        db = self._session.require_db()
        try:
            result = db.query(sql, params or ())
        except (sqlite3.Error, sqlite3.Warning) as e:
            logger.error(f"Query error: {e}")
            raise QueryError(str(e) or "Failed to execute query") from e

        self._history().record(sql)
        logger.info(
            f"Returned {result.row_count} rows in {result.execution_time_ms:.1f}ms"
        )
        if result.changes and self._notifier is not None:
            try:
                self._notifier.notify_changed()
            except Exception as e:
                logger.warning(f"Change signal not published: {e}")
        return result

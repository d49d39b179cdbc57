"""Database layer: SQLite with ACID transactions and repository pattern."""

from patient_registry.db.database import Database, QueryResult
from patient_registry.db.schema import SCHEMA_DDL
from patient_registry.db.session import SessionProvider, SessionState

__all__ = ["Database", "QueryResult", "SCHEMA_DDL", "SessionProvider", "SessionState"]

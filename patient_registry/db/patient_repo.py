"""Repository for the ``patients`` table: full CRUD with ACID transactions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from patient_registry.db.database import Database
from patient_registry.errors import QueryError
from patient_registry.models.patient import FORM_FIELDS, Patient, utc_timestamp


@dataclass(frozen=True)
class PatientStats:
    total: int = 0
    this_month: int = 0
    this_week: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "this_month": self.this_month, "this_week": self.this_week}


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PatientRepository:
    """Single-Responsibility repository for patient persistence."""

    def __init__(self, db: Database):
        self._db = db

    # -- Create ----------------------------------------------------------------

    def create(self, patient: Patient) -> Patient:
        """Insert a new patient and return the stored row. Raises on duplicate email."""
        columns = ("id",) + FORM_FIELDS
        values = patient.form_values()
        placeholders = ", ".join("?" for _ in columns)
        with self._db.transaction() as conn:
            conn.execute(
                f"INSERT INTO patients ({', '.join(columns)}) VALUES ({placeholders})",
                (patient.id, *(values[c] for c in FORM_FIELDS)),
            )
        stored = self.get_by_id(patient.id)
        if stored is None:
            raise QueryError(f"Patient {patient.id} was not stored")
        return stored

    # -- Read ------------------------------------------------------------------

    def get_by_id(self, patient_id: str) -> Optional[Patient]:
        row = self._db.fetchone("SELECT * FROM patients WHERE id = ?", (patient_id,))
        return Patient.from_row(row) if row else None

    def list_all(self) -> list[Patient]:
        """Every patient, newest registration first."""
        rows = self._db.fetchall("SELECT * FROM patients ORDER BY created_at DESC, rowid DESC")
        return [Patient.from_row(r) for r in rows]

    def search(self, term: str) -> list[Patient]:
        """
        Case-insensitive partial match on first name, last name and email;
        plain substring match on phone.
        """
        term = term.strip()
        if not term:
            return self.list_all()
        lowered = _like_pattern(term.lower())
        rows = self._db.fetchall(
            """SELECT * FROM patients
               WHERE LOWER(first_name) LIKE ? ESCAPE '\\'
                  OR LOWER(last_name) LIKE ? ESCAPE '\\'
                  OR LOWER(COALESCE(email, '')) LIKE ? ESCAPE '\\'
                  OR instr(COALESCE(phone, ''), ?) > 0
               ORDER BY created_at DESC, rowid DESC""",
            (lowered, lowered, lowered, term),
        )
        return [Patient.from_row(r) for r in rows]

    def count(self) -> int:
        row = self._db.fetchone("SELECT COUNT(*) AS total FROM patients")
        return int(row["total"]) if row else 0

    def stats(self, now: Optional[datetime] = None) -> PatientStats:
        """Totals for all time, the current month and the current week (from Sunday)."""
        now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_month = midnight.replace(day=1)
        start_of_week = midnight - timedelta(days=(now.weekday() + 1) % 7)
        row = self._db.fetchone(
            """SELECT
                   COUNT(*) AS total,
                   COUNT(CASE WHEN created_at >= ? THEN 1 END) AS this_month,
                   COUNT(CASE WHEN created_at >= ? THEN 1 END) AS this_week
               FROM patients""",
            (utc_timestamp(start_of_month), utc_timestamp(start_of_week)),
        )
        if not row:
            return PatientStats()
        return PatientStats(
            total=int(row["total"]),
            this_month=int(row["this_month"]),
            this_week=int(row["this_week"]),
        )

    # -- Update ----------------------------------------------------------------

    def update(self, patient_id: str, **fields: Any) -> Optional[Patient]:
        """
        Update form fields on a patient row.  Only supplied keys are changed;
        ``updated_at`` is refreshed by the table trigger.
        """
        filtered = {k: v for k, v in fields.items() if k in FORM_FIELDS}
        if not filtered:
            return self.get_by_id(patient_id)

        set_parts = [f"{k} = ?" for k in filtered]
        values = list(filtered.values())
        values.append(patient_id)

        with self._db.transaction() as conn:
            cur = conn.execute(
                f"UPDATE patients SET {', '.join(set_parts)} WHERE id = ?",
                tuple(values),
            )
        if cur.rowcount == 0:
            return None
        return self.get_by_id(patient_id)

    # -- Delete ----------------------------------------------------------------

    def delete(self, patient_id: str) -> bool:
        with self._db.transaction() as conn:
            cur = conn.execute("DELETE FROM patients WHERE id = ?", (patient_id,))
        return cur.rowcount > 0

"""Patient service: registration, edits and deletion over the shared session.

Validation runs before the database is touched.  Every committed mutation is
followed by a change signal so other contexts reload; plain loads never
signal.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from patient_registry.db.patient_repo import PatientRepository, PatientStats
from patient_registry.db.session import SessionProvider
from patient_registry.errors import NotFoundError, QueryError, RegistryError
from patient_registry.models.patient import FORM_FIELDS, Patient
from patient_registry.services.validation import validate_patient_form
from patient_registry.sync.channels import Subscription
from patient_registry.sync.notifier import ChangeNotifier

logger = logging.getLogger(__name__)


@dataclass
class PatientSnapshot:
    patients: list[Patient] = field(default_factory=list)
    stats: PatientStats = field(default_factory=PatientStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": len(self.patients),
            "stats": self.stats.to_dict(),
            "patients": [p.to_dict() for p in self.patients],
        }


class PatientService:
    """
    Facade for patient CRUD.

    The session and notifier are injected so tests can run several
    contexts against one database file.
    """

    def __init__(self, session: SessionProvider, notifier: Optional[ChangeNotifier] = None):
        self._session = session
        self._notifier = notifier

    def _repo(self) -> PatientRepository:
        return PatientRepository(self._session.require_db())

    def _changed(self) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify_changed()
        except Exception as e:
            logger.warning(f"Change signal not published: {e}")

    # -- Read ------------------------------------------------------------------

    def load(self, now: Optional[datetime] = None) -> PatientSnapshot:
        """All patients (newest first) plus registration stats."""
        repo = self._repo()
        try:
            return PatientSnapshot(patients=repo.list_all(), stats=repo.stats(now))
        except sqlite3.Error as e:
            logger.error(f"Error loading patients: {e}")
            raise QueryError("Failed to load patients") from e

    def get(self, patient_id: str) -> Patient:
        patient = self._repo().get_by_id(patient_id)
        if patient is None:
            raise NotFoundError(f"Patient {patient_id} not found")
        return patient

    def search(self, term: str) -> list[Patient]:
        try:
            return self._repo().search(term)
        except sqlite3.Error as e:
            logger.error(f"Error searching patients: {e}")
            raise QueryError("Failed to search patients") from e

    # -- Mutations -------------------------------------------------------------

    def register(self, form: dict[str, Any]) -> Patient:
        cleaned = validate_patient_form(form)
        repo = self._repo()
        patient = Patient.from_form(cleaned)
        try:
            stored = repo.create(patient)
        except sqlite3.Error as e:
            logger.error(f"Error saving patient: {e}")
            raise QueryError(f"Failed to register patient: {e}") from e
        logger.info(f"Registered patient {stored.id}")
        self._changed()
        return stored

    def update(self, patient_id: str, form: dict[str, Any]) -> Patient:
        """
        Apply an edit form.  Keys absent from *form* keep their stored value;
        keys present but blank are cleared.
        """
        repo = self._repo()
        existing = repo.get_by_id(patient_id)
        if existing is None:
            raise NotFoundError(f"Patient {patient_id} not found")
        merged = existing.form_values()
        merged.update({k: v for k, v in form.items() if k in FORM_FIELDS})
        cleaned = validate_patient_form(merged)
        values = {name: cleaned.get(name) for name in FORM_FIELDS}
        try:
            updated = repo.update(patient_id, **values)
        except sqlite3.Error as e:
            logger.error(f"Error saving patient: {e}")
            raise QueryError(f"Failed to update patient: {e}") from e
        if updated is None:
            raise NotFoundError(f"Patient {patient_id} not found")
        logger.info(f"Updated patient {patient_id}")
        self._changed()
        return updated

    def delete(self, patient_id: str) -> None:
        repo = self._repo()
        try:
            deleted = repo.delete(patient_id)
        except sqlite3.Error as e:
            logger.error(f"Error deleting patient: {e}")
            raise QueryError("Failed to delete patient") from e
        if not deleted:
            raise NotFoundError(f"Patient {patient_id} not found")
        logger.info(f"Deleted patient {patient_id}")
        self._changed()


class PatientListView:
    """
    The patient list a context is showing, reloaded in full whenever another
    context signals a change.  Call ``close()`` on teardown to drop the
    subscription.
    """

    def __init__(self, service: PatientService, notifier: Optional[ChangeNotifier] = None):
        self._service = service
        self._notifier = notifier
        self.snapshot = PatientSnapshot()
        self.loaded_at: Optional[str] = None
        self.reload_count = 0
        self.error: Optional[str] = None
        self._subscription: Optional[Subscription] = (
            notifier.on_changed(self.reload) if notifier else None
        )

    def reload(self) -> bool:
        try:
            snapshot = self._service.load()
        except RegistryError as e:
            self.error = str(e)
            logger.warning(f"Patient list reload failed: {e}")
            return False
        self.snapshot = snapshot
        self.error = None
        self.loaded_at = datetime.now(timezone.utc).isoformat()
        self.reload_count += 1
        return True

    def close(self) -> None:
        if self._notifier and self._subscription:
            self._notifier.off(self._subscription)
            self._subscription = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "loaded_at": self.loaded_at,
            "reload_count": self.reload_count,
            "error": self.error,
        }

"""Service layer: patient management and the raw-SQL console."""

from patient_registry.services.patient_service import PatientListView, PatientService
from patient_registry.services.query_console import QueryConsole

__all__ = ["PatientListView", "PatientService", "QueryConsole"]

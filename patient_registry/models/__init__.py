"""Domain models."""

from patient_registry.models.patient import FORM_FIELDS, Gender, Patient

__all__ = ["FORM_FIELDS", "Gender", "Patient"]

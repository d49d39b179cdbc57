"""Form validation, run before any database call."""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from patient_registry.errors import ValidationError
from patient_registry.models.patient import Gender, clean_form

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_GENDERS = {g.value for g in Gender}


def validate_patient_form(form: dict[str, Any]) -> dict[str, Any]:
    """Return the cleaned form, or raise :class:`ValidationError` with a user-facing message."""
    cleaned = clean_form(form)

    if not cleaned.get("first_name") or not cleaned.get("last_name"):
        raise ValidationError("First name and last name are required")

    email = cleaned.get("email")
    if email and not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address")

    gender = cleaned.get("gender")
    if gender and gender not in _GENDERS:
        raise ValidationError(
            f"Gender must be one of: {', '.join(sorted(_GENDERS))}"
        )

    dob = cleaned.get("date_of_birth")
    if dob:
        try:
            date.fromisoformat(dob)
        except ValueError:
            raise ValidationError("Date of birth must be a date (YYYY-MM-DD)") from None

    return cleaned

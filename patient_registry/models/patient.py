"""Patient domain model: registration form fields plus generated identity."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


# Columns a registration or edit form may write.  Order matches the table.
FORM_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "date_of_birth",
    "gender",
    "address",
    "emergency_contact_name",
    "emergency_contact_phone",
    "medical_history",
    "allergies",
    "medications",
    "insurance_provider",
    "insurance_policy_number",
)


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """Format *moment* the way the database stamps ``created_at``/``updated_at``."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def clean_form(form: dict[str, Any]) -> dict[str, Optional[str]]:
    """
    Keep only known form fields; strip text and turn blanks into ``None``.

    Unknown keys are dropped silently, the way a form ignores extra inputs.
    """
    cleaned: dict[str, Optional[str]] = {}
    for name in FORM_FIELDS:
        if name not in form:
            continue
        value = form[name]
        if isinstance(value, Enum):
            value = value.value
        if value is None:
            cleaned[name] = None
            continue
        text = str(value).strip()
        cleaned[name] = text or None
    return cleaned


@dataclass
class Patient:
    """One registered patient."""

    first_name: str
    last_name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    medications: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def form_values(self) -> dict[str, Optional[str]]:
        """Column values for INSERT/UPDATE, in ``FORM_FIELDS`` order."""
        values = {name: getattr(self, name) for name in FORM_FIELDS}
        values["gender"] = self.gender.value if self.gender else None
        return values

    def to_dict(self) -> dict[str, Any]:
        data = {"id": self.id}
        data.update(self.form_values())
        data["created_at"] = self.created_at
        data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_form(cls, form: dict[str, Any], patient_id: Optional[str] = None) -> "Patient":
        values = clean_form(form)
        gender = values.pop("gender", None)
        kwargs: dict[str, Any] = dict(values)
        kwargs.setdefault("first_name", "")
        kwargs.setdefault("last_name", "")
        kwargs["first_name"] = kwargs["first_name"] or ""
        kwargs["last_name"] = kwargs["last_name"] or ""
        if gender:
            kwargs["gender"] = Gender(gender)
        if patient_id:
            kwargs["id"] = patient_id
        return cls(**kwargs)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Patient":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in row.items() if k in known}
        gender = kwargs.get("gender")
        kwargs["gender"] = Gender(gender) if gender else None
        kwargs["created_at"] = kwargs.get("created_at") or ""
        kwargs["updated_at"] = kwargs.get("updated_at") or ""
        return cls(**kwargs)

"""Helpers shared by the test modules."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from patient_registry.db.database import Database
from patient_registry.db.session import SessionProvider


def temp_db_path() -> Path:
    """Path of a fresh, empty temporary database file."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    return Path(tmp.name)


def make_db() -> Database:
    """Return an initialized Database backed by a fresh temporary file."""
    db = Database(path=temp_db_path())
    db.init()
    return db


def ready_session(path: Path) -> SessionProvider:
    """A SessionProvider on *path* that has finished initializing."""
    session = SessionProvider(path)
    state = asyncio.run(session.start())
    assert state.ready, state.error
    return session


def sample_form(**overrides) -> dict:
    defaults = dict(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="+44 20 7946 0018",
        date_of_birth="1815-12-10",
        gender="female",
        allergies="Penicillin",
        insurance_provider="Analytical Mutual",
        insurance_policy_number="AE-1843",
    )
    defaults.update(overrides)
    return defaults

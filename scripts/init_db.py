#!/usr/bin/env python3
"""Initialize the patient database and optionally seed patients from a YAML file.

YAML layout::

    patients:
      - first_name: Ada
        last_name: Lovelace
        email: ada@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from patient_registry.config import get_registry_config
from patient_registry.db.session import SessionProvider
from patient_registry.errors import RegistryError
from patient_registry.services.patient_service import PatientService
from patient_registry.sync import ChangeNotifier, SharedStateChannel


def main():
    parser = argparse.ArgumentParser(description="Initialize the patient database")
    parser.add_argument("--seed-patients", type=str, help="YAML file with patient definitions")
    parser.add_argument("--db-path", type=str, help="Override database path")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    db_path = Path(args.db_path) if args.db_path else get_registry_config().db_path
    session = SessionProvider(db_path)
    state = asyncio.run(session.start())
    if not state.ready:
        print(f"Database initialization failed: {state.error}")
        sys.exit(1)
    print(f"Database initialized at: {db_path}")

    if args.seed_patients:
        _seed_patients(session, Path(args.seed_patients))

    session.close()
    print("Done.")


def _seed_patients(session: SessionProvider, path: Path):
    import yaml
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    service = PatientService(session)
    created = 0
    for p in data.get("patients", []):
        try:
            patient = service.register(p)
            created += 1
            print(f"  Registered patient: {patient.full_name} ({patient.id})")
        except RegistryError as e:
            print(f"  Skipping {p.get('first_name', '?')} {p.get('last_name', '')}: {e}")

    if created:
        # One signal for the whole batch so running servers reload once.
        key = get_registry_config().sync_key
        ChangeNotifier(SharedStateChannel(session, key=key), key=key).notify_changed()


if __name__ == "__main__":
    main()

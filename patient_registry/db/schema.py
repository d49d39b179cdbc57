"""Database schema DDL: patients table, update-timestamp trigger, shared state.

Timestamps are ISO-8601 UTC strings with milliseconds
(``2026-01-01T09:30:00.123Z``) so text order equals chronological order.
"""

SCHEMA_DDL = """
PRAGMA journal_mode=WAL;

-- ==========================================================================
-- Patients
-- ==========================================================================
CREATE TABLE IF NOT EXISTS patients (
    id                      TEXT PRIMARY KEY DEFAULT (
                                lower(hex(randomblob(4))) || '-' ||
                                lower(hex(randomblob(2))) || '-4' ||
                                substr(lower(hex(randomblob(2))), 2) || '-' ||
                                substr('89ab', 1 + (abs(random()) % 4), 1) ||
                                substr(lower(hex(randomblob(2))), 2) || '-' ||
                                lower(hex(randomblob(6)))
                            ),
    first_name              TEXT NOT NULL,
    last_name               TEXT NOT NULL,
    email                   TEXT UNIQUE,
    phone                   TEXT,
    date_of_birth           TEXT,
    gender                  TEXT
                            CHECK(gender IS NULL OR gender IN
                                  ('male','female','other','prefer_not_to_say')),
    address                 TEXT,
    emergency_contact_name  TEXT,
    emergency_contact_phone TEXT,
    medical_history         TEXT,
    allergies               TEXT,
    medications             TEXT,
    insurance_provider      TEXT,
    insurance_policy_number TEXT,
    created_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now')),
    updated_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_patients_created ON patients(created_at);
CREATE INDEX IF NOT EXISTS idx_patients_last_name ON patients(last_name);

-- Every update restamps updated_at, overriding any value the statement wrote.
-- It must strictly increase: when the clock has not moved past the previous
-- stamp, advance it by one millisecond instead.
DROP TRIGGER IF EXISTS trg_patients_updated_at;
CREATE TRIGGER IF NOT EXISTS trg_patients_touch_updated_at
AFTER UPDATE ON patients
FOR EACH ROW
BEGIN
    UPDATE patients
    SET updated_at = CASE
        WHEN strftime('%Y-%m-%dT%H:%M:%fZ','now') > OLD.updated_at
            THEN strftime('%Y-%m-%dT%H:%M:%fZ','now')
        ELSE strftime('%Y-%m-%dT%H:%M:%fZ', julianday(OLD.updated_at) + 1.0 / 86400000.0)
    END
    WHERE rowid = NEW.rowid;
END;

-- ==========================================================================
-- Shared State (change signal, query history)
-- ==========================================================================
CREATE TABLE IF NOT EXISTS shared_state (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
);
"""

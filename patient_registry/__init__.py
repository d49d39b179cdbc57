"""Patient registry: registration, patient list and a raw-SQL console over an
embedded SQLite database."""

__version__ = "1.0.0"

"""Error taxonomy shared by the session, services and HTTP layer."""

from __future__ import annotations

from typing import Optional


class RegistryError(Exception):
    """Base class for every error the registry reports to a user."""


class DatabaseNotReadyError(RegistryError):
    """The session has not finished initializing, or initialization failed."""

    def __init__(self, init_error: Optional[str] = None):
        self.init_error = init_error
        if init_error:
            super().__init__(f"Database initialization failed: {init_error}")
        else:
            super().__init__("Initializing database...")


class ValidationError(RegistryError):
    """Form input rejected before any database call."""


class NotFoundError(RegistryError):
    """No patient with the requested identifier."""


class QueryError(RegistryError):
    """A mutating or ad-hoc statement was rejected by the database."""

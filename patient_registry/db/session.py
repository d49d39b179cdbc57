"""Session provider: owns the one database connection of an execution context.

The provider is constructed explicitly and handed to every consumer; there is
no module-level connection.  Initialization runs once, off the event loop, and
publishes a :class:`SessionState` snapshot that consumers read before touching
the connection.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from patient_registry.db.database import Database
from patient_registry.errors import DatabaseNotReadyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    """What consumers see: the connection once ready, or the terminal error."""

    db: Optional[Database] = None
    ready: bool = False
    error: Optional[str] = None

    @property
    def pending(self) -> bool:
        return not self.ready and self.error is None

    def to_dict(self) -> dict[str, object]:
        return {"ready": self.ready, "pending": self.pending, "error": self.error}


class SessionProvider:
    """
    Acquires the connection, applies the idempotent schema, publishes state.

    ``start()`` attempts initialization exactly once.  A failure is terminal:
    later calls return the same failed state without reconnecting.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._state = SessionState()
        self._init_task: Optional[asyncio.Task[SessionState]] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state.ready

    async def start(self) -> SessionState:
        """Initialize on first call; every call awaits the same attempt."""
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        if self._init_task.done():
            return self._init_task.result()
        return await asyncio.shield(self._init_task)

    async def _initialize(self) -> SessionState:
        logger.info(f"Initializing patient database at {self.path}")
        db = Database(self.path)
        try:
            await asyncio.to_thread(db.init)
        except Exception as e:
            db.close()
            logger.error(f"Failed to initialize database: {e}")
            self._state = SessionState(db=None, ready=False, error=str(e) or type(e).__name__)
            return self._state
        logger.info("Patient database ready")
        self._state = SessionState(db=db, ready=True)
        return self._state

    def require_db(self) -> Database:
        """Return the connection, or raise while pending or after a failure."""
        state = self._state
        if not state.ready or state.db is None:
            raise DatabaseNotReadyError(state.error)
        return state.db

    async def aclose(self) -> None:
        """Close once any in-flight initialization has settled.

        An interrupted ``start()`` keeps running in its worker thread and is
        awaited here, so the connection it opens is closed as well.
        """
        task = self._init_task
        if task is not None and not task.done():
            await asyncio.wait([task])
        self.close()

    def close(self) -> None:
        """Release the connection when the owning context shuts down."""
        if self._state.db is not None:
            self._state.db.close()
            logger.info("Patient database closed")

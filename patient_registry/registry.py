"""One execution context: a session, its change channel and the consumers."""

from __future__ import annotations

import logging
from typing import Optional

from patient_registry.config import RegistryConfig
from patient_registry.db.session import SessionProvider, SessionState
from patient_registry.services.patient_service import PatientListView, PatientService
from patient_registry.services.query_console import QueryConsole
from patient_registry.sync.channels import ChangeChannel, SharedStateChannel
from patient_registry.sync.notifier import ChangeNotifier

logger = logging.getLogger(__name__)


class RegistryContext:
    """
    Wires the consumers to one explicitly constructed session.

    By default the change signal travels through the shared database file, so
    every process opened on the same path sees the others' writes.  Pass a
    different *channel* to swap the transport.
    """

    def __init__(self, config: RegistryConfig, channel: Optional[ChangeChannel] = None):
        self.config = config
        self.session = SessionProvider(config.db_path)
        self.channel: ChangeChannel = channel or SharedStateChannel(
            self.session, key=config.sync_key, poll_interval=config.sync_poll_seconds
        )
        self.notifier = ChangeNotifier(self.channel, key=config.sync_key)
        self.patients = PatientService(self.session, self.notifier)
        self.console = QueryConsole(
            self.session,
            self.notifier,
            history_key=config.history_key,
            history_size=config.history_size,
        )
        self.view = PatientListView(self.patients, self.notifier)

    async def open(self, watch: bool = True) -> SessionState:
        """Initialize the session, load the list once, then start watching."""
        state = await self.session.start()
        if not state.ready:
            return state
        if isinstance(self.channel, SharedStateChannel):
            self.channel.prime()
            if watch:
                self.channel.start()
        self.view.reload()
        return state

    async def aclose(self) -> None:
        """Tear down the context, first waiting out an initialization still in flight."""
        self.view.close()
        self.channel.close()
        await self.session.aclose()
        logger.info("Registry context closed")

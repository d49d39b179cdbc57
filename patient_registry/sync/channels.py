"""Change-event transports.

A channel delivers payload-free "something changed" events between execution
contexts.  Consumers only see ``publish`` / ``subscribe`` / ``unsubscribe``;
the transport behind them is swappable:

* :class:`InProcessChannel` fans out to the other channels attached to the
  same :class:`LocalBroadcast` (several contexts inside one process).
* :class:`SharedStateChannel` writes the shared storage key in the database
  file and notices writes from other processes by polling it.

A channel never delivers its own publications back to its own subscribers.
"""

from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from patient_registry.db.session import SessionProvider
from patient_registry.db.shared_state_repo import SharedStateRepository
from patient_registry.errors import DatabaseNotReadyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """``value`` is an opaque timestamp string; receivers never interpret it."""

    key: str
    value: str


@dataclass(frozen=True)
class Subscription:
    token: str = field(default_factory=lambda: str(uuid.uuid4()))


ChangeHandler = Callable[[ChangeEvent], None]


class ChangeChannel(ABC):
    """Subscriber registry shared by every transport."""

    def __init__(self) -> None:
        self._handlers: dict[str, ChangeHandler] = {}
        self._lock = threading.Lock()

    @abstractmethod
    def publish(self, event: ChangeEvent) -> None:
        """Announce *event* to every other context on this transport."""

    def subscribe(self, handler: ChangeHandler) -> Subscription:
        sub = Subscription()
        with self._lock:
            self._handlers[sub.token] = handler
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        with self._lock:
            return self._handlers.pop(subscription.token, None) is not None

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def close(self) -> None:
        with self._lock:
            self._handlers.clear()

    def _dispatch(self, event: ChangeEvent) -> int:
        """Call every handler; one failing handler does not starve the rest."""
        with self._lock:
            handlers = list(self._handlers.values())
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Change handler failed for {event.key}: {e}")
        return len(handlers)


# ---------------------------------------------------------------------------
# In-process transport
# ---------------------------------------------------------------------------

class LocalBroadcast:
    """Fan-out point shared by the in-process channels of one process."""

    def __init__(self) -> None:
        self._channels: list[InProcessChannel] = []
        self._lock = threading.Lock()

    def attach(self, channel: "InProcessChannel") -> None:
        with self._lock:
            if channel not in self._channels:
                self._channels.append(channel)

    def detach(self, channel: "InProcessChannel") -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    def deliver(self, sender: "InProcessChannel", event: ChangeEvent) -> None:
        with self._lock:
            targets = [c for c in self._channels if c is not sender]
        for channel in targets:
            channel._dispatch(event)


class InProcessChannel(ChangeChannel):
    def __init__(self, broadcast: LocalBroadcast):
        super().__init__()
        self._broadcast = broadcast
        broadcast.attach(self)

    def publish(self, event: ChangeEvent) -> None:
        self._broadcast.deliver(self, event)

    def close(self) -> None:
        self._broadcast.detach(self)
        super().close()


# ---------------------------------------------------------------------------
# Shared-storage transport
# ---------------------------------------------------------------------------

_UNSEEN = object()


class SharedStateChannel(ChangeChannel):
    """
    Publishes by writing the shared key; observes by polling it.

    The last value this channel wrote or saw is remembered, so only values
    written by another context are dispatched.  Several foreign writes between
    two polls collapse into one event.
    """

    def __init__(self, session: SessionProvider, key: str, poll_interval: float = 1.0):
        super().__init__()
        self.key = key
        self._session = session
        self._poll_interval = poll_interval
        self._last_seen: object = _UNSEEN
        # guards _last_seen together with the read or write of the shared key
        self._seen_lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _repo(self) -> SharedStateRepository:
        return SharedStateRepository(self._session.require_db())

    def prime(self) -> None:
        """Take the current value as the baseline so it is not reported as a change."""
        if not self._session.ready:
            return
        with self._seen_lock:
            if self._last_seen is _UNSEEN:
                self._last_seen = self._repo().get(self.key)

    def publish(self, event: ChangeEvent) -> None:
        with self._seen_lock:
            self._repo().set(self.key, event.value)
            self._last_seen = event.value

    def poll(self) -> bool:
        """Check the shared key once; dispatch if another context wrote it."""
        if not self._session.ready:
            return False
        with self._seen_lock:
            value = self._repo().get(self.key)
            if self._last_seen is _UNSEEN:
                self._last_seen = value
                return False
            if value is None or value == self._last_seen:
                return False
            self._last_seen = value
        self._dispatch(ChangeEvent(key=self.key, value=value))
        return True

    # -- background watcher ----------------------------------------------------

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="shared-state-watcher", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout if timeout is not None else self._poll_interval * 2)
            self._thread = None

    def close(self) -> None:
        self.stop()
        super().close()

    def _run(self) -> None:
        while not self._stop.wait(self._poll_interval):
            try:
                self.poll()
            except DatabaseNotReadyError:
                continue
            except Exception as e:
                logger.warning(f"Change watcher poll failed: {e}")

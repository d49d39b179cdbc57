"""Change notifier: the "re-read the data" signal between execution contexts.

``notify_changed()`` is called after a committed create/update/delete.
``on_changed(handler)`` fires ``handler()`` when another context reports a
change.  The signal carries no payload, so receivers reload everything they
show.  Loading data never notifies; a context that loaded stale data only
refreshes after another context's next write.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from patient_registry.config import DEFAULT_SYNC_KEY
from patient_registry.sync.channels import ChangeChannel, ChangeEvent, Subscription

logger = logging.getLogger(__name__)


class ChangeNotifier:
    def __init__(self, channel: ChangeChannel, key: str = DEFAULT_SYNC_KEY):
        self.channel = channel
        self.key = key

    def notify_changed(self) -> None:
        value = str(time.time_ns())
        self.channel.publish(ChangeEvent(key=self.key, value=value))
        logger.debug(f"Published change signal {self.key}={value}")

    def on_changed(self, handler: Callable[[], None]) -> Subscription:
        """Register *handler*; pass the returned subscription to ``off`` on teardown."""

        def _on_event(event: ChangeEvent) -> None:
            if event.key == self.key:
                handler()

        return self.channel.subscribe(_on_event)

    def off(self, subscription: Subscription) -> bool:
        return self.channel.unsubscribe(subscription)

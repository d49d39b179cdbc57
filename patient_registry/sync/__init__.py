"""Cross-context change notification."""

from patient_registry.sync.channels import (
    ChangeChannel,
    ChangeEvent,
    InProcessChannel,
    LocalBroadcast,
    SharedStateChannel,
    Subscription,
)
from patient_registry.sync.notifier import ChangeNotifier

__all__ = [
    "ChangeChannel",
    "ChangeEvent",
    "ChangeNotifier",
    "InProcessChannel",
    "LocalBroadcast",
    "SharedStateChannel",
    "Subscription",
]

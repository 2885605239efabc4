"""Change events published by the subscription service after each mutation."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """What kind of mutation produced an event."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    CANCELLED = "cancelled"
    CANCELLATION_SCHEDULED = "cancellation_scheduled"
    CANCELLATION_UNSCHEDULED = "cancellation_unscheduled"
    USAGE_RECORDED = "usage_recorded"
    IMPORTED = "imported"
    CLEANED_UP = "cleaned_up"


@dataclass(frozen=True)
class SubscriptionEvent:
    """A committed change to one or more subscriptions."""

    kind: EventKind
    subscription_ids: tuple[str, ...]
    occurred_at: datetime


Listener = Callable[[SubscriptionEvent], None]


class EventBus:
    """Synchronous publish/subscribe for subscription events.

    Listeners run on the publishing thread after the store write has
    committed. A failing listener is logged and does not affect the
    mutation or the other listeners.
    """

    def __init__(self):
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A callable that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: SubscriptionEvent) -> None:
        """Deliver an event to every registered listener."""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.warning("Listener %r failed for %s event", listener, event.kind.value, exc_info=True)

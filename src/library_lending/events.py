"""
In-process publish/subscribe for keeping views consistent.

Writers publish a named event after a successful change; every view that
shows derived data (book availability, loan lists) subscribes and re-queries
when it fires.

Delivery is synchronous, on the publisher's call stack, in subscription
order. A subscriber that raises stops the remaining subscribers and the
exception reaches the publisher. A subscriber must not re-publish the event
it is handling, or the call recurses without bound.

Nothing is persisted: subscriptions live as long as the process.
"""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]

# Event names published by the lending service
BOOKS_CHANGED = "books_changed"
MEMBERS_CHANGED = "members_changed"
LOANS_VIEW_ACTIVATED = "loans_view_activated"


class EventBus:
    """Maps an event name to the ordered callbacks subscribed to it."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, name: str, callback: Subscriber) -> None:
        """Add ``callback`` to the end of ``name``'s subscriber list."""
        self._subscribers.setdefault(name, []).append(callback)
        logger.debug("Subscribed %r to %s", callback, name)

    def unsubscribe(self, name: str, callback: Subscriber) -> None:
        """Remove the first registration of ``callback``; unknown callbacks are ignored."""
        callbacks = self._subscribers.get(name)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def publish(self, name: str, payload: Any = None) -> None:
        """
        Call every current subscriber of ``name`` with ``payload``.

        Subscribers added or removed while publishing take effect on the next
        publish.
        """
        callbacks = list(self._subscribers.get(name, ()))
        logger.debug("Publishing %s to %d subscriber(s)", name, len(callbacks))
        for callback in callbacks:
            callback(payload)

    def subscribers(self, name: str) -> list[Subscriber]:
        return list(self._subscribers.get(name, ()))


# Process-wide bus for callers that are not handed one explicitly
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus, creating it on first use."""
    global _event_bus  # noqa: PLW0603

    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Forget the process-wide bus (useful for testing)."""
    global _event_bus  # noqa: PLW0603
    _event_bus = None

# groomdesk/core/events.py
import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventChannel(Generic[T]):
    """
    Minimal publish/subscribe channel.

    Subscribers are called synchronously, in subscription order. A
    subscriber that raises is logged and skipped; the rest still receive
    the event.

    Usage:

        channel: EventChannel[str] = EventChannel()
        unsubscribe = channel.subscribe(print)
        channel.publish("hello")
        unsubscribe()
    """

    def __init__(self) -> None:
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register `callback` and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: T) -> None:
        # Copy: a subscriber may unsubscribe itself while being notified
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber %r failed", callback)

    def clear(self) -> None:
        """Drop every subscriber (teardown)."""
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from ..models.events import GridEvent

logger = logging.getLogger(__name__)

"""Single ordered change-notification channel.

Delivery is synchronous and in publish order. A subscriber that raises is
logged and skipped; it never affects the operation that published the event.
"""

__all__ = [
    "ChangeNotifier",
]

Subscriber = Callable[[GridEvent], None]


class ChangeNotifier:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: GridEvent) -> None:
        with self._lock:
            targets = list(self._subscribers)
        logger.debug("publish kind=%s version=%d subscribers=%d", event.kind.value, event.version, len(targets))
        for callback in targets:
            try:
                callback(event)
            except Exception:
                logger.exception("event subscriber raised kind=%s", event.kind.value)

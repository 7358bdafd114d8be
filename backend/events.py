"""Publish/subscribe fan-out for schedule changes."""
import logging
import threading
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChangeNotifier(Generic[T]):
    """Registers callbacks and fans a payload out to all of them.

    ``subscribe`` returns a function that removes the callback again; calling it
    more than once is harmless. A callback that raises is logged and skipped so
    the remaining subscribers still run.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[int, Callable[[T], None]] = {}
        self._next_token = 0

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback

        def unsubscribe():
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, payload: T) -> None:
        # Snapshot so callbacks may (un)subscribe while being notified
        with self._lock:
            callbacks = list(self._subscribers.values())

        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Schedule subscriber {callback!r} failed: {str(e)}")

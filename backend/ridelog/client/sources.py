"""
Push-driven sample sources.

A device adapter (GPS listener, accelerometer callback, replay loop) calls
``emit`` for every reading; consumers register with ``subscribe`` and get a
``Subscription`` handle back that they must release.
"""

import logging
import threading
import time
from typing import Callable, Generic, Iterable, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")
Handler = Callable[[T], None]


class Subscription:
    """
    Handle for one registered handler.

    ``unsubscribe`` is idempotent; the handle is also a context manager
    that unsubscribes on exit.
    """

    def __init__(self, source: "SampleSource", handler: Handler):
        self._source = source
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._source._remove(self._handler)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class SampleSource(Generic[T]):
    """An infinite, push-driven stream of readings from one sensor."""

    def __init__(self, name: str):
        self.name = name
        self._handlers: list[Handler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> Subscription:
        with self._lock:
            self._handlers.append(handler)
        logger.debug(f"Subscribed to {self.name} source")
        return Subscription(self, handler)

    def _remove(self, handler: Handler) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass
        logger.debug(f"Unsubscribed from {self.name} source")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def emit(self, reading: T) -> None:
        """Deliver one reading to every current subscriber."""
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler(reading)


def replay_events(
    events: Iterable[tuple[SampleSource, object]],
    time_scale: Optional[float] = None,
) -> int:
    """
    Push recorded readings into their sources, in the given order.

    Args:
        events: (source, reading) pairs in arrival order
        time_scale: if set, sleep between readings for the gap in their
            ``captured_at`` values multiplied by this factor (0.001 turns
            millisecond timestamps into real time)

    Returns:
        Number of readings emitted
    """
    count = 0
    previous: Optional[float] = None
    for source, reading in events:
        captured_at = getattr(reading, "captured_at", None)
        if time_scale and previous is not None and captured_at is not None:
            gap = (captured_at - previous) * time_scale
            if gap > 0:
                time.sleep(gap)
        if captured_at is not None:
            previous = captured_at
        source.emit(reading)
        count += 1
    return count

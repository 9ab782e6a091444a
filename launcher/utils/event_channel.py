"""
One-way event channel from the update engine to the presentation layer.

The producer never blocks: events go into an unbounded queue and the
consumer drains whatever has accumulated since its last look.
"""

from queue import Empty, SimpleQueue
from typing import Callable, Optional

from launcher.models.events import UpdateEvent


class EventChannel:
    """
    Thread-safe, unbounded, single-direction event queue.

    Examples:
        >>> from launcher.models.events import LogEvent
        >>> channel = EventChannel()
        >>> channel.publish(LogEvent("hello"))
        >>> channel.drain()
        [LogEvent(message='hello')]
    """

    def __init__(self, listener: Optional[Callable[[UpdateEvent], None]] = None) -> None:
        """
        :param listener: Optional callable invoked synchronously on publish,
            useful for tests that want to observe events in order.
        """
        self._queue: SimpleQueue[UpdateEvent] = SimpleQueue()
        self._listener = listener

    def publish(self, event: UpdateEvent) -> None:
        self._queue.put(event)
        if self._listener is not None:
            self._listener(event)

    def drain(self, limit: Optional[int] = None) -> list[UpdateEvent]:
        """
        Pop every event currently queued, without waiting for more.

        :param limit: Stop after this many events
        :return: Events in publication order
        """
        events: list[UpdateEvent] = []
        while limit is None or len(events) < limit:
            try:
                events.append(self._queue.get_nowait())
            except Empty:
                break
        return events

    def get(self, timeout: float) -> Optional[UpdateEvent]:
        """Wait up to ``timeout`` seconds for the next event."""
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

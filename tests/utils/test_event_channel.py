import doctest
import threading

from launcher.models.events import LogEvent, StatusEvent
from launcher.utils import event_channel
from launcher.utils.event_channel import EventChannel


def test_drain_returns_events_in_order() -> None:
    channel = EventChannel()
    channel.publish(StatusEvent("one"))
    channel.publish(LogEvent("two"))
    assert channel.drain() == [StatusEvent("one"), LogEvent("two")]
    assert channel.drain() == []


def test_drain_respects_limit() -> None:
    channel = EventChannel()
    for i in range(5):
        channel.publish(LogEvent(str(i)))
    assert len(channel.drain(limit=3)) == 3
    assert channel.drain() == [LogEvent("3"), LogEvent("4")]


def test_get_times_out_when_empty() -> None:
    assert EventChannel().get(timeout=0.01) is None


def test_listener_sees_every_event() -> None:
    seen: list = []
    channel = EventChannel(listener=seen.append)
    channel.publish(LogEvent("x"))
    assert seen == [LogEvent("x")]
    assert channel.drain() == [LogEvent("x")]


def test_publish_from_another_thread() -> None:
    channel = EventChannel()
    worker = threading.Thread(
        target=lambda: [channel.publish(LogEvent(str(i))) for i in range(100)]
    )
    worker.start()
    worker.join()
    assert [e.message for e in channel.drain()] == [str(i) for i in range(100)]


def test_docstring_example() -> None:
    assert doctest.testmod(event_channel).failed == 0

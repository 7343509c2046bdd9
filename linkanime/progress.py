"""Progress delivery for link operations.

The engine reports a ``progress`` message after every file and one
``complete`` message at the end (see ``models.progress_message`` and
``models.complete_message``).  Sinks must never block the engine: a slow
or absent consumer loses messages instead of stalling linking.
"""
import logging
import queue
from typing import Any, Callable, Protocol

log = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


class ProgressSink(Protocol):
    def send(self, message: dict[str, Any]) -> None:
        ...


class NullSink:
    """Discards every message."""

    def send(self, message: dict[str, Any]) -> None:
        pass


class QueueSink:
    """Bounded queue of messages for a consumer on another thread.

    When the queue is full the message is dropped and counted in
    ``dropped``.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def send(self, message: dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(message)
        except queue.Full:
            self.dropped += 1
            log.debug("Progress queue full, dropped %s message", message.get("type"))

    def drain(self) -> list[dict[str, Any]]:
        """Return every queued message without waiting."""
        messages = []
        while True:
            try:
                messages.append(self.queue.get_nowait())
            except queue.Empty:
                return messages


class CallbackSink:
    """Calls *callback* synchronously with each message.

    The callback runs on the linking thread and must return quickly.
    """

    def __init__(self, callback: Callable[[dict[str, Any]], None]):
        self._callback = callback

    def send(self, message: dict[str, Any]) -> None:
        self._callback(message)


def deliver(sink: ProgressSink | None, message: dict[str, Any]) -> None:
    """Send *message* to *sink*; a failing sink is logged, never raised."""
    if sink is None:
        return
    try:
        sink.send(message)
    except Exception as e:
        log.warning("Progress sink %r failed: %s", sink, e)

"""Event reporting for the tunnel and the gallery."""

import logging
import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger("quickshare.events")


class EventSink(Protocol):
    """Interface for observers of tunnel and gallery activity."""

    def on_log(self, message: str) -> None:
        """Receive a human-readable log line."""

    def on_status_changed(self, message: str) -> None:
        """Receive a status change."""

    def on_url_assigned(self, url: str) -> None:
        """Receive the public URL assigned by the relay."""

    def on_error(self, error: Exception) -> None:
        """Receive a failure."""


@dataclass(frozen=True)
class EventSnapshot:
    """Immutable view of the recorded events."""

    logs: tuple[str, ...]
    status: str | None
    url: str | None
    errors: tuple[Exception, ...]


class EventLog(EventSink):
    """Thread-safe event recorder with a bounded log history.

    Once ``history_limit`` lines are retained the oldest line is dropped for
    each new one. Every event is mirrored to the ``quickshare.events`` logger
    and forwarded to the subscribers; subscriber failures are logged only.
    """

    def __init__(
        self, history_limit: int = 100, subscribers: Iterable[EventSink] = ()
    ) -> None:
        self._lock = threading.Lock()
        self._logs: deque[str] = deque(maxlen=history_limit)
        self._errors: deque[Exception] = deque(maxlen=history_limit)
        self._status: str | None = None
        self._url: str | None = None
        self._subscribers = list(subscribers)

    def subscribe(self, sink: EventSink) -> None:
        """Add a sink that receives every subsequent event."""
        with self._lock:
            self._subscribers.append(sink)

    def on_log(self, message: str) -> None:
        logger.info(message)
        with self._lock:
            self._logs.append(message)
        self._dispatch("on_log", message)

    def on_status_changed(self, message: str) -> None:
        logger.info("Status: %s", message)
        with self._lock:
            self._status = message
        self._dispatch("on_status_changed", message)

    def on_url_assigned(self, url: str) -> None:
        logger.info("Public URL: %s", url)
        with self._lock:
            self._url = url
        self._dispatch("on_url_assigned", url)

    def on_error(self, error: Exception) -> None:
        logger.error("%s: %s", type(error).__name__, error)
        with self._lock:
            self._errors.append(error)
        self._dispatch("on_error", error)

    def snapshot(self) -> EventSnapshot:
        """Return a consistent copy of the recorded events."""
        with self._lock:
            return EventSnapshot(
                logs=tuple(self._logs),
                status=self._status,
                url=self._url,
                errors=tuple(self._errors),
            )

    def _dispatch(self, method: str, payload: object) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for sink in subscribers:
            try:
                getattr(sink, method)(payload)
            except Exception:
                logger.exception("Event subscriber failed", extra={"event": method})


@dataclass
class PrefixedEventSink(EventSink):
    """Sink wrapper that tags log lines with a fixed prefix."""

    sink: EventSink
    prefix: str = field(default="")

    def on_log(self, message: str) -> None:
        self.sink.on_log(f"{self.prefix}{message}")

    def on_status_changed(self, message: str) -> None:
        self.sink.on_status_changed(message)

    def on_url_assigned(self, url: str) -> None:
        self.sink.on_url_assigned(url)

    def on_error(self, error: Exception) -> None:
        self.sink.on_error(error)


def prefixed(sink: EventSink, prefix: str) -> EventSink:
    """Return a sink that prefixes log lines with ``prefix``."""
    return PrefixedEventSink(sink=sink, prefix=prefix)

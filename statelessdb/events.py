"""Typed events, a local publish/subscribe bus and a buffering event manager."""

from __future__ import annotations

import queue
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Generic, Hashable, List, Optional, TypeVar

from .logs import new_logger

T = TypeVar("T", bound=Hashable)
D = TypeVar("D")

_log = new_logger("events")

_STOP = object()


@dataclass
class Event(Generic[T, D]):
    """An event of a given type carrying data, stamped with its creation time in ms."""

    type: T
    data: D
    created: int


class EventBus(ABC, Generic[T, D]):
    """A bus that delivers published events to queues subscribed by event type."""

    @abstractmethod
    def subscribe(self, event_type: T, channel: "queue.Queue[Event[T, D]]") -> None:
        """Deliver events of the given type to the channel."""

    @abstractmethod
    def unsubscribe(self, event_type: T, channel: "queue.Queue[Event[T, D]]") -> None:
        """Stop delivering events of the given type to the channel."""

    @abstractmethod
    def publish(self, event: Event[T, D]) -> None:
        """Deliver the event to every channel subscribed to its type."""


class LocalEventBus(EventBus[T, D]):
    """An in-process event bus; delivery never blocks the publisher."""

    def __init__(self) -> None:
        self._subscribers: Dict[T, List["queue.Queue[Event[T, D]]"]] = {}
        self._lock = threading.RLock()

    def subscribe(self, event_type: T, channel: "queue.Queue[Event[T, D]]") -> None:
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(channel)

    def unsubscribe(self, event_type: T, channel: "queue.Queue[Event[T, D]]") -> None:
        with self._lock:
            channels = self._subscribers.get(event_type)
            if channels is None:
                return
            for index, existing in enumerate(channels):
                if existing is channel:
                    del channels[index]
                    break
            if not channels:
                del self._subscribers[event_type]

    def publish(self, event: Event[T, D]) -> None:
        with self._lock:
            channels = list(self._subscribers.get(event.type, ()))
            if not channels:
                _log.warnf("Nothing listening events by: %s", event.type)
                return
            for channel in channels:
                threading.Thread(target=channel.put, args=(event,), daemon=True).start()


class EventManager(Generic[T, D]):
    """Buffers events from a bus per resource and notifies local subscribers.

    Durations are given in seconds. Subscribers receive the creation time of
    each event on their notification queue and can fetch the buffered events
    with get_buffered_events.
    """

    def __init__(
        self,
        bus: EventBus[T, D],
        buffer_expiration: float,
        cleanup_interval: float,
        internal_buffer_size: int,
        retry_event_interval: float,
        max_retries: int,
    ) -> None:
        self._bus = bus
        self._buffer_expiration = buffer_expiration
        self._cleanup_interval = cleanup_interval
        self._retry_event_interval = retry_event_interval
        self._max_retries = max_retries
        self._subscribers: Dict[T, List["queue.Queue[int]"]] = {}
        self._buffers: Dict[T, List[Event[T, D]]] = {}
        self._lock = threading.Lock()
        self._event_channel: "queue.Queue[Any]" = queue.Queue(
            maxsize=max(internal_buffer_size, 1)
        )
        self._closed = threading.Event()
        self._processor = threading.Thread(
            target=self._process_events, name="event-processor", daemon=True
        )
        self._cleaner = threading.Thread(
            target=self._run_cleanup, name="event-cleaner", daemon=True
        )
        self._processor.start()
        self._cleaner.start()

    def __enter__(self) -> "EventManager[T, D]":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _process_events(self) -> None:
        while True:
            event = self._event_channel.get()
            if event is _STOP:
                return
            with self._lock:
                _log.debugf("[processEvents]: Event received %s %s", event.type, event.created)
                self._buffers.setdefault(event.type, []).append(event)
                for channel in self._subscribers.get(event.type, ()):
                    threading.Thread(
                        target=self._trigger_event,
                        args=(channel, event.type, event.created),
                        daemon=True,
                    ).start()

    def _run_cleanup(self) -> None:
        while not self._closed.wait(self._cleanup_interval):
            self.clean_expired_events()

    def _trigger_event(self, channel: "queue.Queue[int]", event_type: T, value: int) -> None:
        for attempt in range(self._max_retries):
            try:
                channel.put_nowait(value)
            except queue.Full:
                _log.warnf(
                    "[triggerEvent]: Subscriber was not ready -- waiting a moment (%d/%d): %s",
                    attempt,
                    self._max_retries,
                    event_type,
                )
                time.sleep(self._retry_event_interval)
            else:
                _log.debugf("[triggerEvent]: Event sent successfully to %s", event_type)
                return
        _log.errorf(
            "[triggerEvent]: Failed to send event: Subscriber was not ready -- skipped: %s",
            event_type,
        )

    def subscribe(self, state_id: T, notification_channel: "queue.Queue[int]") -> None:
        """Register a notification queue for events of the given resource."""
        with self._lock:
            if state_id not in self._buffers:
                _log.debugf("[Subscribe]: Subscribed for parent events: %s", state_id)
                self._bus.subscribe(state_id, self._event_channel)
            _log.debugf("[Subscribe]: Client subscribed for: %s", state_id)
            self._subscribers.setdefault(state_id, []).append(notification_channel)

    def unsubscribe(self, state_id: T, notification_channel: "queue.Queue[int]") -> None:
        """Remove a notification queue registered with subscribe."""
        with self._lock:
            channels = self._subscribers.get(state_id)
            if channels is None:
                _log.warnf("[Unsubscribe]: Warning: Client was not subscribed: %s", state_id)
                return
            for index, existing in enumerate(channels):
                if existing is notification_channel:
                    del channels[index]
                    break
            if not channels:
                del self._subscribers[state_id]
                _log.debugf("[Unsubscribe]: Last client unsubscribed for: %s", state_id)
            else:
                _log.debugf("[Unsubscribe]: Client unsubscribed for: %s", state_id)

    def get_buffered_events(self, state_id: T, since: int) -> List[Event[T, D]]:
        """Return buffered events of the resource created at or after since."""
        with self._lock:
            buffered = self._buffers.get(state_id)
            if not buffered:
                _log.debugf(
                    "[GetBufferedEvents]: Client requesting buffer for: %s since %d (no events found)",
                    state_id,
                    since,
                )
                return []
            return [event for event in buffered if event.created >= since]

    def clean_expired_events(self) -> None:
        """Drop events older than the buffer expiration; release idle bus subscriptions."""
        with self._lock:
            cutoff = int((time.time() - self._buffer_expiration) * 1000)
            for state_id, events in list(self._buffers.items()):
                kept = [event for event in events if event.created >= cutoff]
                _log.debugf(
                    "[cleanExpiredEvents]: Cleaning expired events for %s since %d: removing %d of %d events",
                    state_id,
                    cutoff,
                    len(events) - len(kept),
                    len(events),
                )
                if kept:
                    self._buffers[state_id] = kept
                    continue
                if state_id not in self._subscribers:
                    _log.debugf("[cleanExpiredEvents]: Unsubscribed for parent events: %s", state_id)
                    self._bus.unsubscribe(state_id, self._event_channel)
                del self._buffers[state_id]

    def close(self) -> None:
        """Stop the background processing and cleanup threads."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._event_channel.put(_STOP)
        self._processor.join()
        self._cleaner.join()
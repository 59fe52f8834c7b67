"""Consumer-facing event feed.

The simulation publishes one ``TickUpdate`` per tick. Consumers (dashboards,
commentary) read from their own bounded queue; a slow or failing consumer
never blocks or breaks the tick loop. When a queue is full the oldest update
is dropped.
"""

import itertools
import queue
import threading
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass

import structlog

from racesim.simulation.events import EventType, RaceEvent
from racesim.simulation.snapshot import RaceSnapshot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TickUpdate:
    """What consumers receive after each tick."""

    snapshot: RaceSnapshot
    events: tuple[RaceEvent, ...]


class Subscription:
    """A consumer's bounded mailbox of tick updates."""

    def __init__(self, name: str, maxsize: int):
        self.name = name
        self.dropped = 0
        self.closed = False
        self._queue: queue.Queue[TickUpdate | None] = queue.Queue(maxsize=maxsize)
        self._thread: threading.Thread | None = None

    def offer(self, update: TickUpdate) -> None:
        """Enqueue without blocking, dropping the oldest update when full."""
        if self.closed:
            return
        while True:
            try:
                self._queue.put_nowait(update)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: float | None = None) -> TickUpdate | None:
        """Block for the next update; None once the subscription is closed."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[TickUpdate]:
        """Take every buffered update without blocking."""
        updates = []
        while True:
            try:
                update = self._queue.get_nowait()
            except queue.Empty:
                return updates
            if update is not None:
                updates.append(update)

    def __iter__(self) -> Iterator[TickUpdate]:
        while True:
            update = self._queue.get()
            if update is None:
                return
            yield update

    def listen(self, callback: Callable[[TickUpdate], None]) -> threading.Thread:
        """Deliver updates to ``callback`` on a background thread.

        Exceptions raised by the callback are logged and the listener keeps
        consuming.
        """
        def _run() -> None:
            for update in self:
                try:
                    callback(update)
                except Exception:
                    logger.exception("subscriber_failed", subscriber=self.name)

        self._thread = threading.Thread(target=_run, name=f"racesim-{self.name}", daemon=True)
        self._thread.start()
        return self._thread

    def close(self, timeout: float | None = 1.0) -> None:
        """Stop delivery; a listening thread exits after the buffered updates."""
        if self.closed:
            return
        self.closed = True
        # Wake up a blocked reader even when the queue is full
        while True:
            try:
                self._queue.put_nowait(None)
                break
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)


class EventFeed:
    """Bounded event log plus fan-out to subscribers."""

    def __init__(self, capacity: int = 1000, subscriber_queue_size: int = 256):
        """Initialize the feed.

        Args:
            capacity: Events kept in the consumer-visible log (oldest evicted)
            subscriber_queue_size: Updates buffered per subscriber
        """
        self.capacity = capacity
        self.subscriber_queue_size = subscriber_queue_size
        self._events: deque[RaceEvent] = deque(maxlen=capacity)
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self.total_published = 0

    def subscribe(self, name: str = "consumer", maxsize: int | None = None) -> Subscription:
        subscription = Subscription(name, maxsize or self.subscriber_queue_size)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("subscriber_added", subscriber=name)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription.close()

    def publish(self, update: TickUpdate) -> None:
        """Append the tick's events and hand the update to every subscriber."""
        with self._lock:
            self._events.extend(update.events)
            self.total_published += len(update.events)
            subscriptions = list(self._subscriptions)

        for subscription in subscriptions:
            before = subscription.dropped
            subscription.offer(update)
            if subscription.dropped > before:
                logger.warning(
                    "subscriber_lagging",
                    subscriber=subscription.name,
                    dropped=subscription.dropped,
                )

    def events(self) -> list[RaceEvent]:
        """Retained events, oldest first."""
        with self._lock:
            return list(self._events)

    def recent(self, limit: int = 50) -> list[RaceEvent]:
        """Most recent events in display order.

        Ticks run newest first; events of the same tick keep the order they
        were emitted in, so a finish still reads before its lap completion.
        """
        with self._lock:
            events = list(self._events)
        ticks = [list(group) for _, group in itertools.groupby(events, key=lambda e: e.time_ms)]
        ordered = [event for tick in reversed(ticks) for event in tick]
        return ordered[:limit]

    def count(self, event_type: EventType) -> int:
        with self._lock:
            return sum(1 for e in self._events if e.event_type == event_type)

    def close(self) -> None:
        """Close every subscription."""
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.close()

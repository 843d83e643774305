"""Event bus for pipeline observability.

Carries the events in :data:`PIPELINE_EVENTS` from :class:`EventBusObserver`
to whoever listens: a log, a progress display, a tracing exporter.  A
subscription names one event class; subscribing to ``DomainEvent`` receives
them all.  A listener that raises is logged and the others still run, so a
broken listener never changes the outcome of a model call or a stage.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from impact_analysis.domain.events import PIPELINE_EVENTS, DomainEvent

logger = logging.getLogger(__name__)

Listener = Callable[[DomainEvent], None]


@dataclass(frozen=True)
class Subscription:
    """One listener and the event class it asked for."""

    event_type: type[DomainEvent]
    listener: Listener

    def matches(self, event: DomainEvent) -> bool:
        return isinstance(event, self.event_type)


class EventBus:
    """Delivers pipeline events to listeners in the order they subscribed.

    Usage::

        bus = EventBus()
        log = EventLog()
        bus.subscribe(StageCompleted, log)
        builder.with_observer(EventBusObserver(bus))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(self, event_type: type[DomainEvent], listener: Listener) -> Subscription:
        """Send every *event_type* event to *listener*.

        Raises
        ------
        TypeError
            If *event_type* is neither ``DomainEvent`` nor a pipeline event.
        """
        if event_type is not DomainEvent and event_type not in PIPELINE_EVENTS:
            raise TypeError(f"Not a pipeline event: {event_type!r}")
        subscription = Subscription(event_type, listener)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def subscribe_all(self, listener: Listener) -> Subscription:
        return self.subscribe(DomainEvent, listener)

    def publish(self, event: DomainEvent) -> int:
        """Deliver *event* and return how many listeners took it without error."""
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]

        delivered = 0
        for subscription in targets:
            try:
                subscription.listener(event)
            except Exception:
                logger.exception(
                    "Listener %r failed on %s from %s",
                    subscription.listener,
                    type(event).__name__,
                    event.source_id or "pipeline",
                )
                continue
            delivered += 1
        return delivered


class EventLog:
    """Listener that keeps every event it is given, in arrival order."""

    def __init__(self) -> None:
        self._events: list[DomainEvent] = []

    def __call__(self, event: DomainEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[DomainEvent]:
        return list(self._events)

    def of_type(self, event_type: type[DomainEvent]) -> list[DomainEvent]:
        return [e for e in self._events if isinstance(e, event_type)]

    def __len__(self) -> int:
        return len(self._events)

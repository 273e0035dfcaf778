"""In-process publisher for domain events.

Handlers are isolated: an exception in one handler is logged and collected,
and the remaining handlers still run. Services publish inside ``batch()`` so
that nothing reaches subscribers unless the whole operation succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from hris_payroll.events.types import DomainEvent, EventCategory

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)
EventHandler = Callable[[DomainEvent], None]


@dataclass
class Subscription:
    """A handler and the filters it was registered with."""

    handler: EventHandler
    event_types: frozenset[str] | None = None  # None = all events
    categories: frozenset[EventCategory] | None = None  # None = all categories

    def matches(self, event: DomainEvent) -> bool:
        if self.event_types is not None and event.event_type not in self.event_types:
            return False
        if self.categories is not None and event.category not in self.categories:
            return False
        return True


class EventEmitter:
    """Synchronous event emitter.

    Usage:
        emitter = EventEmitter()
        emitter.on(PayrollItemPaid, notify_employee)
        emitter.on_category(EventCategory.BENEFITS, log_benefit)

        with emitter.batch():
            emitter.emit(event1)
            emitter.emit(event2)
        # both delivered when the block exits without error
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._pending: list[DomainEvent] | None = None

    def on(self, event_type: type[T] | list[type[T]], handler: EventHandler) -> None:
        types = event_type if isinstance(event_type, list) else [event_type]
        self._subscriptions.append(
            Subscription(handler, event_types=frozenset(t.__name__ for t in types))
        )

    def on_category(
        self, category: EventCategory | list[EventCategory], handler: EventHandler
    ) -> None:
        cats = category if isinstance(category, list) else [category]
        self._subscriptions.append(Subscription(handler, categories=frozenset(cats)))

    def on_all(self, handler: EventHandler) -> None:
        self._subscriptions.append(Subscription(handler))

    def off(self, handler: EventHandler) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.handler != handler]

    def emit(self, event: DomainEvent) -> list[Exception]:
        """Deliver (or queue, inside a batch) an event.

        Returns the exceptions raised by handlers.
        """
        if self._pending is not None:
            self._pending.append(event)
            return []
        return self._dispatch(event)

    def batch(self) -> EventBatch:
        return EventBatch(self)

    def _dispatch(self, event: DomainEvent) -> list[Exception]:
        errors: list[Exception] = []
        for sub in self._subscriptions:
            if not sub.matches(event):
                continue
            try:
                sub.handler(event)
            except Exception as e:
                logger.exception("Handler %s failed for event %s", sub.handler, event.event_type)
                errors.append(e)
        return errors


class EventBatch:
    """Holds events until the block exits; discards them on error."""

    def __init__(self, emitter: EventEmitter) -> None:
        self._emitter = emitter
        self._outer: list[DomainEvent] | None = None
        self.errors: list[Exception] = []

    def __enter__(self) -> EventBatch:
        self._outer = self._emitter._pending
        if self._outer is None:
            self._emitter._pending = []
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._outer is not None:
            # Nested batch: the outermost batch decides
            return
        events = self._emitter._pending or []
        self._emitter._pending = None
        if exc_type is not None:
            logger.debug("Discarding %d batched event(s) after error", len(events))
            return
        for event in events:
            self.errors.extend(self._emitter._dispatch(event))

    def add(self, event: DomainEvent) -> None:
        self._emitter.emit(event)

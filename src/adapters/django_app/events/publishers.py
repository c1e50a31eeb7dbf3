"""
Delivery of committed domain events.

``EVENT_PUBLISHER_MODE`` picks one of:

    celery   CeleryEventPublisher, stats projection runs on a worker
    memory   InMemoryEventPublisher, events kept for test assertions
    sync     LoggingEventPublisher (the default), log line plus local handlers
"""

from collections import defaultdict
from typing import Callable, DefaultDict, List
import logging

from src.core.shared.events import DomainEvent
from src.core.shared.interfaces import EventPublisher

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class LoggingEventPublisher(EventPublisher):
    """Writes one log line per event and runs the handlers registered for its type."""

    def __init__(self, log_level: int = logging.INFO):
        self._log_level = log_level
        self._handlers: DefaultDict[str, List[EventHandler]] = defaultdict(list)

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: DomainEvent) -> None:
        logger.log(self._log_level, f"{event!r} {event.aggregate_type} data={event.data}")

        for handler in self._handlers[event.event_type]:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Handler {getattr(handler, '__name__', handler)} failed on {event!r}")


class CeleryEventPublisher(EventPublisher):
    """
    Queues ``dispatch_domain_event`` with the serialized event.

    The producing transaction is already committed when this runs, so an
    unreachable broker is logged rather than raised; the nightly
    ``refresh_event_stats`` rebuild repairs the projection.
    """

    def __init__(self, also_log: bool = True):
        self._also_log = also_log

    def publish(self, event: DomainEvent) -> None:
        from src.adapters.django_app.events.handlers import dispatch_domain_event

        if self._also_log:
            logger.info(f"Queueing {event!r}")
        try:
            dispatch_domain_event.delay(event.event_type, event.to_dict())
        except Exception:
            logger.exception(f"Could not queue {event!r}")


class InMemoryEventPublisher(EventPublisher):

    def __init__(self):
        self._events: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self._events.append(event)

    @property
    def published_events(self) -> List[DomainEvent]:
        return list(self._events)

    def get_events_by_type(self, event_type: str) -> List[DomainEvent]:
        return [event for event in self._events if event.event_type == event_type]

    def clear(self) -> None:
        del self._events[:]


def get_event_publisher(mode: str = 'sync') -> EventPublisher:
    if mode == 'celery':
        return CeleryEventPublisher()
    if mode == 'memory':
        return InMemoryEventPublisher()
    return LoggingEventPublisher()

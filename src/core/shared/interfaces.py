"""
Interfaces (Ports) - contracts between the core and the adapters.

Adapters implement these; the core only ever talks to the abstractions.

Driven ports:
- UnitOfWork: transaction boundary with post-commit event publishing
- EventPublisher: delivery of domain events to asynchronous handlers
- Clock: source of "now", injected so time-dependent rules are testable
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Protocol
import logging

from .events import DomainEvent
from .exceptions import ConcurrencyError
from .result import Result


logger = logging.getLogger(__name__)


class UnitOfWork(ABC):
    """
    Unit of Work - coordinates one atomic transaction.

    Every write made between begin and commit becomes visible together;
    a rollback discards all of them. Domain events queued with
    ``publish_event`` are delivered only after a successful commit.

    Pattern: Context Manager
        with uow:
            ticket_repo.save(ticket)
            uow.publish_event(event)
        # commit on normal exit, rollback on exception

    ``run`` wraps the same protocol for use cases that return ``Result``
    values: a ``Failure`` rolls back, and a ``ConcurrencyError`` restarts
    the whole unit of work up to ``max_attempts`` times.

    Example:
        result = uow.run(lambda uow: self._purchase(...), max_attempts=5)
    """

    def __init__(self):
        self._events: List[DomainEvent] = []

    def __enter__(self) -> "UnitOfWork":
        self._begin_transaction()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        return False

    @abstractmethod
    def _begin_transaction(self) -> None:
        """Start a new transaction."""
        raise NotImplementedError

    @abstractmethod
    def commit(self) -> None:
        """
        Persist every change and publish queued events.

        Note:
            Events are published only after the commit succeeds.
            If the commit fails, they are discarded.
        """
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        """Discard every change and every queued event. Must be idempotent."""
        raise NotImplementedError

    def run(self, work: Callable[["UnitOfWork"], Result], max_attempts: int = 1) -> Result:
        """
        Execute ``work`` inside a transaction, retrying on conflicts.

        Args:
            work: Callable receiving this unit of work and returning a Result
            max_attempts: Total attempts before a ConcurrencyError propagates

        Returns:
            The Result produced by the last attempt

        Raises:
            ConcurrencyError: If every attempt hit a conflict
        """
        attempt = 0
        while True:
            attempt += 1
            self._begin_transaction()
            try:
                result = work(self)
                if result.is_failure:
                    self.rollback()
                else:
                    self.commit()
                return result
            except ConcurrencyError as exc:
                self.rollback()
                if attempt >= max_attempts:
                    logger.error(f"Transaction gave up after {attempt} attempts: {exc}")
                    raise
                logger.warning(f"Transaction conflict (attempt {attempt}/{max_attempts}): {exc}")
            except BaseException:
                self.rollback()
                raise

    def publish_event(self, event: DomainEvent) -> None:
        """
        Queue an event for publication after commit.

        Args:
            event: Domain event to deliver
        """
        self._events.append(event)

    def collect_events(self) -> List[DomainEvent]:
        """Return the queued events (for debugging and tests)."""
        return list(self._events)

    def clear_events(self) -> None:
        self._events.clear()


class EventPublisher(ABC):
    """
    Delivers domain events to their consumers.

    Example:
        class CeleryEventPublisher(EventPublisher):
            def publish(self, event):
                handle_domain_event.delay(event.to_dict())
    """

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        raise NotImplementedError

    def publish_batch(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.publish(event)


class Clock(Protocol):
    """Returns the current time as an aware datetime."""

    def __call__(self) -> datetime:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

"""
Unit of Work - Django implementation.

Wraps one ``transaction.atomic()`` block opened at begin and closed at
commit or rollback, so it nests as a savepoint when an outer atomic
block is already active (request-level atomicity, test transactions).

Responsibilities:
- Open/close the transaction
- Map database conflicts (serialization failures, lock timeouts,
  unique violations) to ConcurrencyError so ``UnitOfWork.run`` retries
- Publish queued events only after a successful commit
"""

from typing import List, Optional
import logging

from django.db import DEFAULT_DB_ALIAS, IntegrityError, OperationalError, transaction

from src.core.shared.events import DomainEvent
from src.core.shared.exceptions import ConcurrencyError
from src.core.shared.interfaces import EventPublisher, UnitOfWork

logger = logging.getLogger(__name__)


class _Rollback(Exception):
    """Passed to the atomic block to make it roll back."""


class DjangoUnitOfWork(UnitOfWork):
    """
    Django implementation of the Unit of Work.

    Example:
        with DjangoUnitOfWork(event_publisher) as uow:
            ticket_repo.save(ticket)
            uow.publish_event(TicketScannedEvent(...))
        # committed, event published

    Example with retries:
        uow.run(lambda uow: purchase(uow), max_attempts=5)
    """

    def __init__(
        self,
        event_publisher: Optional[EventPublisher] = None,
        using: str = DEFAULT_DB_ALIAS,
    ):
        super().__init__()
        self._event_publisher = event_publisher
        self._using = using
        self._atomic = None
        self._committed = False
        self._rolled_back = False

    def _begin_transaction(self) -> None:
        self._atomic = transaction.atomic(using=self._using)
        self._atomic.__enter__()
        self._committed = False
        self._rolled_back = False
        logger.debug("Transaction started")

    def commit(self) -> None:
        """
        Commit and publish queued events.

        Raises:
            ConcurrencyError: If the database rejected the commit
                because of a concurrent transaction
        """
        if self._atomic is None:
            return

        atomic, self._atomic = self._atomic, None
        try:
            atomic.__exit__(None, None, None)
        except (OperationalError, IntegrityError) as exc:
            self.clear_events()
            self._rolled_back = True
            raise ConcurrencyError(f"Commit rejected: {exc}", cause=exc)

        self._committed = True
        logger.debug("Transaction committed")
        self._publish_events()

    def rollback(self) -> None:
        """Discard the transaction and its queued events (idempotent)."""
        self.clear_events()
        if self._atomic is None:
            return

        atomic, self._atomic = self._atomic, None
        try:
            atomic.__exit__(_Rollback, _Rollback(), None)
        finally:
            self._rolled_back = True
            logger.debug("Transaction rolled back")

    def _publish_events(self) -> None:
        events: List[DomainEvent] = self.collect_events()
        self.clear_events()
        for event in events:
            logger.info(f"Publishing event: {event.event_type} for aggregate {event.aggregate_id}")
            if self._event_publisher:
                try:
                    self._event_publisher.publish(event)
                except Exception as e:
                    # Committed state stands; projections can be rebuilt
                    logger.error(f"Failed to publish event {event.event_type}: {e}")

    @property
    def is_committed(self) -> bool:
        return self._committed

    @property
    def is_rolled_back(self) -> bool:
        return self._rolled_back

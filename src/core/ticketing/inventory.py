"""
InventoryLedger - the event's ticket counter.

Reads the event for update, decides whether one more ticket can be
sold, and records the sale with a compare-and-set on the counter value
read earlier in the same transaction.
"""

from datetime import datetime
import logging

from src.core.shared.exceptions import BusinessRuleViolationError, EntityNotFoundError
from src.core.shared.result import Failure, Result, Success

from .entities import EventEntity
from .ports import EventRepository


logger = logging.getLogger(__name__)

SOLD_OUT_MESSAGE = "No tickets available for this event"
EVENT_PASSED_MESSAGE = "Cannot purchase tickets for an event that has passed"


class InventoryLedger:
    """
    Inventory operations of the purchase transaction.

    Example:
        ledger = InventoryLedger(event_repo)
        loaded = ledger.load(event_id)
        if loaded.is_success:
            event = loaded.value
            if ledger.check_availability(event, now).is_success:
                ledger.record_sale(event)
    """

    def __init__(self, event_repo: EventRepository):
        self.event_repo = event_repo

    def load(self, event_id: str) -> Result:
        """
        Read the event for update.

        Returns:
            Success(EventEntity), or Failure(EntityNotFoundError)
        """
        event = self.event_repo.get_for_update(event_id)
        if event is None:
            return Failure(EntityNotFoundError("Event not found", "Event", event_id))
        return Success(event)

    def check_availability(self, event: EventEntity, now: datetime) -> Result:
        """
        Check that one more ticket can be sold at ``now``.

        Returns:
            Success(available ticket count), or Failure(BusinessRuleViolationError)
            when the event is sold out or has already started
        """
        if event.is_sold_out:
            return Failure(BusinessRuleViolationError(SOLD_OUT_MESSAGE, rule="sold_out"))
        if event.has_started(now):
            return Failure(BusinessRuleViolationError(EVENT_PASSED_MESSAGE, rule="event_passed"))
        return Success(event.available_tickets)

    def record_sale(self, event: EventEntity) -> EventEntity:
        """
        Increment ``tickets_sold`` by exactly one.

        Raises:
            ConcurrencyError: If the counter moved since ``load``
        """
        event.tickets_sold = self.event_repo.increment_tickets_sold(event.id, event.tickets_sold)
        logger.debug(f"Event {event.id}: {event.tickets_sold}/{event.max_tickets} sold")
        return event

"""
Domain events of the ticketing domain.

Published after commit; consumed by the event-stats projection
(``src.adapters.django_app.events.handlers``).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from src.core.shared.events import DomainEvent


@dataclass
class TicketDomainEvent(DomainEvent):
    """Base for events whose aggregate is a Ticket."""

    ticketed_event_id: str = ""
    user_id: str = ""

    @property
    def aggregate_type(self) -> str:
        return "Ticket"


@dataclass
class TicketPurchasedEvent(TicketDomainEvent):
    ticket_number: str = ""
    amount: Decimal = Decimal("0")


@dataclass
class TicketScannedEvent(TicketDomainEvent):
    scanned_by: str = ""


@dataclass
class TicketCancelledEvent(TicketDomainEvent):
    reason: Optional[str] = None


@dataclass
class TicketRefundedEvent(TicketDomainEvent):
    amount: Decimal = Decimal("0")


@dataclass
class TicketDeletedEvent(TicketDomainEvent):
    deleted_by: str = ""


@dataclass
class TicketTransferredEvent(TicketDomainEvent):
    """``user_id`` is the new owner."""

    transferred_from: str = ""

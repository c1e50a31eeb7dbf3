"""
Entities of the ticketing domain.

Entities:
- EventEntity: a ticketed event with its inventory counter
- TicketEntity: a purchased ticket and its lifecycle
- TicketStatus: lifecycle states and allowed transitions
- FinancialTransactionEntity: append-only audit record of a purchase
- UserAccount: a registered user, as seen by ticket transfers

Business rules kept here:
- ``0 <= tickets_sold <= max_tickets``
- Ticket status transitions never return to CONFIRMED
- Prices are Decimal end to end
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from src.core.shared.exceptions import BusinessRuleViolationError, ValidationError


class TicketStatus(Enum):
    """
    Lifecycle of a ticket.

    State flow:
        CONFIRMED → USED        (scan)
        CONFIRMED → CANCELLED   (owner or admin)
        CONFIRMED | USED → REFUNDED (admin)
        any → DELETED           (soft delete, admin)

    Nothing returns to CONFIRMED; buying again after a cancellation
    creates a new ticket.
    """

    CONFIRMED = "confirmed"
    USED = "used"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    DELETED = "deleted"

    @classmethod
    def from_string(cls, value: str) -> "TicketStatus":
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid ticket status: {value}")

    def can_transition_to(self, target: "TicketStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    TicketStatus.CONFIRMED: {
        TicketStatus.USED,
        TicketStatus.CANCELLED,
        TicketStatus.REFUNDED,
        TicketStatus.DELETED,
    },
    TicketStatus.USED: {TicketStatus.REFUNDED, TicketStatus.DELETED},
    TicketStatus.CANCELLED: {TicketStatus.DELETED},
    TicketStatus.REFUNDED: {TicketStatus.DELETED},
    TicketStatus.DELETED: set(),
}


@dataclass
class EventEntity:
    """
    A ticketed event.

    Only the purchase transaction changes ``tickets_sold``, and only by
    one per successful purchase.

    Attributes:
        id: Event identifier
        name: Display name
        max_tickets: Capacity
        tickets_sold: Running counter of sold tickets
        price: Price of one ticket
        venue: Free text venue name
        venue_id: Normalized venue reference (may be missing on legacy data)
        start_time: Scheduled start (falls back to the legacy ``date`` field)
        end_time: Scheduled end
        status: Derived display status (active / soldOut / past)
    """

    id: str
    name: str
    max_tickets: int
    tickets_sold: int = 0
    price: Decimal = Decimal("0")
    venue: Optional[str] = None
    venue_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[str] = None

    def __post_init__(self):
        if self.max_tickets < 0:
            raise ValidationError("max_tickets cannot be negative", field="max_tickets")
        if not 0 <= self.tickets_sold <= self.max_tickets:
            raise ValidationError(
                f"tickets_sold must be between 0 and {self.max_tickets}",
                field="tickets_sold",
            )

    @property
    def available_tickets(self) -> int:
        return self.max_tickets - self.tickets_sold

    @property
    def is_sold_out(self) -> bool:
        return self.available_tickets < 1

    def has_started(self, now: datetime) -> bool:
        return self.start_time is not None and self.start_time <= now

    def is_on_day(self, now: datetime) -> bool:
        return self.start_time is not None and self.start_time.date() == now.date()


@dataclass
class TicketEntity:
    """
    A purchased ticket.

    Stored twice (root collection and per-purchaser mirror); both copies
    always hold the same data.

    Attributes:
        id: Authoritative ticket identifier (UUID)
        event_id: Event the ticket admits to
        user_id: Purchaser
        ticket_number: Human readable number (display only)
        total_price: Price paid
        status: Lifecycle state
        qr_code: Signed QR payload
    """

    id: str
    event_id: str
    user_id: str
    ticket_number: str
    event_name: str
    total_price: Decimal
    purchase_date: datetime
    venue: Optional[str] = None
    venue_id: Optional[str] = None
    start_time: Optional[datetime] = None
    status: TicketStatus = TicketStatus.CONFIRMED
    qr_code: str = ""
    used_at: Optional[datetime] = None
    scanned_by: Optional[str] = None
    scanned_by_email: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    transferred_from: Optional[str] = None
    transferred_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @classmethod
    def issue(
        cls,
        event: EventEntity,
        user_id: str,
        ticket_number: str,
        purchase_date: datetime,
        ticket_id: Optional[str] = None,
    ) -> "TicketEntity":
        """
        Create a confirmed ticket for ``event``.

        The QR payload is attached afterwards by the issuer, once the
        ticket id is known.
        """
        return cls(
            id=ticket_id or str(uuid.uuid4()),
            event_id=event.id,
            user_id=user_id,
            ticket_number=ticket_number,
            event_name=event.name,
            venue=event.venue,
            venue_id=event.venue_id,
            start_time=event.start_time,
            total_price=event.price,
            purchase_date=purchase_date,
        )

    def _transition(self, target: TicketStatus) -> None:
        if not self.status.can_transition_to(target):
            raise BusinessRuleViolationError(
                f"Cannot change ticket from {self.status.value} to {target.value}",
                rule="ticket_status_transition",
            )
        self.status = target

    def mark_used(self, scanned_by: str, now: datetime, scanned_by_email: Optional[str] = None) -> None:
        self._transition(TicketStatus.USED)
        self.used_at = now
        self.scanned_by = scanned_by
        self.scanned_by_email = scanned_by_email

    def cancel(self, now: datetime, reason: Optional[str] = None) -> None:
        self._transition(TicketStatus.CANCELLED)
        self.cancelled_at = now
        self.cancel_reason = reason

    def refund(self, now: datetime, amount: Optional[Decimal] = None) -> None:
        """
        Refund the ticket (full price unless ``amount`` is given).

        Raises:
            BusinessRuleViolationError: If the ticket is not confirmed/used
                or the amount exceeds the price paid
        """
        amount = self.total_price if amount is None else Decimal(amount)
        if not amount.is_finite() or amount < 0 or amount > self.total_price:
            raise BusinessRuleViolationError(
                "Refund amount must be between 0 and the price paid",
                rule="refund_amount",
            )
        self._transition(TicketStatus.REFUNDED)
        self.refunded_at = now
        self.refund_amount = amount

    def check_transferable(self) -> None:
        """
        Raises:
            BusinessRuleViolationError: If the ticket is not confirmed or was already used
        """
        if self.status != TicketStatus.CONFIRMED:
            raise BusinessRuleViolationError(
                f"Cannot transfer ticket with status: {self.status.value}",
                rule="ticket_transfer",
            )
        if self.used_at is not None:
            raise BusinessRuleViolationError("Cannot transfer a used ticket", rule="ticket_transfer")

    def transfer_to(self, recipient_id: str, now: datetime) -> None:
        """
        Hand the ticket to another user; the status stays CONFIRMED.

        Raises:
            BusinessRuleViolationError: If the ticket cannot be transferred
            ValidationError: If the recipient is the current owner
        """
        self.check_transferable()
        if recipient_id == self.user_id:
            raise ValidationError("Cannot transfer ticket to yourself", field="recipientEmail")
        self.transferred_from = self.user_id
        self.transferred_at = now
        self.user_id = recipient_id

    def soft_delete(self, now: datetime) -> None:
        self._transition(TicketStatus.DELETED)
        self.deleted_at = now

    @property
    def is_confirmed(self) -> bool:
        return self.status == TicketStatus.CONFIRMED

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TicketEntity):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True)
class FinancialTransactionEntity:
    """
    Audit record written once per successful purchase. Never mutated.
    """

    id: str
    user_id: str
    event_id: str
    ticket_id: str
    amount: Decimal
    timestamp: datetime
    type: str = "ticket_purchase"
    status: str = "completed"

    @classmethod
    def for_purchase(cls, ticket: TicketEntity, now: datetime) -> "FinancialTransactionEntity":
        return cls(
            id=str(uuid.uuid4()),
            user_id=ticket.user_id,
            event_id=ticket.event_id,
            ticket_id=ticket.id,
            amount=ticket.total_price,
            timestamp=now,
        )


@dataclass(frozen=True)
class UserAccount:
    """A registered user; transfers look recipients up by e-mail."""

    uid: str
    email: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.email

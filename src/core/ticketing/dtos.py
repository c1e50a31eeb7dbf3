"""
Data Transfer Objects of the ticketing domain.

Input DTOs carry validated request data into the use cases; output
DTOs shape what leaves them. ``to_response_dict`` produces the camelCase
JSON the mobile clients expect.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .entities import EventEntity, TicketEntity


PURCHASE_SUCCESS_MESSAGE = "Ticket purchased successfully!"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# INPUT DTOs
# =============================================================================

@dataclass(frozen=True)
class PurchaseTicketInputDTO:
    """
    Input of the purchase transaction.

    Attributes:
        event_id: Event to buy a ticket for
    """

    event_id: str


@dataclass(frozen=True)
class ScanTicketInputDTO:
    """
    Attributes:
        ticket_id: Ticket presented at the door
        qr_code_data: Raw QR payload read by the scanner (optional)
    """

    ticket_id: str
    qr_code_data: Optional[str] = None


@dataclass(frozen=True)
class CancelTicketInputDTO:
    ticket_id: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class RefundTicketInputDTO:
    ticket_id: str
    amount: Optional[Decimal] = None


@dataclass(frozen=True)
class DeleteTicketInputDTO:
    ticket_id: str


@dataclass(frozen=True)
class TransferTicketInputDTO:
    """
    Attributes:
        ticket_id: Ticket to hand over
        recipient_email: E-mail of the registered user receiving it
    """

    ticket_id: str
    recipient_email: str


@dataclass(frozen=True)
class CheckUserTicketInputDTO:
    event_id: str


@dataclass(frozen=True)
class ScanHistoryInputDTO:
    """
    Attributes:
        limit: Maximum number of scans returned
        since: Only scans at or after this time
        until: Only scans at or before this time
    """

    limit: int = 50
    since: Optional[datetime] = None
    until: Optional[datetime] = None


# =============================================================================
# OUTPUT DTOs
# =============================================================================

@dataclass(frozen=True)
class PurchaseOutputDTO:
    """
    Result of a successful purchase.

    Attributes:
        ticket_id: Authoritative ticket identifier
        ticket_number: Human readable number
        qr_code: Signed QR payload
        total_price: Price paid
        event_name: Event display name
        venue: Venue display name
    """

    ticket_id: str
    ticket_number: str
    qr_code: str
    total_price: Decimal
    event_name: str
    venue: Optional[str]
    message: str = PURCHASE_SUCCESS_MESSAGE

    @classmethod
    def from_entity(cls, ticket: TicketEntity, event: EventEntity) -> "PurchaseOutputDTO":
        return cls(
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            qr_code=ticket.qr_code,
            total_price=ticket.total_price,
            event_name=event.name,
            venue=event.venue,
        )

    def to_response_dict(self) -> dict:
        return {
            "success": True,
            "ticketId": self.ticket_id,
            "totalPrice": float(self.total_price),
            "qrCode": self.qr_code,
            "ticketNumber": self.ticket_number,
            "message": self.message,
            "eventName": self.event_name,
            "venue": self.venue,
        }


@dataclass(frozen=True)
class TicketOutputDTO:
    """Ticket as returned by the lifecycle endpoints."""

    id: str
    event_id: str
    user_id: str
    ticket_number: str
    event_name: str
    venue: Optional[str]
    total_price: Decimal
    status: str
    purchase_date: datetime
    start_time: Optional[datetime] = None
    used_at: Optional[datetime] = None
    scanned_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    transferred_from: Optional[str] = None
    transferred_at: Optional[datetime] = None
    qr_code: Optional[str] = None

    @classmethod
    def from_entity(cls, ticket: TicketEntity) -> "TicketOutputDTO":
        return cls(
            id=ticket.id,
            event_id=ticket.event_id,
            user_id=ticket.user_id,
            ticket_number=ticket.ticket_number,
            event_name=ticket.event_name,
            venue=ticket.venue,
            total_price=ticket.total_price,
            status=ticket.status.value,
            purchase_date=ticket.purchase_date,
            start_time=ticket.start_time,
            used_at=ticket.used_at,
            scanned_by=ticket.scanned_by,
            cancelled_at=ticket.cancelled_at,
            refunded_at=ticket.refunded_at,
            refund_amount=ticket.refund_amount,
            transferred_from=ticket.transferred_from,
            transferred_at=ticket.transferred_at,
            qr_code=ticket.qr_code or None,
        )

    def to_response_dict(self) -> dict:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "userId": self.user_id,
            "ticketNumber": self.ticket_number,
            "eventName": self.event_name,
            "venue": self.venue,
            "totalPrice": float(self.total_price),
            "status": self.status,
            "purchaseDate": _iso(self.purchase_date),
            "startTime": _iso(self.start_time),
            "usedAt": _iso(self.used_at),
            "scannedBy": self.scanned_by,
            "cancelledAt": _iso(self.cancelled_at),
            "refundedAt": _iso(self.refunded_at),
            "refundAmount": float(self.refund_amount) if self.refund_amount is not None else None,
            "transferredFrom": self.transferred_from,
            "transferredAt": _iso(self.transferred_at),
            "qrCode": self.qr_code,
        }


@dataclass(frozen=True)
class ScanOutputDTO:
    """
    Outcome of a scan.

    ``success`` is False for tickets that were found but cannot be
    admitted (already used, cancelled, wrong day).
    """

    success: bool
    message: str
    ticket: TicketOutputDTO

    def to_response_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "ticket": self.ticket.to_response_dict(),
        }


@dataclass(frozen=True)
class TransferOutputDTO:
    recipient_email: str
    recipient_name: str
    sender_name: str
    ticket: TicketOutputDTO

    def to_response_dict(self) -> dict:
        return {
            "success": True,
            "message": f"Ticket successfully transferred to {self.recipient_email}",
            "recipientName": self.recipient_name,
            "senderName": self.sender_name,
            "ticket": self.ticket.to_response_dict(),
        }


@dataclass(frozen=True)
class UserTicketCheckDTO:
    has_ticket: bool
    ticket_id: Optional[str] = None

    def to_response_dict(self) -> dict:
        return {"hasTicket": self.has_ticket, "ticketId": self.ticket_id}


@dataclass(frozen=True)
class ScanRecordDTO:
    """One entry of a scanner's history."""

    ticket_id: str
    event_name: str
    venue: Optional[str]
    ticket_number: str
    scanned_at: Optional[datetime]
    user_id: str

    @classmethod
    def from_entity(cls, ticket: TicketEntity) -> "ScanRecordDTO":
        return cls(
            ticket_id=ticket.id,
            event_name=ticket.event_name,
            venue=ticket.venue,
            ticket_number=ticket.ticket_number,
            scanned_at=ticket.used_at,
            user_id=ticket.user_id,
        )

    def to_response_dict(self) -> dict:
        return {
            "ticketId": self.ticket_id,
            "eventName": self.event_name,
            "venue": self.venue,
            "ticketNumber": self.ticket_number,
            "scannedAt": _iso(self.scanned_at),
            "userId": self.user_id,
        }


@dataclass(frozen=True)
class ScanHistoryOutputDTO:
    scanner_id: str
    scans: List[ScanRecordDTO]

    def to_response_dict(self) -> dict:
        return {
            "success": True,
            "scans": [scan.to_response_dict() for scan in self.scans],
            "count": len(self.scans),
            "scannerId": self.scanner_id,
        }

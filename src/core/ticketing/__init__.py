"""
Ticketing domain - the purchase transaction and the ticket lifecycle.

Contents:
- Entities (EventEntity, TicketEntity, TicketStatus, FinancialTransactionEntity, UserAccount)
- InventoryLedger, TicketIssuer, QRSecurityCodec
- Use Cases (PurchaseTicket, ScanTicket, CancelTicket, RefundTicket, DeleteTicket,
  TransferTicket, CheckUserTicket, ListUserTickets, ScanHistory)
- Domain Events (TicketPurchased, TicketScanned, TicketCancelled, TicketRefunded,
  TicketTransferred)
- Ports (repository interfaces and in-memory implementations)

Domain guarantees:
- Never more tickets sold than the event capacity
- At most one confirmed ticket per (event, user)
- Ticket, mirror, counter and audit record committed together
- QR payloads carry an HMAC signature
"""

from .entities import EventEntity, TicketEntity, TicketStatus, FinancialTransactionEntity, UserAccount
from .events import (
    TicketPurchasedEvent,
    TicketScannedEvent,
    TicketCancelledEvent,
    TicketRefundedEvent,
    TicketDeletedEvent,
    TicketTransferredEvent,
)
from .dtos import (
    PurchaseTicketInputDTO,
    PurchaseOutputDTO,
    ScanTicketInputDTO,
    ScanOutputDTO,
    CancelTicketInputDTO,
    RefundTicketInputDTO,
    DeleteTicketInputDTO,
    TransferTicketInputDTO,
    TransferOutputDTO,
    CheckUserTicketInputDTO,
    UserTicketCheckDTO,
    ScanHistoryInputDTO,
    ScanHistoryOutputDTO,
    ScanRecordDTO,
    TicketOutputDTO,
)
from .inventory import InventoryLedger
from .issuer import TicketIssuer, TicketNumberGenerator
from .qr_codec import QRSecurityCodec, QRPayload
from .ports import EventRepository, TicketRepository, FinancialTransactionRepository, UserDirectory
from .use_cases import (
    PurchaseTicketService,
    ScanTicketService,
    CancelTicketService,
    RefundTicketService,
    DeleteTicketService,
    TransferTicketService,
    CheckUserTicketService,
    ListUserTicketsService,
    ScanHistoryService,
)

__all__ = [
    # Entities
    "EventEntity",
    "TicketEntity",
    "TicketStatus",
    "FinancialTransactionEntity",
    "UserAccount",
    # Events
    "TicketPurchasedEvent",
    "TicketScannedEvent",
    "TicketCancelledEvent",
    "TicketRefundedEvent",
    "TicketDeletedEvent",
    "TicketTransferredEvent",
    # DTOs
    "PurchaseTicketInputDTO",
    "PurchaseOutputDTO",
    "ScanTicketInputDTO",
    "ScanOutputDTO",
    "CancelTicketInputDTO",
    "RefundTicketInputDTO",
    "DeleteTicketInputDTO",
    "TransferTicketInputDTO",
    "TransferOutputDTO",
    "CheckUserTicketInputDTO",
    "UserTicketCheckDTO",
    "ScanHistoryInputDTO",
    "ScanHistoryOutputDTO",
    "ScanRecordDTO",
    "TicketOutputDTO",
    # Components
    "InventoryLedger",
    "TicketIssuer",
    "TicketNumberGenerator",
    "QRSecurityCodec",
    "QRPayload",
    # Ports
    "EventRepository",
    "TicketRepository",
    "FinancialTransactionRepository",
    "UserDirectory",
    # Use Cases
    "PurchaseTicketService",
    "ScanTicketService",
    "CancelTicketService",
    "RefundTicketService",
    "DeleteTicketService",
    "TransferTicketService",
    "CheckUserTicketService",
    "ListUserTicketsService",
    "ScanHistoryService",
]

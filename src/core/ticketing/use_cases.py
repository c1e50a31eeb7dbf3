"""
Use Cases (Application Services) of the ticketing domain.

Implemented use cases:
- PurchaseTicketService: the purchase transaction
- ScanTicketService: validate a ticket at the door
- CancelTicketService: owner or venue admin cancels a ticket
- RefundTicketService: venue admin refunds a ticket
- DeleteTicketService: site admin soft deletes a ticket
- TransferTicketService: owner hands a ticket to another registered user
- CheckUserTicketService: does the caller hold a confirmed ticket for an event
- ListUserTicketsService: the caller's tickets, from the mirror
- ScanHistoryService: tickets scanned by the calling scanner

Every ``execute`` returns a ``Result``. Expected refusals (not found,
sold out, wrong role...) come back as ``Failure`` and leave no writes
behind; unexpected errors are logged and reported as
``InternalError`` with a generic message.
"""

from datetime import datetime
from typing import Callable, Optional
import logging

from src.core.identity.claims import CallerClaims
from src.core.identity.permissions import (
    require_scanner,
    require_site_admin,
    require_venue_access,
)
from src.core.shared.exceptions import (
    AlreadyExistsError,
    EntityNotFoundError,
    InternalError,
    PermissionDeniedError,
    UnauthenticatedError,
    ValidationError,
)
from src.core.shared.interfaces import UnitOfWork, utc_now
from src.core.shared.result import Failure, Result, Success, attempt

from .dtos import (
    CancelTicketInputDTO,
    CheckUserTicketInputDTO,
    DeleteTicketInputDTO,
    PurchaseOutputDTO,
    PurchaseTicketInputDTO,
    RefundTicketInputDTO,
    ScanHistoryInputDTO,
    ScanHistoryOutputDTO,
    ScanOutputDTO,
    ScanRecordDTO,
    ScanTicketInputDTO,
    TicketOutputDTO,
    TransferOutputDTO,
    TransferTicketInputDTO,
    UserTicketCheckDTO,
)
from .entities import EventEntity, FinancialTransactionEntity, TicketEntity, TicketStatus
from .events import (
    TicketCancelledEvent,
    TicketDeletedEvent,
    TicketPurchasedEvent,
    TicketRefundedEvent,
    TicketScannedEvent,
    TicketTransferredEvent,
)
from .inventory import InventoryLedger
from .issuer import TicketIssuer
from .ports import EventRepository, FinancialTransactionRepository, TicketRepository, UserDirectory
from .qr_codec import QRSecurityCodec


logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
MAX_SCAN_HISTORY_LIMIT = 500
NO_RECIPIENT_MESSAGE = "No user found with that email address. The recipient must have a Burner account."


def _required_id(value, message: str, field: str) -> Result:
    if not isinstance(value, str) or not value.strip():
        return Failure(ValidationError(message, field=field))
    return Success(value.strip())


class PurchaseTicketService:
    """
    Use Case: buy one ticket for an event.

    Flow (one unit of work, retried on conflicts):
    1. Read the event for update (NotFound)
    2. Refuse a second confirmed ticket for the same user (FailedPrecondition)
    3. Refuse sold out or already started events (FailedPrecondition)
    4. Mint the ticket, its number and its signed QR payload
    5. Write root ticket + mirror, increment the counter, append the audit record
    6. Queue TicketPurchasedEvent (published after commit)

    Attributes:
        inventory: InventoryLedger over the event repository
        issuer: TicketIssuer over the ticket repository
        transaction_repo: Financial audit trail
        uow: Unit of Work
        clock: Returns the current time
        max_attempts: Attempts before a conflict becomes an internal error

    Example:
        service = PurchaseTicketService(inventory, issuer, transaction_repo, uow)
        result = service.execute(claims, PurchaseTicketInputDTO(event_id="e1"))
        if result.is_success:
            print(result.value.ticket_number)
    """

    def __init__(
        self,
        inventory: InventoryLedger,
        issuer: TicketIssuer,
        transaction_repo: FinancialTransactionRepository,
        uow: UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.inventory = inventory
        self.issuer = issuer
        self.transaction_repo = transaction_repo
        self.uow = uow
        self.clock = clock
        self.max_attempts = max_attempts

    def execute(self, claims: Optional[CallerClaims], input_dto: PurchaseTicketInputDTO) -> Result:
        """
        Run the purchase transaction.

        Args:
            claims: Authenticated caller, or None
            input_dto: Event to purchase

        Returns:
            Success(PurchaseOutputDTO) or Failure with one of
            Unauthenticated, InvalidArgument, NotFound, FailedPrecondition, Internal
        """
        if claims is None:
            return Failure(UnauthenticatedError())

        checked = _required_id(input_dto.event_id, "Valid event ID is required", "eventId")
        if checked.is_failure:
            return checked
        event_id = checked.value

        logger.info(f"Purchase requested: user={claims.uid} event={event_id}")
        try:
            result = self.uow.run(
                lambda uow: self._purchase(uow, claims.uid, event_id),
                max_attempts=self.max_attempts,
            )
        except Exception as exc:
            logger.exception(f"Purchase failed: user={claims.uid} event={event_id}: {exc}")
            return Failure(InternalError("Purchase failed", cause=exc))

        if result.is_success:
            logger.info(
                f"Ticket {result.value.ticket_id} purchased: user={claims.uid} event={event_id}"
            )
        else:
            logger.info(f"Purchase refused: user={claims.uid} event={event_id}: {result.message}")
        return result

    def _purchase(self, uow: UnitOfWork, user_id: str, event_id: str) -> Result:
        now = self.clock()

        loaded = self.inventory.load(event_id)
        if loaded.is_failure:
            return loaded
        event: EventEntity = loaded.value

        not_duplicate = self.issuer.check_not_duplicate(event.id, user_id)
        if not_duplicate.is_failure:
            return not_duplicate

        available = self.inventory.check_availability(event, now)
        if available.is_failure:
            return available

        ticket = self.issuer.issue(event, user_id, now)
        self.inventory.record_sale(event)
        self.transaction_repo.append(FinancialTransactionEntity.for_purchase(ticket, now))

        uow.publish_event(
            TicketPurchasedEvent(
                aggregate_id=ticket.id,
                ticketed_event_id=event.id,
                user_id=user_id,
                ticket_number=ticket.ticket_number,
                amount=ticket.total_price,
            )
        )
        return Success(PurchaseOutputDTO.from_entity(ticket, event))


class _TicketCommandService:
    """
    Shared plumbing of the ticket lifecycle services.

    Subclasses implement ``_apply`` which runs inside the unit of work
    and returns a Result.
    """

    failure_message = "Ticket operation failed"

    def __init__(
        self,
        ticket_repo: TicketRepository,
        uow: UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.clock = clock

    def execute(self, claims: Optional[CallerClaims], input_dto) -> Result:
        if claims is None:
            return Failure(UnauthenticatedError())

        checked = _required_id(input_dto.ticket_id, "Ticket ID is required", "ticketId")
        if checked.is_failure:
            return checked
        ticket_id = checked.value

        valid = self._check_input(input_dto)
        if valid.is_failure:
            return valid

        try:
            return self.uow.run(lambda uow: self._run(uow, claims, ticket_id, input_dto))
        except Exception as exc:
            logger.exception(f"{self.failure_message}: ticket={ticket_id}: {exc}")
            return Failure(InternalError(self.failure_message, cause=exc))

    def _run(self, uow: UnitOfWork, claims: CallerClaims, ticket_id: str, input_dto) -> Result:
        ticket = self.ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            return Failure(EntityNotFoundError("Ticket not found", "Ticket", ticket_id))
        return self._apply(uow, claims, ticket, input_dto)

    def _check_input(self, input_dto) -> Result:
        return Success(None)

    def _apply(self, uow: UnitOfWork, claims: CallerClaims, ticket: TicketEntity, input_dto) -> Result:
        raise NotImplementedError


class ScanTicketService(_TicketCommandService):
    """
    Use Case: validate a ticket at the door.

    Requires a site admin or an active scanner of the ticket's venue.
    When the scanner sends the QR payload it must decode, belong to the
    ticket and carry a valid signature.

    Tickets that cannot be admitted (used, cancelled, refunded, not
    today) produce ``Success(ScanOutputDTO(success=False, ...))`` so the
    scanner can show why; only a valid confirmed ticket is marked used.
    """

    failure_message = "Failed to scan ticket"

    def __init__(
        self,
        ticket_repo: TicketRepository,
        event_repo: EventRepository,
        qr_codec: QRSecurityCodec,
        uow: UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(ticket_repo, uow, clock)
        self.event_repo = event_repo
        self.qr_codec = qr_codec

    def _apply(self, uow, claims, ticket, input_dto: ScanTicketInputDTO) -> Result:
        allowed = attempt(require_scanner, claims, ticket.venue_id)
        if allowed.is_failure:
            return allowed

        if input_dto.qr_code_data:
            checked = self._check_qr_code(input_dto.qr_code_data, ticket)
            if checked.is_failure:
                return checked

        refusal = self._refusal_reason(ticket)
        if refusal:
            return Success(ScanOutputDTO(False, refusal, TicketOutputDTO.from_entity(ticket)))

        now = self.clock()
        event = self.event_repo.get_by_id(ticket.event_id)
        start_time = event.start_time if event and event.start_time else ticket.start_time
        if start_time is None or start_time.date() != now.date():
            return Success(
                ScanOutputDTO(False, "Event is not scheduled for today", TicketOutputDTO.from_entity(ticket))
            )

        ticket.mark_used(claims.uid, now, scanned_by_email=claims.email)
        self.ticket_repo.save(ticket)
        uow.publish_event(
            TicketScannedEvent(
                aggregate_id=ticket.id,
                ticketed_event_id=ticket.event_id,
                user_id=ticket.user_id,
                scanned_by=claims.uid,
            )
        )
        logger.info(f"Ticket {ticket.id} scanned by {claims.uid}")
        return Success(ScanOutputDTO(True, "Ticket validated successfully", TicketOutputDTO.from_entity(ticket)))

    def _check_qr_code(self, qr_code_data: str, ticket: TicketEntity) -> Result:
        decoded = attempt(self.qr_codec.decode, qr_code_data)
        if decoded.is_failure:
            return decoded
        if decoded.value.ticket_id != ticket.id:
            return Failure(ValidationError("QR code does not match ticket", field="qrCodeData"))
        return attempt(self.qr_codec.verify_payload, decoded.value)

    @staticmethod
    def _refusal_reason(ticket: TicketEntity) -> Optional[str]:
        if ticket.status == TicketStatus.USED:
            return "Ticket already used"
        if ticket.status == TicketStatus.CANCELLED:
            return "Ticket has been cancelled"
        if ticket.status == TicketStatus.REFUNDED:
            return "Ticket has been refunded"
        if ticket.status == TicketStatus.DELETED:
            return "Ticket is no longer valid"
        return None


class CancelTicketService(_TicketCommandService):
    """
    Use Case: cancel a confirmed ticket.

    Allowed for the purchaser and for admins with access to the venue.
    The event counter is not decremented; the (event, user) slot is
    released, so the same user may buy again.
    """

    failure_message = "Failed to cancel ticket"

    def _apply(self, uow, claims, ticket, input_dto: CancelTicketInputDTO) -> Result:
        if ticket.user_id != claims.uid:
            allowed = attempt(require_venue_access, claims, ticket.venue_id)
            if allowed.is_failure:
                return allowed

        changed = attempt(ticket.cancel, self.clock(), input_dto.reason)
        if changed.is_failure:
            return changed

        self.ticket_repo.save(ticket)
        uow.publish_event(
            TicketCancelledEvent(
                aggregate_id=ticket.id,
                ticketed_event_id=ticket.event_id,
                user_id=ticket.user_id,
                reason=input_dto.reason,
            )
        )
        return Success(TicketOutputDTO.from_entity(ticket))


class RefundTicketService(_TicketCommandService):
    """Use Case: refund a confirmed or used ticket (venue admins and above)."""

    failure_message = "Failed to refund ticket"

    def _apply(self, uow, claims, ticket, input_dto: RefundTicketInputDTO) -> Result:
        allowed = attempt(require_venue_access, claims, ticket.venue_id)
        if allowed.is_failure:
            return allowed

        changed = attempt(ticket.refund, self.clock(), input_dto.amount)
        if changed.is_failure:
            return changed

        self.ticket_repo.save(ticket)
        uow.publish_event(
            TicketRefundedEvent(
                aggregate_id=ticket.id,
                ticketed_event_id=ticket.event_id,
                user_id=ticket.user_id,
                amount=ticket.refund_amount,
            )
        )
        return Success(TicketOutputDTO.from_entity(ticket))


class DeleteTicketService(_TicketCommandService):
    """Use Case: soft delete (status ``deleted``), site admins only."""

    failure_message = "Failed to delete ticket"

    def _apply(self, uow, claims, ticket, input_dto: DeleteTicketInputDTO) -> Result:
        allowed = attempt(require_site_admin, claims)
        if allowed.is_failure:
            return allowed

        changed = attempt(ticket.soft_delete, self.clock())
        if changed.is_failure:
            return changed

        self.ticket_repo.save(ticket)
        uow.publish_event(
            TicketDeletedEvent(
                aggregate_id=ticket.id,
                ticketed_event_id=ticket.event_id,
                user_id=ticket.user_id,
                deleted_by=claims.uid,
            )
        )
        return Success(TicketOutputDTO.from_entity(ticket))


class TransferTicketService(_TicketCommandService):
    """
    Use Case: the owner hands a confirmed, unused ticket to another user.

    The recipient is looked up by e-mail and must not already hold a
    confirmed ticket for the event. Root and mirror copies change owner
    in the same unit of work, and the QR payload is signed again for
    the new owner.
    """

    failure_message = "Failed to transfer ticket"

    def __init__(
        self,
        ticket_repo: TicketRepository,
        user_directory: UserDirectory,
        qr_codec: QRSecurityCodec,
        uow: UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(ticket_repo, uow, clock)
        self.user_directory = user_directory
        self.qr_codec = qr_codec

    def _check_input(self, input_dto: TransferTicketInputDTO) -> Result:
        email = input_dto.recipient_email
        if not isinstance(email, str) or not email.strip():
            return Failure(ValidationError("Valid recipient email is required", field="recipientEmail"))
        return Success(None)

    def _apply(self, uow, claims, ticket, input_dto: TransferTicketInputDTO) -> Result:
        if ticket.user_id != claims.uid:
            return Failure(PermissionDeniedError("You don't own this ticket"))

        transferable = attempt(ticket.check_transferable)
        if transferable.is_failure:
            return transferable

        email = input_dto.recipient_email.strip().lower()
        recipient = self.user_directory.find_by_email(email)
        if recipient is None:
            return Failure(EntityNotFoundError(NO_RECIPIENT_MESSAGE, "User", email))

        sender_id = ticket.user_id
        moved = attempt(ticket.transfer_to, recipient.uid, self.clock())
        if moved.is_failure:
            return moved

        held = self.ticket_repo.find_confirmed(ticket.event_id, recipient.uid)
        if held is not None and held.id != ticket.id:
            return Failure(AlreadyExistsError("This user already has a ticket for this event"))

        ticket.qr_code = self.qr_codec.encode(ticket.id, ticket.event_id, recipient.uid, ticket.ticket_number)
        self.ticket_repo.save(ticket)
        uow.publish_event(
            TicketTransferredEvent(
                aggregate_id=ticket.id,
                ticketed_event_id=ticket.event_id,
                user_id=recipient.uid,
                transferred_from=sender_id,
            )
        )
        logger.info(f"Ticket {ticket.id} transferred from {sender_id} to {recipient.uid}")

        sender = self.user_directory.get(sender_id)
        return Success(
            TransferOutputDTO(
                recipient_email=email,
                recipient_name=recipient.label,
                sender_name=sender.label if sender else (claims.email or "A user"),
                ticket=TicketOutputDTO.from_entity(ticket),
            )
        )


class CheckUserTicketService:
    """Use Case: whether the caller holds a confirmed ticket for an event."""

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(self, claims: Optional[CallerClaims], input_dto: CheckUserTicketInputDTO) -> Result:
        if claims is None:
            return Failure(UnauthenticatedError())

        checked = _required_id(input_dto.event_id, "Valid event ID is required", "eventId")
        if checked.is_failure:
            return checked

        ticket = self.ticket_repo.find_confirmed(checked.value, claims.uid)
        return Success(UserTicketCheckDTO(ticket is not None, ticket.id if ticket else None))


class ListUserTicketsService:
    """
    Use Case: the caller's tickets, latest purchase first.

    Reads the purchaser mirror. Legacy copies without a QR payload get
    one signed on the fly (not stored).
    """

    def __init__(self, ticket_repo: TicketRepository, qr_codec: QRSecurityCodec):
        self.ticket_repo = ticket_repo
        self.qr_codec = qr_codec

    def execute(self, claims: Optional[CallerClaims]) -> Result:
        if claims is None:
            return Failure(UnauthenticatedError())

        try:
            tickets = self.ticket_repo.list_user_copies(claims.uid)
            for ticket in tickets:
                if not ticket.qr_code:
                    ticket.qr_code = self.qr_codec.encode(
                        ticket.id, ticket.event_id, ticket.user_id, ticket.ticket_number
                    )
        except Exception as exc:
            logger.exception(f"Failed to fetch tickets of {claims.uid}: {exc}")
            return Failure(InternalError("Failed to fetch tickets", cause=exc))

        return Success([TicketOutputDTO.from_entity(ticket) for ticket in tickets])


class ScanHistoryService:
    """Use Case: tickets scanned by the caller (active scanners and site admins)."""

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(self, claims: Optional[CallerClaims], input_dto: ScanHistoryInputDTO) -> Result:
        allowed = attempt(require_scanner, claims)
        if allowed.is_failure:
            return allowed

        limit = input_dto.limit
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_SCAN_HISTORY_LIMIT:
            return Failure(
                ValidationError(f"limit must be between 1 and {MAX_SCAN_HISTORY_LIMIT}", field="limit")
            )
        if input_dto.since and input_dto.until and input_dto.since > input_dto.until:
            return Failure(ValidationError("startDate must not be after endDate", field="startDate"))

        scans = self.ticket_repo.list_scanned_by(claims.uid, input_dto.since, input_dto.until, limit)
        return Success(ScanHistoryOutputDTO(claims.uid, [ScanRecordDTO.from_entity(t) for t in scans]))

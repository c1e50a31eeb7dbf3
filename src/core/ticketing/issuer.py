"""
TicketIssuer - duplicate guard and ticket minting.

- TicketNumberGenerator: human readable ``TKT`` numbers
- TicketIssuer: enforces one confirmed ticket per (event, user) and
  writes new tickets to the root collection and the purchaser mirror
"""

from datetime import datetime
from typing import Callable, Optional
import logging
import random
import re
import time
import uuid

from src.core.shared.exceptions import BusinessRuleViolationError
from src.core.shared.result import Failure, Result, Success

from .entities import EventEntity, TicketEntity
from .ports import TicketRepository
from .qr_codec import QRSecurityCodec


logger = logging.getLogger(__name__)

DUPLICATE_TICKET_MESSAGE = "You already have a ticket for this event"

TICKET_NUMBER_PATTERN = re.compile(r"^TKT(\d{6})(\d{3})(\d{2})$")


class TicketNumberGenerator:
    """
    Generates ``TKT`` + 6 time digits + 3 random digits + 2 checksum digits.

    The checksum is ``(time digits + random digits) % 100``. Numbers are a
    display aid; uniqueness is not guaranteed and the checksum is never
    used to accept or reject a ticket.

    Example:
        TicketNumberGenerator().generate()  # "TKT12345604217"
    """

    def __init__(
        self,
        millis: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._millis = millis or (lambda: int(time.time() * 1000))
        self._rng = rng or random.Random()

    def generate(self) -> str:
        timestamp = int(str(self._millis())[-6:])
        suffix = self._rng.randint(0, 999)
        checksum = (timestamp + suffix) % 100
        return f"TKT{timestamp:06d}{suffix:03d}{checksum:02d}"

    @staticmethod
    def checksum_matches(ticket_number: str) -> bool:
        """Informational consistency check of a generated number."""
        match = TICKET_NUMBER_PATTERN.match(ticket_number or "")
        if not match:
            return False
        timestamp, suffix, checksum = (int(part) for part in match.groups())
        return (timestamp + suffix) % 100 == checksum


class TicketIssuer:
    """
    Mints tickets for the purchase transaction.

    Attributes:
        ticket_repo: Writes root and mirror copies
        qr_codec: Signs the QR payload
        number_generator: Produces ticket numbers

    Example:
        issuer = TicketIssuer(ticket_repo, QRSecurityCodec(secret))
        if issuer.check_not_duplicate(event.id, user_id).is_success:
            ticket = issuer.issue(event, user_id, now)
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        qr_codec: QRSecurityCodec,
        number_generator: Optional[TicketNumberGenerator] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.ticket_repo = ticket_repo
        self.qr_codec = qr_codec
        self.number_generator = number_generator or TicketNumberGenerator()
        self._id_factory = id_factory

    def check_not_duplicate(self, event_id: str, user_id: str) -> Result:
        """
        Fail when ``user_id`` already holds a confirmed ticket for ``event_id``.

        Returns:
            Success(None) or Failure(BusinessRuleViolationError)
        """
        existing = self.ticket_repo.find_confirmed(event_id, user_id)
        if existing is not None:
            return Failure(BusinessRuleViolationError(DUPLICATE_TICKET_MESSAGE, rule="duplicate_ticket"))
        return Success(None)

    def issue(self, event: EventEntity, user_id: str, now: datetime) -> TicketEntity:
        """
        Create, sign and store a confirmed ticket.

        Raises:
            QRSigningError: If the QR payload cannot be signed
        """
        ticket = TicketEntity.issue(
            event=event,
            user_id=user_id,
            ticket_number=self.number_generator.generate(),
            purchase_date=now,
            ticket_id=self._id_factory(),
        )
        ticket.qr_code = self.qr_codec.encode(ticket.id, event.id, user_id, ticket.ticket_number)
        self.ticket_repo.add(ticket)
        logger.debug(f"Issued ticket {ticket.id} ({ticket.ticket_number}) for event {event.id}")
        return ticket

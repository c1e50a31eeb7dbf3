"""
QRSecurityCodec - signed QR payloads for tickets.

Payload (JSON text):
    {
        "type": "EVENT_TICKET",
        "ticketId": ..., "eventId": ..., "userId": ...,
        "ticketNumber": ...,
        "issuedAt": <epoch milliseconds>,
        "version": "1.0",
        "signature": <16 hex chars>
    }

``signature`` is HMAC-SHA256 over ``"ticketId:eventId:userId"`` with
the server secret, hex encoded and truncated. A scanner holding the
same secret can validate a payload offline.

Signing never degrades to an unsigned payload: a missing secret or a
hashing failure raises ``QRSigningError``.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
import hashlib
import hmac
import json

from src.core.shared.exceptions import InvalidSignatureError, QRSigningError


PAYLOAD_TYPE = "EVENT_TICKET"
PAYLOAD_VERSION = "1.0"
DEFAULT_SIGNATURE_LENGTH = 16

_REQUIRED_FIELDS = ("ticketId", "eventId", "userId", "signature")


@dataclass(frozen=True)
class QRPayload:
    """Decoded QR payload."""

    ticket_id: str
    event_id: str
    user_id: str
    ticket_number: Optional[str]
    issued_at: Optional[int]
    version: str
    signature: str


class QRSecurityCodec:
    """
    Encodes and verifies ticket QR payloads.

    Attributes:
        signature_length: Number of hex characters kept from the HMAC digest

    Example:
        codec = QRSecurityCodec(secret=settings.QR_SECRET)
        text = codec.encode(ticket.id, event.id, user_id, ticket.ticket_number)
        payload = codec.verify(text)  # raises InvalidSignatureError if tampered
    """

    def __init__(
        self,
        secret: Optional[str],
        signature_length: int = DEFAULT_SIGNATURE_LENGTH,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._secret = secret or ""
        self.signature_length = signature_length
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def sign(self, ticket_id: str, event_id: str, user_id: str) -> str:
        """
        Compute the truncated signature for the three identifiers.

        Raises:
            QRSigningError: If no secret is configured or hashing fails
        """
        if not self._secret:
            raise QRSigningError("QR signing secret is not configured")
        message = f"{ticket_id}:{event_id}:{user_id}"
        try:
            digest = hmac.new(
                self._secret.encode("utf-8"),
                message.encode("utf-8"),
                hashlib.sha256,
            ).hexdigest()
        except (TypeError, ValueError) as exc:
            raise QRSigningError("Failed to sign QR payload", cause=exc)
        return digest[: self.signature_length]

    def encode(self, ticket_id: str, event_id: str, user_id: str, ticket_number: str) -> str:
        """
        Build the signed payload text.

        Returns:
            JSON text to be rendered as a QR code

        Raises:
            QRSigningError: If the signature cannot be produced
        """
        signature = self.sign(ticket_id, event_id, user_id)
        issued_at = int(self._clock().timestamp() * 1000)
        return json.dumps(
            {
                "type": PAYLOAD_TYPE,
                "ticketId": ticket_id,
                "eventId": event_id,
                "userId": user_id,
                "ticketNumber": ticket_number,
                "issuedAt": issued_at,
                "version": PAYLOAD_VERSION,
                "signature": signature,
            },
            separators=(",", ":"),
        )

    def decode(self, text: str) -> QRPayload:
        """
        Parse payload text without checking the signature.

        Raises:
            InvalidSignatureError: If the text is not a ticket payload
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError):
            raise InvalidSignatureError("Invalid QR code format")

        if not isinstance(data, dict) or data.get("type") != PAYLOAD_TYPE:
            raise InvalidSignatureError("Invalid QR code format")
        for key in _REQUIRED_FIELDS:
            if not isinstance(data.get(key), str) or not data[key]:
                raise InvalidSignatureError("Invalid QR code format")

        return QRPayload(
            ticket_id=data["ticketId"],
            event_id=data["eventId"],
            user_id=data["userId"],
            ticket_number=data.get("ticketNumber"),
            issued_at=data.get("issuedAt"),
            version=data.get("version", PAYLOAD_VERSION),
            signature=data["signature"],
        )

    def verify_payload(self, payload: QRPayload) -> QRPayload:
        """
        Recompute the signature of a decoded payload.

        Raises:
            InvalidSignatureError: On mismatch
            QRSigningError: If no secret is configured
        """
        expected = self.sign(payload.ticket_id, payload.event_id, payload.user_id)
        if not hmac.compare_digest(expected.encode("utf-8"), payload.signature.encode("utf-8")):
            raise InvalidSignatureError()
        return payload

    def verify(self, text: str) -> QRPayload:
        """Decode ``text`` and verify its signature."""
        return self.verify_payload(self.decode(text))

"""
Domain Events.

Facts about something that already happened (``TicketPurchasedEvent``),
queued on the UnitOfWork and published only after commit, so no handler
ever sees an event of a rolled back transaction.

They cross the Celery broker as plain dicts (``to_dict``): the envelope
(id, type, aggregate, timestamp, version) plus the subclass fields under
``data``.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
import uuid

ENVELOPE_FIELDS = ("event_id", "aggregate_id", "occurred_at", "version")


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class DomainEvent(ABC):
    """
    Base of every domain event.

    Attributes:
        event_id: Unique id of this occurrence
        aggregate_id: Id of the record the event is about (required)
        occurred_at: UTC timestamp
        version: Payload schema version

    Subclasses add their fields and name the aggregate:

        @dataclass
        class TicketScannedEvent(DomainEvent):
            scanned_by: str = ""

            @property
            def aggregate_type(self) -> str:
                return "Ticket"
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    aggregate_id: str = ""
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    def __post_init__(self):
        if not self.aggregate_id:
            raise ValueError(f"{type(self).__name__} needs an aggregate_id")

    @property
    @abstractmethod
    def aggregate_type(self) -> str:
        ...

    @property
    def event_type(self) -> str:
        return type(self).__name__

    @property
    def data(self) -> Dict[str, Any]:
        """Fields added by the subclass, JSON safe."""
        return {
            key: _json_safe(value)
            for key, value in asdict(self).items()
            if key not in ENVELOPE_FIELDS
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "occurred_at": self.occurred_at.isoformat(),
            "version": self.version,
            "data": self.data,
        }

    def __repr__(self) -> str:
        return f"{self.event_type}(aggregate_id={self.aggregate_id}, event_id={self.event_id[:8]})"

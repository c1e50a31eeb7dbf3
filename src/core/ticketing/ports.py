"""
Ports (Interfaces) of the ticketing domain.

Repositories used by the purchase transaction and the ticket
lifecycle services. Every method is expected to run inside the
transaction opened by the UnitOfWork.

Ports:
- EventRepository: events and their inventory counter
- TicketRepository: tickets, always written to root and mirror together
- FinancialTransactionRepository: append-only audit trail
- UserDirectory: registered users, looked up by e-mail for transfers

In-memory implementations live at the bottom of the module; they keep
their records in an ``InMemoryDatastore`` so they share transactions
with ``InMemoryUnitOfWork``.
"""

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable
import copy

from src.core.shared.exceptions import ConcurrencyError, EntityNotFoundError
from src.core.shared.memory import InMemoryDatastore

from .entities import EventEntity, FinancialTransactionEntity, TicketEntity, TicketStatus, UserAccount


DEFAULT_SCAN_HISTORY_LIMIT = 50


@runtime_checkable
class EventRepository(Protocol):
    """
    Persistence of events.

    Implementations:
    - DjangoEventRepository (row lock + conditional UPDATE)
    - InMemoryEventRepository (tests)
    """

    def get_by_id(self, event_id: str) -> Optional[EventEntity]:
        ...

    def get_for_update(self, event_id: str) -> Optional[EventEntity]:
        """
        Read an event as part of a read-modify-write.

        Database implementations lock the row until the transaction ends.
        """
        ...

    def increment_tickets_sold(self, event_id: str, expected_sold: int) -> int:
        """
        Add one sale, but only if ``tickets_sold`` still equals ``expected_sold``.

        Args:
            event_id: Event to update
            expected_sold: Counter value read earlier in the transaction

        Returns:
            The new counter value

        Raises:
            ConcurrencyError: If the counter changed or capacity would be exceeded
        """
        ...

    def save(self, event: EventEntity) -> None:
        ...


@runtime_checkable
class TicketRepository(Protocol):
    """
    Persistence of tickets in the root collection and the mirror.

    ``add`` and ``save`` must write both copies in the current
    transaction.
    """

    def add(self, ticket: TicketEntity) -> None:
        ...

    def save(self, ticket: TicketEntity) -> None:
        ...

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        ...

    def get_user_copy(self, user_id: str, ticket_id: str) -> Optional[TicketEntity]:
        """Read the purchaser-scoped mirror copy."""
        ...

    def find_confirmed(self, event_id: str, user_id: str) -> Optional[TicketEntity]:
        ...

    def list_by_event(self, event_id: str) -> List[TicketEntity]:
        ...

    def list_user_copies(self, user_id: str) -> List[TicketEntity]:
        """Mirror copies of ``user_id``'s tickets, latest purchase first."""
        ...

    def list_scanned_by(
        self,
        scanner_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = DEFAULT_SCAN_HISTORY_LIMIT,
    ) -> List[TicketEntity]:
        """Tickets scanned by ``scanner_id``, most recent scan first."""
        ...


@runtime_checkable
class FinancialTransactionRepository(Protocol):
    """Append-only. There is deliberately no update or delete."""

    def append(self, record: FinancialTransactionEntity) -> None:
        ...

    def list_by_ticket(self, ticket_id: str) -> List[FinancialTransactionEntity]:
        ...


@runtime_checkable
class UserDirectory(Protocol):

    def get(self, uid: str) -> Optional[UserAccount]:
        ...

    def find_by_email(self, email: str) -> Optional[UserAccount]:
        """Case insensitive lookup; None when nobody registered ``email``."""
        ...


# =============================================================================
# In-memory implementations
# =============================================================================

class InMemoryEventRepository:
    """
    Event repository over an ``InMemoryDatastore``.

    Example:
        store = InMemoryDatastore()
        repo = InMemoryEventRepository(store)
        repo.save(EventEntity(id="e1", name="Gig", max_tickets=10))
    """

    collection_name = "events"

    def __init__(self, datastore: InMemoryDatastore):
        self.datastore = datastore

    @property
    def _events(self):
        return self.datastore.collection(self.collection_name)

    def get_by_id(self, event_id: str) -> Optional[EventEntity]:
        event = self._events.get(event_id)
        return copy.deepcopy(event) if event else None

    def get_for_update(self, event_id: str) -> Optional[EventEntity]:
        return self.get_by_id(event_id)

    def increment_tickets_sold(self, event_id: str, expected_sold: int) -> int:
        event = self._events.get(event_id)
        if event is None:
            raise EntityNotFoundError("Event not found", "Event", event_id)
        if event.tickets_sold != expected_sold or event.tickets_sold >= event.max_tickets:
            raise ConcurrencyError(f"Event {event_id} was modified by another transaction")
        event.tickets_sold += 1
        return event.tickets_sold

    def save(self, event: EventEntity) -> None:
        self._events[event.id] = copy.deepcopy(event)


class InMemoryTicketRepository:
    """Ticket repository writing root and mirror copies to the datastore."""

    def __init__(self, datastore: InMemoryDatastore):
        self.datastore = datastore

    @property
    def _tickets(self):
        return self.datastore.collection("tickets")

    @property
    def _user_tickets(self):
        return self.datastore.collection("user_tickets")

    def add(self, ticket: TicketEntity) -> None:
        self.save(ticket)

    def save(self, ticket: TicketEntity) -> None:
        self._tickets[ticket.id] = copy.deepcopy(ticket)
        # A transfer moves the mirror copy to the new owner
        for key in [k for k in self._user_tickets if k[1] == ticket.id and k[0] != ticket.user_id]:
            del self._user_tickets[key]
        self._user_tickets[(ticket.user_id, ticket.id)] = copy.deepcopy(ticket)

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        ticket = self._tickets.get(ticket_id)
        return copy.deepcopy(ticket) if ticket else None

    def get_user_copy(self, user_id: str, ticket_id: str) -> Optional[TicketEntity]:
        ticket = self._user_tickets.get((user_id, ticket_id))
        return copy.deepcopy(ticket) if ticket else None

    def find_confirmed(self, event_id: str, user_id: str) -> Optional[TicketEntity]:
        for ticket in self._tickets.values():
            if (
                ticket.event_id == event_id
                and ticket.user_id == user_id
                and ticket.status == TicketStatus.CONFIRMED
            ):
                return copy.deepcopy(ticket)
        return None

    def list_by_event(self, event_id: str) -> List[TicketEntity]:
        return [copy.deepcopy(t) for t in self._tickets.values() if t.event_id == event_id]

    def list_user_copies(self, user_id: str) -> List[TicketEntity]:
        copies = [copy.deepcopy(t) for (owner, _), t in self._user_tickets.items() if owner == user_id]
        return sorted(copies, key=lambda t: t.purchase_date, reverse=True)

    def list_scanned_by(self, scanner_id, since=None, until=None, limit=DEFAULT_SCAN_HISTORY_LIMIT):
        scanned = [
            copy.deepcopy(t)
            for t in self._tickets.values()
            if t.scanned_by == scanner_id
            and t.used_at is not None
            and (since is None or t.used_at >= since)
            and (until is None or t.used_at <= until)
        ]
        scanned.sort(key=lambda t: t.used_at, reverse=True)
        return scanned[:limit]


class InMemoryFinancialTransactionRepository:

    def __init__(self, datastore: InMemoryDatastore):
        self.datastore = datastore

    @property
    def _records(self):
        return self.datastore.collection("financial_transactions")

    def append(self, record: FinancialTransactionEntity) -> None:
        self._records[record.id] = record

    def list_by_ticket(self, ticket_id: str) -> List[FinancialTransactionEntity]:
        return [r for r in self._records.values() if r.ticket_id == ticket_id]

    def list_all(self) -> List[FinancialTransactionEntity]:
        return list(self._records.values())


class InMemoryUserDirectory:
    """
    Users keyed by uid in the datastore's ``users`` collection.

    Example:
        directory = InMemoryUserDirectory(store)
        directory.add(UserAccount(uid="u2", email="friend@example.com"))
    """

    def __init__(self, datastore: InMemoryDatastore):
        self.datastore = datastore

    @property
    def _users(self):
        return self.datastore.collection("users")

    def add(self, account: UserAccount) -> None:
        self._users[account.uid] = account

    def get(self, uid: str) -> Optional[UserAccount]:
        return self._users.get(uid)

    def find_by_email(self, email: str) -> Optional[UserAccount]:
        wanted = email.strip().lower()
        for account in self._users.values():
            if account.email.lower() == wanted:
                return account
        return None

"""
Fixtures of the ticketing core tests.

Everything runs over one InMemoryDatastore, so services, repositories
and the Unit of Work see the same data just like they would see the
same database.
"""

import pytest

from src.core.identity.claims import CallerClaims, Scanner, SiteAdmin, User, VenueAdmin
from src.core.shared.memory import InMemoryDatastore, InMemoryUnitOfWork
from src.core.ticketing.entities import EventEntity, UserAccount
from src.core.ticketing.inventory import InventoryLedger
from src.core.ticketing.issuer import TicketIssuer
from src.core.ticketing.ports import (
    InMemoryEventRepository,
    InMemoryFinancialTransactionRepository,
    InMemoryTicketRepository,
    InMemoryUserDirectory,
)
from src.core.ticketing.qr_codec import QRSecurityCodec
from src.core.ticketing.use_cases import (
    CancelTicketService,
    CheckUserTicketService,
    DeleteTicketService,
    ListUserTicketsService,
    PurchaseTicketService,
    RefundTicketService,
    ScanHistoryService,
    ScanTicketService,
    TransferTicketService,
)


class RecordingPublisher:
    """Collects every published event."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)

    def publish_batch(self, events):
        self.events.extend(events)

    def types(self):
        return [event.event_type for event in self.events]


@pytest.fixture
def datastore():
    return InMemoryDatastore()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def event_repo(datastore):
    return InMemoryEventRepository(datastore)


@pytest.fixture
def ticket_repo(datastore):
    return InMemoryTicketRepository(datastore)


@pytest.fixture
def transaction_repo(datastore):
    return InMemoryFinancialTransactionRepository(datastore)


@pytest.fixture
def qr_codec(clock):
    return QRSecurityCodec(secret="test-qr-secret", clock=clock)


@pytest.fixture
def make_uow(datastore, publisher):
    return lambda: InMemoryUnitOfWork(datastore, publisher)


@pytest.fixture
def purchase_service(event_repo, ticket_repo, transaction_repo, qr_codec, make_uow, clock):
    def build(codec=qr_codec, uow=None):
        return PurchaseTicketService(
            inventory=InventoryLedger(event_repo),
            issuer=TicketIssuer(ticket_repo, codec),
            transaction_repo=transaction_repo,
            uow=uow or make_uow(),
            clock=clock,
        )
    return build


@pytest.fixture
def scan_service(ticket_repo, event_repo, qr_codec, make_uow, clock):
    return ScanTicketService(ticket_repo, event_repo, qr_codec, make_uow(), clock)


@pytest.fixture
def cancel_service(ticket_repo, make_uow, clock):
    return CancelTicketService(ticket_repo, make_uow(), clock)


@pytest.fixture
def refund_service(ticket_repo, make_uow, clock):
    return RefundTicketService(ticket_repo, make_uow(), clock)


@pytest.fixture
def delete_service(ticket_repo, make_uow, clock):
    return DeleteTicketService(ticket_repo, make_uow(), clock)


@pytest.fixture
def user_directory(datastore):
    directory = InMemoryUserDirectory(datastore)
    directory.add(UserAccount(uid="u1", email="sam@example.com", display_name="Sam"))
    directory.add(UserAccount(uid="u2", email="Alex@Example.com", display_name="Alex"))
    directory.add(UserAccount(uid="u3", email="kim@example.com"))
    return directory


@pytest.fixture
def transfer_service(ticket_repo, user_directory, qr_codec, make_uow, clock):
    return TransferTicketService(ticket_repo, user_directory, qr_codec, make_uow(), clock)


@pytest.fixture
def check_service(ticket_repo):
    return CheckUserTicketService(ticket_repo)


@pytest.fixture
def my_tickets_service(ticket_repo, qr_codec):
    return ListUserTicketsService(ticket_repo, qr_codec)


@pytest.fixture
def scan_history_service(ticket_repo):
    return ScanHistoryService(ticket_repo)


@pytest.fixture
def add_event(event_repo, future_start, ticket_price):
    def add(event_id="e1", max_tickets=100, tickets_sold=0, **overrides):
        fields = dict(
            id=event_id,
            name="Friday Jazz Night",
            max_tickets=max_tickets,
            tickets_sold=tickets_sold,
            price=ticket_price,
            venue="The Grand Hall",
            venue_id="the_grand_hall",
            start_time=future_start,
        )
        fields.update(overrides)
        event = EventEntity(**fields)
        event_repo.save(event)
        return event
    return add


@pytest.fixture
def user():
    return CallerClaims(uid="u1", role=User())


@pytest.fixture
def other_user():
    return CallerClaims(uid="u2", role=User())


@pytest.fixture
def site_admin():
    return CallerClaims(uid="admin", role=SiteAdmin())


@pytest.fixture
def venue_admin():
    return CallerClaims(uid="va", role=VenueAdmin("the_grand_hall"))


@pytest.fixture
def scanner():
    return CallerClaims(uid="sc", role=Scanner("the_grand_hall"), email="door@grandhall.io")

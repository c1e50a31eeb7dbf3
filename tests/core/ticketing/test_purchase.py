"""
Unit tests for PurchaseTicketService (the purchase transaction).

Strategy:
- In-memory repositories over one InMemoryDatastore
- InMemoryUnitOfWork (serialized transactions with snapshot rollback)
- Checks the result, the stored state and the published events

Coverage:
- Success path: ticket, mirror, counter, audit record, event
- Refusals: unauthenticated, invalid id, not found, duplicate, sold out, passed
- Atomicity when a step fails after writes
- Concurrent buyers never oversell
"""

from datetime import timedelta
from decimal import Decimal
import json
import threading

import pytest

from src.core.identity.claims import CallerClaims, User
from src.core.shared.exceptions import ConcurrencyError, ErrorKind
from src.core.shared.memory import InMemoryUnitOfWork
from src.core.ticketing.dtos import (
    PURCHASE_SUCCESS_MESSAGE,
    CancelTicketInputDTO,
    PurchaseTicketInputDTO,
)
from src.core.ticketing.entities import TicketStatus
from src.core.ticketing.qr_codec import QRSecurityCodec
from src.core.ticketing.use_cases import CancelTicketService


def buy(service, claims, event_id="e1"):
    return service.execute(claims, PurchaseTicketInputDTO(event_id=event_id))


class TestPurchaseSuccess:

    def test_returns_ticket_details(self, purchase_service, add_event, user):
        add_event()

        result = buy(purchase_service(), user)

        assert result.is_success
        output = result.value
        assert output.total_price == Decimal("25.00")
        assert output.event_name == "Friday Jazz Night"
        assert output.venue == "The Grand Hall"
        assert output.ticket_number.startswith("TKT")
        assert output.message == PURCHASE_SUCCESS_MESSAGE

    def test_response_dict(self, purchase_service, add_event, user):
        add_event()

        response = buy(purchase_service(), user).value.to_response_dict()

        assert response["success"] is True
        assert response["totalPrice"] == 25.0
        assert set(response) == {
            "success", "ticketId", "totalPrice", "qrCode", "ticketNumber",
            "message", "eventName", "venue",
        }

    def test_writes_every_record(self, purchase_service, add_event, user, event_repo, ticket_repo, transaction_repo):
        add_event(max_tickets=10, tickets_sold=4)

        output = buy(purchase_service(), user).value

        assert event_repo.get_by_id("e1").tickets_sold == 5
        root = ticket_repo.get_by_id(output.ticket_id)
        mirror = ticket_repo.get_user_copy("u1", output.ticket_id)
        assert root.status == TicketStatus.CONFIRMED
        assert mirror.qr_code == root.qr_code == output.qr_code
        [record] = transaction_repo.list_by_ticket(output.ticket_id)
        assert record.amount == Decimal("25.00")
        assert record.user_id == "u1"

    def test_qr_code_is_signed_for_the_ticket(self, purchase_service, add_event, user, qr_codec):
        add_event()

        output = buy(purchase_service(), user).value
        payload = qr_codec.verify(output.qr_code)

        assert payload.ticket_id == output.ticket_id
        assert payload.event_id == "e1"
        assert payload.user_id == "u1"
        assert json.loads(output.qr_code)["ticketNumber"] == output.ticket_number

    def test_publishes_purchase_event_after_commit(self, purchase_service, add_event, user, publisher):
        add_event()

        output = buy(purchase_service(), user).value

        assert publisher.types() == ["TicketPurchasedEvent"]
        event = publisher.events[0]
        assert event.aggregate_id == output.ticket_id
        assert event.ticketed_event_id == "e1"
        assert event.amount == Decimal("25.00")

    def test_event_without_start_time_is_purchasable(self, purchase_service, add_event, user):
        add_event(start_time=None)
        assert buy(purchase_service(), user).is_success

    def test_event_id_is_trimmed(self, purchase_service, add_event, user):
        add_event()
        assert buy(purchase_service(), user, event_id="  e1 ").is_success


class TestPurchaseRefusals:

    def test_unauthenticated(self, purchase_service, add_event):
        add_event()
        assert buy(purchase_service(), None).kind == ErrorKind.UNAUTHENTICATED

    @pytest.mark.parametrize("event_id", [None, "", "   ", 42])
    def test_invalid_event_id(self, purchase_service, user, event_id):
        result = buy(purchase_service(), user, event_id=event_id)

        assert result.kind == ErrorKind.INVALID_ARGUMENT
        assert result.message == "Valid event ID is required"

    def test_event_not_found(self, purchase_service, user):
        result = buy(purchase_service(), user, event_id="missing")

        assert result.kind == ErrorKind.NOT_FOUND
        assert result.message == "Event not found"

    def test_duplicate_purchase(self, purchase_service, add_event, user, event_repo):
        add_event()
        service = purchase_service()
        buy(service, user)

        result = buy(service, user)

        assert result.kind == ErrorKind.FAILED_PRECONDITION
        assert result.message == "You already have a ticket for this event"
        assert event_repo.get_by_id("e1").tickets_sold == 1

    def test_sold_out(self, purchase_service, add_event, user, publisher):
        add_event(max_tickets=3, tickets_sold=3)

        result = buy(purchase_service(), user)

        assert result.message == "No tickets available for this event"
        assert publisher.events == []

    def test_zero_capacity(self, purchase_service, add_event, user):
        add_event(max_tickets=0)
        assert buy(purchase_service(), user).message == "No tickets available for this event"

    def test_event_passed(self, purchase_service, add_event, user, now):
        add_event(start_time=now - timedelta(minutes=5))

        result = buy(purchase_service(), user)

        assert result.message == "Cannot purchase tickets for an event that has passed"

    def test_duplicate_is_checked_before_capacity(self, purchase_service, add_event, user, event_repo):
        add_event(max_tickets=1)
        buy(purchase_service(), user)

        assert buy(purchase_service(), user).message == "You already have a ticket for this event"

    def test_purchase_again_after_cancel(self, purchase_service, add_event, user, ticket_repo, make_uow, clock, event_repo):
        add_event()
        first = buy(purchase_service(), user).value
        CancelTicketService(ticket_repo, make_uow(), clock).execute(
            user, CancelTicketInputDTO(ticket_id=first.ticket_id)
        )

        second = buy(purchase_service(), user)

        assert second.is_success
        assert second.value.ticket_id != first.ticket_id
        assert event_repo.get_by_id("e1").tickets_sold == 2


class TestPurchaseAtomicity:

    def test_signing_failure_leaves_no_writes(self, purchase_service, add_event, user, datastore, event_repo, publisher):
        add_event(max_tickets=5, tickets_sold=1)

        result = buy(purchase_service(codec=QRSecurityCodec(secret="")), user)

        assert result.kind == ErrorKind.INTERNAL
        assert result.message == "Purchase failed"
        assert event_repo.get_by_id("e1").tickets_sold == 1
        assert datastore.collection("tickets") == {}
        assert datastore.collection("user_tickets") == {}
        assert datastore.collection("financial_transactions") == {}
        assert publisher.events == []

    def test_audit_failure_rolls_back_ticket_and_counter(
        self, event_repo, ticket_repo, qr_codec, make_uow, clock, add_event, user, datastore
    ):
        from src.core.ticketing.inventory import InventoryLedger
        from src.core.ticketing.issuer import TicketIssuer
        from src.core.ticketing.use_cases import PurchaseTicketService

        class BrokenAuditTrail:
            def append(self, record):
                raise RuntimeError("disk full")

        add_event(max_tickets=5)
        service = PurchaseTicketService(
            InventoryLedger(event_repo),
            TicketIssuer(ticket_repo, qr_codec),
            BrokenAuditTrail(),
            make_uow(),
            clock,
        )

        result = buy(service, user)

        assert result.kind == ErrorKind.INTERNAL
        assert event_repo.get_by_id("e1").tickets_sold == 0
        assert datastore.collection("tickets") == {}

    def test_persistent_conflict_becomes_internal_error(
        self, ticket_repo, transaction_repo, qr_codec, make_uow, clock, add_event, user, event_repo
    ):
        from src.core.ticketing.inventory import InventoryLedger
        from src.core.ticketing.issuer import TicketIssuer
        from src.core.ticketing.use_cases import PurchaseTicketService

        class AlwaysStaleEvents:
            def __init__(self, inner):
                self.inner = inner
                self.calls = 0

            def get_for_update(self, event_id):
                return self.inner.get_for_update(event_id)

            def increment_tickets_sold(self, event_id, expected_sold):
                self.calls += 1
                raise ConcurrencyError("stale")

        add_event()
        events = AlwaysStaleEvents(event_repo)
        service = PurchaseTicketService(
            InventoryLedger(events),
            TicketIssuer(ticket_repo, qr_codec),
            transaction_repo,
            make_uow(),
            clock,
            max_attempts=3,
        )

        result = buy(service, user)

        assert result.kind == ErrorKind.INTERNAL
        assert events.calls == 3
        assert ticket_repo.find_confirmed("e1", "u1") is None


class TestPurchaseConcurrency:

    def test_last_ticket_goes_to_exactly_one_buyer(self, purchase_service, add_event, user, other_user, event_repo):
        add_event(max_tickets=1)

        first = buy(purchase_service(), user)
        second = buy(purchase_service(), other_user)

        assert first.is_success
        assert second.message == "No tickets available for this event"
        assert event_repo.get_by_id("e1").tickets_sold == 1

    def test_threads_never_oversell(self, purchase_service, add_event, event_repo, datastore):
        capacity = 5
        buyers = 20
        add_event(max_tickets=capacity)
        results = []
        lock = threading.Lock()

        def worker(index):
            claims = CallerClaims(uid=f"buyer-{index}", role=User())
            result = buy(purchase_service(), claims)
            with lock:
                results.append(result)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(buyers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        successes = [r for r in results if r.is_success]
        assert len(successes) == capacity
        assert all(r.message == "No tickets available for this event" for r in results if r.is_failure)
        assert event_repo.get_by_id("e1").tickets_sold == capacity
        assert len(datastore.collection("tickets")) == capacity
        assert len(datastore.collection("financial_transactions")) == capacity

    def test_same_user_racing_gets_one_ticket(self, purchase_service, add_event, user, datastore):
        add_event(max_tickets=10)
        results = []

        threads = [
            threading.Thread(target=lambda: results.append(buy(purchase_service(), user)))
            for _ in range(5)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(1 for r in results if r.is_success) == 1
        assert len(datastore.collection("tickets")) == 1


class TestPurchaseScenario:

    def test_two_users_one_seat_left(self, purchase_service, add_event, event_repo, ticket_repo):
        """E1 has capacity 2 with one sold; U1 buys, U1 retries, U2 finds it sold out."""
        add_event("E1", max_tickets=2, tickets_sold=1, price=Decimal("40.00"))
        u1 = CallerClaims(uid="U1", role=User())
        u2 = CallerClaims(uid="U2", role=User())

        bought = buy(purchase_service(), u1, "E1")
        retry = buy(purchase_service(), u1, "E1")
        late = buy(purchase_service(), u2, "E1")

        assert bought.value.total_price == Decimal("40.00")
        assert retry.message == "You already have a ticket for this event"
        assert late.message == "No tickets available for this event"
        assert event_repo.get_by_id("E1").tickets_sold == 2
        assert [t.user_id for t in ticket_repo.list_by_event("E1")] == ["U1"]

    def test_shared_uow_instance_is_reusable(self, purchase_service, add_event, user, other_user, datastore, publisher):
        add_event()
        service = purchase_service(uow=InMemoryUnitOfWork(datastore, publisher))

        assert buy(service, user).is_success
        assert buy(service, other_user).is_success
        assert len(publisher.events) == 2

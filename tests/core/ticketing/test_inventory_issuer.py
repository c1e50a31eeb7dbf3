"""
Unit tests for InventoryLedger, TicketIssuer and TicketNumberGenerator.
"""

from datetime import timedelta
import random

import pytest

from src.core.shared.exceptions import ConcurrencyError, ErrorKind
from src.core.ticketing.entities import TicketStatus
from src.core.ticketing.inventory import EVENT_PASSED_MESSAGE, SOLD_OUT_MESSAGE, InventoryLedger
from src.core.ticketing.issuer import (
    DUPLICATE_TICKET_MESSAGE,
    TicketIssuer,
    TicketNumberGenerator,
)


# =============================================================================
# TicketNumberGenerator
# =============================================================================

class TestTicketNumberGenerator:

    def test_format_and_checksum(self):
        generator = TicketNumberGenerator(millis=lambda: 1718452800123, rng=random.Random(7))

        number = generator.generate()

        assert number.startswith("TKT800123")
        assert len(number) == 14
        assert TicketNumberGenerator.checksum_matches(number)

    def test_known_value(self):
        class FixedRandom:
            def randint(self, low, high):
                return 42

        number = TicketNumberGenerator(millis=lambda: 123456, rng=FixedRandom()).generate()

        assert number == "TKT12345604298"

    def test_short_timestamps_are_zero_padded(self):
        class FixedRandom:
            def randint(self, low, high):
                return 5

        assert TicketNumberGenerator(millis=lambda: 42, rng=FixedRandom()).generate() == "TKT00004200547"

    def test_checksum_mismatch(self):
        assert not TicketNumberGenerator.checksum_matches("TKT12345604200")
        assert not TicketNumberGenerator.checksum_matches("ABC")
        assert not TicketNumberGenerator.checksum_matches(None)


# =============================================================================
# InventoryLedger
# =============================================================================

class TestInventoryLedger:

    def test_load_missing_event(self, event_repo):
        result = InventoryLedger(event_repo).load("missing")

        assert result.kind == ErrorKind.NOT_FOUND
        assert result.message == "Event not found"

    def test_availability(self, event_repo, add_event, now):
        event = add_event(max_tickets=5, tickets_sold=2)

        assert InventoryLedger(event_repo).check_availability(event, now).value == 3

    def test_sold_out(self, event_repo, add_event, now):
        event = add_event(max_tickets=2, tickets_sold=2)

        result = InventoryLedger(event_repo).check_availability(event, now)

        assert result.kind == ErrorKind.FAILED_PRECONDITION
        assert result.message == SOLD_OUT_MESSAGE

    def test_event_passed(self, event_repo, add_event, now):
        event = add_event(start_time=now - timedelta(hours=1))

        result = InventoryLedger(event_repo).check_availability(event, now)

        assert result.message == EVENT_PASSED_MESSAGE

    def test_record_sale_increments_by_one(self, event_repo, add_event):
        event = add_event(max_tickets=5, tickets_sold=2)

        InventoryLedger(event_repo).record_sale(event)

        assert event.tickets_sold == 3
        assert event_repo.get_by_id("e1").tickets_sold == 3

    def test_stale_read_is_a_conflict(self, event_repo, add_event):
        event = add_event(max_tickets=5, tickets_sold=2)
        stale = event_repo.get_for_update("e1")
        InventoryLedger(event_repo).record_sale(event)

        with pytest.raises(ConcurrencyError):
            InventoryLedger(event_repo).record_sale(stale)
        assert event_repo.get_by_id("e1").tickets_sold == 3


# =============================================================================
# TicketIssuer
# =============================================================================

class TestTicketIssuer:

    def test_issue_writes_root_and_mirror(self, ticket_repo, qr_codec, add_event, now):
        event = add_event()
        issuer = TicketIssuer(ticket_repo, qr_codec, id_factory=lambda: "t1")

        ticket = issuer.issue(event, "u1", now)

        assert ticket.id == "t1"
        assert ticket.status == TicketStatus.CONFIRMED
        assert ticket_repo.get_by_id("t1") == ticket
        assert ticket_repo.get_user_copy("u1", "t1").qr_code == ticket.qr_code
        assert qr_codec.verify(ticket.qr_code).ticket_id == "t1"

    def test_duplicate_guard(self, ticket_repo, qr_codec, add_event, now):
        event = add_event()
        issuer = TicketIssuer(ticket_repo, qr_codec)
        issuer.issue(event, "u1", now)

        result = issuer.check_not_duplicate("e1", "u1")

        assert result.kind == ErrorKind.FAILED_PRECONDITION
        assert result.message == DUPLICATE_TICKET_MESSAGE
        assert issuer.check_not_duplicate("e1", "u2").is_success

    def test_cancelled_ticket_frees_the_slot(self, ticket_repo, qr_codec, add_event, now):
        event = add_event()
        issuer = TicketIssuer(ticket_repo, qr_codec)
        ticket = issuer.issue(event, "u1", now)
        ticket.cancel(now)
        ticket_repo.save(ticket)

        assert issuer.check_not_duplicate("e1", "u1").is_success

"""
Unit tests for Result values and the in-memory Unit of Work.
"""

from dataclasses import dataclass

import pytest

from src.core.shared.events import DomainEvent
from src.core.shared.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    ErrorKind,
    InternalError,
    ValidationError,
)
from src.core.shared.memory import InMemoryDatastore, InMemoryUnitOfWork
from src.core.shared.result import Failure, Success, attempt


@dataclass
class SomethingHappenedEvent(DomainEvent):

    @property
    def aggregate_type(self) -> str:
        return "Thing"


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish_batch(self, events):
        self.events.extend(events)


# =============================================================================
# Result
# =============================================================================

class TestResult:

    def test_success_unwrap(self):
        assert Success(3).unwrap() == 3

    def test_failure_exposes_kind_and_message(self):
        failure = Failure(BusinessRuleViolationError("Sold out"))

        assert failure.is_failure
        assert failure.kind == ErrorKind.FAILED_PRECONDITION
        assert failure.message == "Sold out"
        with pytest.raises(BusinessRuleViolationError):
            failure.unwrap()

    def test_attempt_captures_domain_errors(self):
        def invalid():
            raise ValidationError("bad")

        result = attempt(invalid)
        assert result.is_failure
        assert result.kind == ErrorKind.INVALID_ARGUMENT

    def test_attempt_lets_internal_errors_through(self):
        def broken():
            raise InternalError("boom")

        with pytest.raises(InternalError):
            attempt(broken)

    def test_http_status_of_kinds(self):
        assert ErrorKind.UNAUTHENTICATED.http_status == 401
        assert ErrorKind.PERMISSION_DENIED.http_status == 403
        assert ErrorKind.INVALID_ARGUMENT.http_status == 400
        assert ErrorKind.NOT_FOUND.http_status == 404
        assert ErrorKind.FAILED_PRECONDITION.http_status == 409
        assert ErrorKind.ALREADY_EXISTS.http_status == 409
        assert ErrorKind.INTERNAL.http_status == 500


# =============================================================================
# InMemoryUnitOfWork
# =============================================================================

class TestInMemoryUnitOfWork:

    def test_commit_publishes_events(self):
        publisher = RecordingPublisher()
        uow = InMemoryUnitOfWork(event_publisher=publisher)

        with uow:
            uow.publish_event(SomethingHappenedEvent(aggregate_id="t1"))

        assert uow.committed
        assert [e.aggregate_id for e in publisher.events] == ["t1"]

    def test_exception_rolls_back_writes_and_events(self):
        store = InMemoryDatastore()
        store.collection("things")["a"] = 1
        uow = InMemoryUnitOfWork(store)

        with pytest.raises(RuntimeError):
            with uow:
                store.collection("things")["a"] = 2
                uow.publish_event(SomethingHappenedEvent(aggregate_id="t1"))
                raise RuntimeError("boom")

        assert uow.rolled_back
        assert store.collection("things")["a"] == 1
        assert uow.published_events == []

    def test_run_rolls_back_on_failure(self):
        store = InMemoryDatastore()
        uow = InMemoryUnitOfWork(store)

        def work(uow):
            store.collection("things")["a"] = 1
            return Failure(BusinessRuleViolationError("nope"))

        result = uow.run(work)

        assert result.is_failure
        assert "a" not in store.collection("things")

    def test_run_retries_conflicts(self):
        calls = []

        def work(uow):
            calls.append(1)
            if len(calls) < 3:
                raise ConcurrencyError("conflict")
            return Success("done")

        result = InMemoryUnitOfWork().run(work, max_attempts=5)

        assert result.value == "done"
        assert len(calls) == 3

    def test_run_gives_up_after_max_attempts(self):
        def work(uow):
            raise ConcurrencyError("conflict")

        with pytest.raises(ConcurrencyError):
            InMemoryUnitOfWork().run(work, max_attempts=2)

    def test_rollback_is_idempotent(self):
        uow = InMemoryUnitOfWork()
        uow._begin_transaction()
        uow.rollback()
        uow.rollback()

        assert uow.rolled_back


# =============================================================================
# Domain events
# =============================================================================

class TestDomainEvent:

    def test_serialized_for_the_broker(self):
        from decimal import Decimal
        from src.core.ticketing.events import TicketPurchasedEvent

        event = TicketPurchasedEvent(
            aggregate_id="t1", ticketed_event_id="e1", user_id="u1",
            ticket_number="TKT1", amount=Decimal("25.00"),
        )

        payload = event.to_dict()

        assert payload["event_type"] == "TicketPurchasedEvent"
        assert payload["aggregate_type"] == "Ticket"
        assert payload["data"] == {
            "ticketed_event_id": "e1",
            "user_id": "u1",
            "ticket_number": "TKT1",
            "amount": "25.00",
        }

    def test_aggregate_id_is_required(self):
        with pytest.raises(ValueError):
            SomethingHappenedEvent()

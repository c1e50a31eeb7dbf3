"""
Django repositories of the ticketing domain.

Implement the ports of src/core/ticketing/ports.py (events, tickets,
audit trail, user directory) and src/core/data_migrations/ports.py
with the Django ORM. They are DRIVEN ADAPTERS: they never open
transactions of their own for use case writes, the UnitOfWork does.

Concurrency:
- get_for_update locks the event row (SELECT ... FOR UPDATE)
- increment_tickets_sold is a conditional UPDATE on the value read,
  so a stale read can never overwrite a newer counter
- the partial unique index on tickets rejects a second confirmed ticket
  for the same (event, user)
Both conflicts surface as ConcurrencyError, which makes the UnitOfWork
retry the whole purchase.
"""

from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Type
import logging

from django.db import IntegrityError, OperationalError, models, transaction
from django.db.models import F, Q

from src.core.data_migrations.batching import CREATE, WriteOp
from src.core.data_migrations.ports import Record
from src.core.shared.exceptions import ConcurrencyError, EntityNotFoundError, ValidationError
from src.core.ticketing.entities import (
    EventEntity,
    FinancialTransactionEntity,
    TicketEntity,
    TicketStatus,
    UserAccount,
)
from src.core.ticketing.ports import DEFAULT_SCAN_HISTORY_LIMIT

from .mappers import EventMapper, FinancialTransactionMapper, TicketMapper
from .models import (
    BookmarkModel,
    EventModel,
    EventStatsModel,
    FinancialTransactionModel,
    LegacyBookmarkModel,
    TicketModel,
    UserProfileModel,
    UserTicketModel,
    VenueModel,
)

logger = logging.getLogger(__name__)


class DjangoEventRepository:
    """
    Events over EventModel.

    Example:
        repo = DjangoEventRepository()
        event = repo.get_for_update("e1")
        repo.increment_tickets_sold("e1", expected_sold=event.tickets_sold)
    """

    def get_by_id(self, event_id: str) -> Optional[EventEntity]:
        model = EventModel.objects.filter(pk=event_id).first()
        return EventMapper.to_entity(model) if model else None

    def get_for_update(self, event_id: str) -> Optional[EventEntity]:
        try:
            model = EventModel.objects.select_for_update().filter(pk=event_id).first()
        except OperationalError as exc:
            raise ConcurrencyError(f"Could not lock event {event_id}", cause=exc)
        return EventMapper.to_entity(model) if model else None

    def increment_tickets_sold(self, event_id: str, expected_sold: int) -> int:
        try:
            updated = EventModel.objects.filter(
                pk=event_id,
                tickets_sold=expected_sold,
                tickets_sold__lt=F('max_tickets'),
            ).update(tickets_sold=F('tickets_sold') + 1)
        except OperationalError as exc:
            raise ConcurrencyError(f"Could not update inventory of event {event_id}", cause=exc)

        if updated == 0:
            logger.warning(f"Stale inventory for event {event_id} (expected {expected_sold})")
            raise ConcurrencyError(f"Event {event_id} was modified by another transaction")
        return expected_sold + 1

    def save(self, event: EventEntity) -> None:
        EventModel.objects.update_or_create(id=event.id, defaults=EventMapper.to_fields(event))


class DjangoTicketRepository:
    """
    Tickets over TicketModel (root) and UserTicketModel (mirror).

    Every write touches both tables in the caller's transaction.
    """

    def add(self, ticket: TicketEntity) -> None:
        fields = TicketMapper.to_fields(ticket)
        try:
            with transaction.atomic():
                TicketModel.objects.create(id=ticket.id, **fields)
                UserTicketModel.objects.create(id=ticket.id, **fields)
        except IntegrityError as exc:
            raise ConcurrencyError(
                f"Ticket for event {ticket.event_id} and user {ticket.user_id} already written",
                cause=exc,
            )
        logger.debug(f"Ticket {ticket.id} written to root and mirror")

    def save(self, ticket: TicketEntity) -> None:
        fields = TicketMapper.to_fields(ticket)
        try:
            with transaction.atomic():
                TicketModel.objects.update_or_create(id=ticket.id, defaults=fields)
                UserTicketModel.objects.update_or_create(id=ticket.id, defaults=fields)
        except IntegrityError as exc:
            # A transfer raced another confirmed ticket of the recipient
            raise ConcurrencyError(f"Ticket {ticket.id} conflicts with another ticket", cause=exc)

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        model = TicketModel.objects.filter(pk=ticket_id).first()
        return TicketMapper.to_entity(model) if model else None

    def get_user_copy(self, user_id: str, ticket_id: str) -> Optional[TicketEntity]:
        model = UserTicketModel.objects.filter(pk=ticket_id, user_id=user_id).first()
        return TicketMapper.to_entity(model) if model else None

    def find_confirmed(self, event_id: str, user_id: str) -> Optional[TicketEntity]:
        # Legacy rows carry no status; they count as confirmed until used
        legacy_confirmed = Q(status__isnull=True) & ~Q(is_used=True)
        model = (
            TicketModel.objects
            .filter(event_id=event_id, user_id=user_id)
            .filter(Q(status=TicketStatus.CONFIRMED.value) | legacy_confirmed)
            .first()
        )
        return TicketMapper.to_entity(model) if model else None

    def list_by_event(self, event_id: str) -> List[TicketEntity]:
        models_ = TicketModel.objects.filter(event_id=event_id).order_by('purchase_date')
        return TicketMapper.to_entity_list(models_)

    def list_user_copies(self, user_id: str) -> List[TicketEntity]:
        models_ = UserTicketModel.objects.filter(user_id=user_id).order_by(F('purchase_date').desc(nulls_last=True))
        return TicketMapper.to_entity_list(models_)

    def list_scanned_by(
        self,
        scanner_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = DEFAULT_SCAN_HISTORY_LIMIT,
    ) -> List[TicketEntity]:
        query = TicketModel.objects.filter(scanned_by=scanner_id, used_at__isnull=False)
        if since is not None:
            query = query.filter(used_at__gte=since)
        if until is not None:
            query = query.filter(used_at__lte=until)
        return TicketMapper.to_entity_list(query.order_by('-used_at')[:limit])


class DjangoFinancialTransactionRepository:
    """Append-only audit trail."""

    def append(self, record: FinancialTransactionEntity) -> None:
        FinancialTransactionMapper.to_model(record).save(force_insert=True)

    def list_by_ticket(self, ticket_id: str) -> List[FinancialTransactionEntity]:
        return [
            FinancialTransactionMapper.to_entity(model)
            for model in FinancialTransactionModel.objects.filter(ticket_id=ticket_id)
        ]


# =============================================================================
# User directory
# =============================================================================

class DjangoUserDirectory:
    """Registered users over UserProfileModel (``users`` table)."""

    @staticmethod
    def _to_account(model: UserProfileModel) -> UserAccount:
        return UserAccount(uid=model.id, email=model.email or "", display_name=model.display_name)

    def get(self, uid: str) -> Optional[UserAccount]:
        model = UserProfileModel.objects.filter(pk=uid).first()
        return self._to_account(model) if model else None

    def find_by_email(self, email: str) -> Optional[UserAccount]:
        model = UserProfileModel.objects.filter(email__iexact=email.strip()).order_by('pk').first()
        return self._to_account(model) if model else None


# =============================================================================
# Record store (data migrations)
# =============================================================================

COLLECTION_MODELS: Dict[str, Type[models.Model]] = {
    'events': EventModel,
    'tickets': TicketModel,
    'user_tickets': UserTicketModel,
    'financial_transactions': FinancialTransactionModel,
    'venues': VenueModel,
    'bookmarks': BookmarkModel,
    'user_bookmarks': LegacyBookmarkModel,
    'users': UserProfileModel,
    'event_stats': EventStatsModel,
}


class DjangoRecordStore:
    """
    RecordStore over the ticketing tables.

    Records are the ``.values()`` dicts of the models, so field names
    are the column names. Each ``commit_batch`` is one database
    transaction.

    Example:
        store = DjangoRecordStore()
        runner = MigrationRunner(store, batch_size=500)
    """

    def __init__(self, collection_models: Optional[Dict[str, Type[models.Model]]] = None):
        self.collection_models = collection_models or COLLECTION_MODELS

    def _model(self, collection: str) -> Type[models.Model]:
        try:
            return self.collection_models[collection]
        except KeyError:
            raise ValidationError(f"Unknown collection: {collection}", field='collection')

    def scan(self, collection: str) -> Iterator[Record]:
        return self._model(collection).objects.order_by('pk').values().iterator()

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        return self._model(collection).objects.filter(pk=record_id).values().first()

    def count(self, collection: str, predicate: Optional[Callable[[Record], bool]] = None) -> int:
        if predicate is None:
            return self._model(collection).objects.count()
        return sum(1 for record in self.scan(collection) if predicate(record))

    def commit_batch(self, batch: List[WriteOp]) -> None:
        with transaction.atomic():
            for op in batch:
                model = self._model(op.collection)
                if op.kind == CREATE:
                    model.objects.update_or_create(pk=op.record_id, defaults=op.data)
                    continue
                updated = model.objects.filter(pk=op.record_id).update(**op.data)
                if updated == 0:
                    raise EntityNotFoundError(
                        f"{op.collection}/{op.record_id} not found", op.collection, op.record_id
                    )
        logger.debug(f"Committed batch of {len(batch)} writes")

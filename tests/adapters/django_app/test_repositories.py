"""
Tests of the Django repositories, mappers and record store.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.adapters.django_app.ticketing.mappers import EventMapper, TicketMapper
from src.adapters.django_app.ticketing.models import (
    EventModel,
    FinancialTransactionModel,
    TicketModel,
    UserProfileModel,
    UserTicketModel,
    VenueModel,
)
from src.adapters.django_app.ticketing.repositories import (
    DjangoEventRepository,
    DjangoFinancialTransactionRepository,
    DjangoRecordStore,
    DjangoTicketRepository,
    DjangoUserDirectory,
)
from src.core.data_migrations.batching import CREATE, UPDATE, WriteOp
from src.core.shared.exceptions import ConcurrencyError, EntityNotFoundError, ValidationError
from src.core.ticketing.entities import (
    FinancialTransactionEntity,
    TicketEntity,
    TicketStatus,
    UserAccount,
)


@pytest.fixture
def ticket_entity(event_factory, now):
    event = EventMapper.to_entity(event_factory())
    return TicketEntity.issue(event, 'user-001', 'TKT12345604298', now, ticket_id='tkt-1')


# =============================================================================
# Events
# =============================================================================

@pytest.mark.django_db
class TestDjangoEventRepository:

    def test_get_by_id(self, event_factory, future_start):
        event_factory()

        event = DjangoEventRepository().get_by_id('evt-001')

        assert event.name == 'Friday Jazz Night'
        assert event.price == Decimal('25.00')
        assert event.start_time == future_start
        assert DjangoEventRepository().get_by_id('missing') is None

    def test_legacy_date_is_start_time(self, event_factory, future_start):
        event_factory(start_time=None, date=future_start)

        assert DjangoEventRepository().get_for_update('evt-001').start_time == future_start

    def test_increment_tickets_sold(self, event_factory):
        event_factory(tickets_sold=4)

        assert DjangoEventRepository().increment_tickets_sold('evt-001', expected_sold=4) == 5
        assert EventModel.objects.get(pk='evt-001').tickets_sold == 5

    def test_stale_increment_is_a_conflict(self, event_factory):
        event_factory(tickets_sold=4)

        with pytest.raises(ConcurrencyError):
            DjangoEventRepository().increment_tickets_sold('evt-001', expected_sold=3)
        assert EventModel.objects.get(pk='evt-001').tickets_sold == 4

    def test_increment_never_exceeds_capacity(self, event_factory):
        event_factory(max_tickets=2, tickets_sold=2)

        with pytest.raises(ConcurrencyError):
            DjangoEventRepository().increment_tickets_sold('evt-001', expected_sold=2)

    def test_save(self, event_factory):
        event_factory()
        repo = DjangoEventRepository()
        event = repo.get_by_id('evt-001')
        event.status = 'soldOut'

        repo.save(event)

        assert EventModel.objects.get(pk='evt-001').status == 'soldOut'


# =============================================================================
# Tickets
# =============================================================================

@pytest.mark.django_db
class TestDjangoTicketRepository:

    def test_add_writes_root_and_mirror(self, ticket_entity):
        DjangoTicketRepository().add(ticket_entity)

        root = TicketModel.objects.get(pk='tkt-1')
        mirror = UserTicketModel.objects.get(pk='tkt-1')
        assert root.status == mirror.status == 'confirmed'
        assert root.total_price == mirror.purchase_price == Decimal('25.00')
        assert root.is_used is False

    def test_second_confirmed_ticket_is_a_conflict(self, ticket_entity, now):
        repo = DjangoTicketRepository()
        repo.add(ticket_entity)
        twin = TicketEntity(
            id='tkt-2',
            event_id=ticket_entity.event_id,
            user_id=ticket_entity.user_id,
            ticket_number='TKT',
            event_name='Friday Jazz Night',
            total_price=Decimal('25.00'),
            purchase_date=now,
        )

        with pytest.raises(ConcurrencyError):
            repo.add(twin)
        assert not UserTicketModel.objects.filter(pk='tkt-2').exists()

    def test_save_updates_both_copies(self, ticket_entity, now):
        repo = DjangoTicketRepository()
        repo.add(ticket_entity)
        ticket_entity.mark_used('scanner-1', now)

        repo.save(ticket_entity)

        assert repo.get_by_id('tkt-1').status == TicketStatus.USED
        mirror = repo.get_user_copy('user-001', 'tkt-1')
        assert mirror.status == TicketStatus.USED
        assert mirror.scanned_by == 'scanner-1'
        assert UserTicketModel.objects.get(pk='tkt-1').is_used is True

    def test_find_confirmed(self, ticket_entity, now):
        repo = DjangoTicketRepository()
        repo.add(ticket_entity)

        assert repo.find_confirmed('evt-001', 'user-001') == ticket_entity
        ticket_entity.cancel(now)
        repo.save(ticket_entity)
        assert repo.find_confirmed('evt-001', 'user-001') is None

    def test_legacy_ticket_without_status_counts_as_confirmed(self, event_factory, now):
        event_factory()
        TicketModel.objects.create(
            id='legacy-1', event_id='evt-001', user_id='user-001',
            price_per_ticket=Decimal('18.00'), is_used=False, purchase_date=now,
        )

        ticket = DjangoTicketRepository().find_confirmed('evt-001', 'user-001')

        assert ticket.status == TicketStatus.CONFIRMED
        assert ticket.total_price == Decimal('18.00')

    def test_list_by_event(self, ticket_entity):
        DjangoTicketRepository().add(ticket_entity)
        assert [t.id for t in DjangoTicketRepository().list_by_event('evt-001')] == ['tkt-1']

    def test_transfer_moves_the_mirror(self, ticket_entity, now):
        repo = DjangoTicketRepository()
        repo.add(ticket_entity)
        ticket_entity.transfer_to('user-002', now)

        repo.save(ticket_entity)

        assert UserTicketModel.objects.get(pk='tkt-1').user_id == 'user-002'
        assert repo.get_user_copy('user-001', 'tkt-1') is None
        assert repo.get_user_copy('user-002', 'tkt-1').transferred_from == 'user-001'
        assert repo.find_confirmed('evt-001', 'user-002').id == 'tkt-1'

    def test_list_user_copies_latest_first(self, event_factory, now):
        event_factory()
        event_factory(id='evt-002')
        for ticket_id, event_id, days in [('old', 'evt-001', 9), ('new', 'evt-002', 1)]:
            UserTicketModel.objects.create(
                id=ticket_id, event_id=event_id, user_id='user-001',
                status='confirmed', purchase_date=now - timedelta(days=days),
            )
        UserTicketModel.objects.create(id='undated', event_id='evt-001', user_id='user-001', status='cancelled')
        UserTicketModel.objects.create(id='theirs', event_id='evt-001', user_id='user-002', purchase_date=now)

        copies = DjangoTicketRepository().list_user_copies('user-001')

        assert [t.id for t in copies] == ['new', 'old', 'undated']

    def test_list_scanned_by(self, event_factory, now):
        event_factory()
        for index in range(3):
            TicketModel.objects.create(
                id=f'tkt-{index}', event_id='evt-001', user_id=f'holder-{index}', status='used',
                is_used=True, used_at=now - timedelta(hours=index), scanned_by='scanner-1', purchase_date=now,
            )
        TicketModel.objects.create(
            id='other', event_id='evt-001', user_id='holder-9', status='used',
            is_used=True, used_at=now, scanned_by='scanner-2', purchase_date=now,
        )
        repo = DjangoTicketRepository()

        assert [t.id for t in repo.list_scanned_by('scanner-1')] == ['tkt-0', 'tkt-1', 'tkt-2']
        assert [t.id for t in repo.list_scanned_by('scanner-1', limit=1)] == ['tkt-0']
        window = repo.list_scanned_by('scanner-1', since=now - timedelta(hours=1), until=now - timedelta(minutes=1))
        assert [t.id for t in window] == ['tkt-1']


# =============================================================================
# User directory
# =============================================================================

@pytest.mark.django_db
class TestDjangoUserDirectory:

    def test_find_by_email_ignores_case(self):
        UserProfileModel.objects.create(id='user-002', email='Alex@Example.com', display_name='Alex')

        account = DjangoUserDirectory().find_by_email(' alex@example.com ')

        assert account == UserAccount(uid='user-002', email='Alex@Example.com', display_name='Alex')
        assert account.label == 'Alex'

    def test_unknown_email(self):
        assert DjangoUserDirectory().find_by_email('nobody@example.com') is None

    def test_get(self):
        UserProfileModel.objects.create(id='user-003', email='kim@example.com')

        assert DjangoUserDirectory().get('user-003').label == 'kim@example.com'
        assert DjangoUserDirectory().get('missing') is None


@pytest.mark.django_db
class TestTicketMapper:

    def test_legacy_used_flag(self, now):
        model = TicketModel(id='x', event_id='e', user_id='u', is_used=True, purchase_price=Decimal('9'))

        entity = TicketMapper.to_entity(model)

        assert entity.status == TicketStatus.USED
        assert entity.total_price == Decimal('9')
        assert entity.ticket_number == ''


# =============================================================================
# Financial transactions
# =============================================================================

@pytest.mark.django_db
class TestDjangoFinancialTransactionRepository:

    def test_append_and_list(self, ticket_entity, now):
        repo = DjangoFinancialTransactionRepository()
        record = FinancialTransactionEntity.for_purchase(ticket_entity, now)

        repo.append(record)

        assert repo.list_by_ticket('tkt-1') == [record]
        assert FinancialTransactionModel.objects.get(pk=record.id).type == 'ticket_purchase'

    def test_append_never_overwrites(self, ticket_entity, now):
        from django.db import IntegrityError, transaction

        repo = DjangoFinancialTransactionRepository()
        record = FinancialTransactionEntity.for_purchase(ticket_entity, now)
        repo.append(record)

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                repo.append(record)


# =============================================================================
# Record store
# =============================================================================

@pytest.mark.django_db
class TestDjangoRecordStore:

    def test_scan_returns_column_dicts(self, event_factory):
        event_factory(id='b')
        event_factory(id='a', venue='Warehouse 9')

        records = list(DjangoRecordStore().scan('events'))

        assert [r['id'] for r in records] == ['a', 'b']
        assert records[0]['venue'] == 'Warehouse 9'
        assert records[0]['migrated_phase4'] is False

    def test_get_and_count(self, event_factory):
        event_factory(id='a', tickets_sold=3)
        event_factory(id='b')
        store = DjangoRecordStore()

        assert store.get('events', 'a')['tickets_sold'] == 3
        assert store.get('events', 'zzz') is None
        assert store.count('events') == 2
        assert store.count('events', lambda r: r['tickets_sold'] > 0) == 1

    def test_commit_batch_creates_and_updates(self, event_factory):
        event_factory(id='a')
        created_at = datetime(2024, 6, 1, tzinfo=timezone.utc)

        DjangoRecordStore().commit_batch([
            WriteOp('venues', 'the_grand_hall', {'name': 'The Grand Hall', 'event_ids': ['a'],
                                                 'created_at': created_at, 'migrated': True}, CREATE),
            WriteOp('events', 'a', {'venue_id': 'the_grand_hall', 'migrated_venue_id': True}, UPDATE),
        ])

        assert VenueModel.objects.get(pk='the_grand_hall').event_ids == ['a']
        assert EventModel.objects.get(pk='a').venue_id == 'the_grand_hall'

    def test_failed_batch_applies_nothing(self, event_factory):
        event_factory(id='a')

        with pytest.raises(EntityNotFoundError):
            DjangoRecordStore().commit_batch([
                WriteOp('events', 'a', {'status': 'active'}),
                WriteOp('events', 'missing', {'status': 'active'}),
            ])

        assert EventModel.objects.get(pk='a').status is None

    def test_unknown_collection(self):
        with pytest.raises(ValidationError):
            DjangoRecordStore().get('spaceships', 'x')

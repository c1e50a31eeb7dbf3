"""
Fixtures of the data migration tests: legacy shaped records in an
InMemoryRecordStore.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.core.data_migrations.ports import InMemoryRecordStore
from src.core.identity.claims import CallerClaims, SiteAdmin, VenueAdmin


@pytest.fixture
def admin():
    return CallerClaims(uid="admin", role=SiteAdmin())


@pytest.fixture
def venue_admin():
    return CallerClaims(uid="va", role=VenueAdmin("the_grand_hall"))


@pytest.fixture
def legacy_records(now):
    """Three events over two spellings of one venue plus a second venue."""
    return {
        "events": {
            "e1": {"name": "Jazz", "venue": "The Grand Hall", "max_tickets": 10, "tickets_sold": 2,
                   "date": now + timedelta(days=2), "created_by": "org-1"},
            "e2": {"name": "Indie", "venue": "the grand hall!", "max_tickets": 5, "tickets_sold": 5,
                   "date": now + timedelta(days=3)},
            "e3": {"name": "Techno", "venue": "Warehouse 9", "max_tickets": 50, "tickets_sold": 0,
                   "date": now - timedelta(days=1)},
            "e4": {"name": "No venue yet", "max_tickets": 10, "tickets_sold": 0},
        },
        "tickets": {
            "t1": {"event_id": "e1", "user_id": "u1", "price_per_ticket": Decimal("20.00"),
                   "is_used": False, "purchase_date": now - timedelta(hours=1)},
            "t2": {"event_id": "e1", "user_id": "u2", "total_price": Decimal("20.00"),
                   "status": "used", "purchase_date": now - timedelta(days=3),
                   "ticket_number": "TKT00000100001"},
            "t3": {"event_id": "e1", "user_id": "u3", "total_price": Decimal("20.00"),
                   "status": "cancelled", "purchase_date": now - timedelta(days=3)},
            "t4": {"event_id": "e2", "user_id": "u1", "purchase_price": Decimal("15.00"),
                   "is_used": True, "purchase_date": datetime(2024, 1, 1)},
        },
        "user_tickets": {
            "t1": {"event_id": "e1", "user_id": "u1", "price_per_ticket": Decimal("20.00"), "is_used": False},
        },
        "user_bookmarks": {
            "u1:e1": {"user_id": "u1", "event_id": "e1"},
            "u1:e3": {"user_id": "u1", "event_id": "e3", "bookmarked_at": datetime(2024, 5, 1, tzinfo=timezone.utc)},
            "u2:e1": {"user_id": "u2", "event_id": "e1"},
            "orphan": {"event_id": "e2"},
        },
        "users": {
            "u1": {"email": "u1@x.io"},
            "u2": {"email": "u2@x.io", "phone_number": "+100", "preferences": {"notifications": False}},
        },
        "venues": {},
    }


@pytest.fixture
def store(legacy_records):
    return InMemoryRecordStore(legacy_records)

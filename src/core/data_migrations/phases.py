"""
Migration phases.

Phase 1 - venues:
- CreateVenues: one venue per normalized venue name found on events
- BackfillEventVenueIds: link events to their venue
- RelocateBookmarks: per-user bookmarks into the root collection

Phase 4 - schema enhancement:
- EnhanceVenues / EnhanceEvents / EnhanceTickets / EnhanceUsers:
  per-field default backfill, never overwriting a present value
- CreateEventStats: full recompute of the per-event statistics record

Field names follow the columns of the Django models.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, Optional
import copy
import re

from src.core.ticketing.issuer import TicketNumberGenerator

from .base import DataMigration, collection_summary
from .batching import CREATE, UPDATE, MigrationReport, WriteOp
from .ports import Record


_NON_ALNUM = re.compile(r"[^a-z0-9]+")

PHASE4_MARKER = "migrated_phase4"
EVENT_DURATION = timedelta(hours=4)


def normalize_venue_id(name: str) -> str:
    """
    Derive a venue identifier from a free text venue name.

    Example:
        normalize_venue_id("The Grand Hall")   # "the_grand_hall"
        normalize_venue_id("the grand hall!")  # "the_grand_hall"
    """
    return _NON_ALNUM.sub("_", name.strip().lower()).strip("_")


def _missing(record: Record, field: str) -> bool:
    return record.get(field) is None


def backfill_defaults(record: Record, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return the defaults for the fields ``record`` does not have.

    A ``None`` default only adds the key when it is absent altogether; any
    other default is applied when the field is absent or None. Present
    values are never replaced.
    """
    updates = {}
    for field, default in defaults.items():
        if default is None:
            if field not in record:
                updates[field] = None
        elif _missing(record, field):
            updates[field] = copy.deepcopy(default)
    return updates


def ticket_status(record: Record) -> str:
    """Status of a ticket record; legacy records only carry ``is_used``."""
    status = record.get("status")
    if status:
        return status
    return "used" if record.get("is_used") else "confirmed"


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


COUNTED_STATUSES = ("confirmed", "used")


def empty_event_stats() -> Dict[str, Any]:
    return {
        "total_bookmarks": 0,
        "total_tickets_sold": 0,
        "tickets_used": 0,
        "total_revenue": Decimal("0"),
        "tickets_sold_today": 0,
    }


def ticket_price(record: Record) -> Decimal:
    """Price paid for a ticket: purchase_price, then total_price, then price_per_ticket."""
    for field in ("purchase_price", "total_price", "price_per_ticket"):
        if record.get(field) is not None:
            return _as_decimal(record[field])
    return Decimal("0")


def count_ticket(entry: Dict[str, Any], record: Record, today_start: datetime) -> None:
    """Add one ticket record to the statistics ``entry`` when it counts as sold."""
    status = ticket_status(record)
    if status not in COUNTED_STATUSES:
        return
    entry["total_tickets_sold"] += 1
    if status == "used":
        entry["tickets_used"] += 1
    entry["total_revenue"] += ticket_price(record)
    purchase_date = _as_aware(record.get("purchase_date"))
    if purchase_date is not None and purchase_date >= today_start:
        entry["tickets_sold_today"] += 1


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def event_stats_from(tickets: Iterable[Record], bookmarks: int, now: datetime) -> Dict[str, Any]:
    """
    Statistics of one event from its root ticket records.

    Example:
        event_stats_from(TicketModel.objects.filter(event_id=e).values(), 3, now)
    """
    entry = empty_event_stats()
    entry["total_bookmarks"] = bookmarks
    today_start = start_of_day(now)
    for record in tickets:
        count_ticket(entry, record, today_start)
    return entry


# =============================================================================
# Phase 1
# =============================================================================

class CreateVenues(DataMigration):
    """Create a venue record per distinct normalized venue name."""

    name = "create_venues"
    description = "Create venues from event venue names"
    collection = "venues"
    marker = "migrated"

    def plan(self, report: MigrationReport, claims) -> Iterator[WriteOp]:
        groups: Dict[str, Dict[str, Any]] = {}
        for event in self.store.scan("events"):
            venue_name = event.get("venue")
            if not isinstance(venue_name, str) or not venue_name.strip():
                continue
            venue_id = normalize_venue_id(venue_name)
            if not venue_id:
                report.error(event["id"], "Venue name has no usable characters", venue_name=venue_name)
                continue
            group = groups.setdefault(venue_id, {"name": venue_name.strip(), "event_ids": []})
            group["event_ids"].append(event["id"])

        now = self.clock()
        for venue_id, group in groups.items():
            if self.store.get("venues", venue_id) is not None:
                report.skip()
                continue
            yield WriteOp(
                "venues",
                venue_id,
                {
                    "name": group["name"],
                    "admins": [],
                    "sub_admins": [],
                    "active": True,
                    "event_ids": group["event_ids"],
                    "event_count": len(group["event_ids"]),
                    "created_at": now,
                    "created_by": claims.uid,
                    "migrated": True,
                },
                CREATE,
            )

    def summarize(self) -> Dict[str, Any]:
        total = self.store.count("venues")
        return {"venues": {"total": total, "status": "complete" if total else "pending"}}


class BackfillEventVenueIds(DataMigration):
    """Set ``venue_id`` on events by matching their free text venue."""

    name = "add_venue_ids_to_events"
    description = "Link events to venues"
    collection = "events"
    marker = "migrated_venue_id"

    def plan(self, report: MigrationReport, claims) -> Iterator[WriteOp]:
        by_name: Dict[str, str] = {}
        venue_ids = set()
        for venue in self.store.scan("venues"):
            venue_ids.add(venue["id"])
            if venue.get("name"):
                by_name.setdefault(venue["name"], venue["id"])

        now = self.clock()
        for event in self.store.scan("events"):
            if event.get("venue_id") or event.get(self.marker):
                report.skip()
                continue

            venue_name = event.get("venue")
            if not venue_name:
                report.error(event["id"], "No venue name found")
                continue

            venue_id = by_name.get(venue_name)
            if venue_id is None and normalize_venue_id(venue_name) in venue_ids:
                venue_id = normalize_venue_id(venue_name)
            if venue_id is None:
                report.error(event["id"], "Venue not found in venues collection", venue_name=venue_name)
                continue

            yield WriteOp("events", event["id"], {"venue_id": venue_id, self.marker: True, "updated_at": now})

    def summarize(self) -> Dict[str, Any]:
        return {"events": collection_summary(self.store, "events", lambda r: bool(r.get("venue_id")))}


class RelocateBookmarks(DataMigration):
    """Copy per-user bookmarks into the root ``bookmarks`` collection."""

    name = "migrate_bookmarks_to_root"
    description = "Move bookmarks to the root collection"
    collection = "bookmarks"
    marker = "migrated"

    def plan(self, report: MigrationReport, claims) -> Iterator[WriteOp]:
        found = 0
        planned = set()
        now = self.clock()
        for bookmark in self.store.scan("user_bookmarks"):
            found += 1
            user_id = bookmark.get("user_id")
            event_id = bookmark.get("event_id") or bookmark["id"]
            if not user_id:
                report.error(bookmark["id"], "Bookmark has no user")
                continue

            root_id = f"{user_id}_{event_id}"
            if root_id in planned or self.store.get("bookmarks", root_id) is not None:
                report.skip()
                continue
            planned.add(root_id)

            yield WriteOp(
                "bookmarks",
                root_id,
                {
                    "user_id": user_id,
                    "event_id": event_id,
                    "bookmarked_at": bookmark.get("bookmarked_at") or now,
                    "migrated": True,
                },
                CREATE,
            )
        report.details["total_found"] = found

    def summarize(self) -> Dict[str, Any]:
        in_root = self.store.count("bookmarks")
        legacy = self.store.count("user_bookmarks")
        return {
            "bookmarks": {
                "in_root_collection": in_root,
                "legacy": legacy,
                "status": "complete" if in_root >= legacy else "pending",
            }
        }


# =============================================================================
# Phase 4
# =============================================================================

class _EnhanceMigration(DataMigration):
    """
    Per-field default backfill over one or more collections.

    Subclasses provide ``defaults`` and optionally ``derive`` for values
    computed from the record itself.
    """

    marker = PHASE4_MARKER
    collections = ()
    defaults: Dict[str, Any] = {}

    def plan(self, report: MigrationReport, claims) -> Iterator[WriteOp]:
        now = self.clock()
        for collection in self.collections or (self.collection,):
            for record in self.store.scan(collection):
                if record.get(self.marker):
                    report.skip()
                    continue
                try:
                    updates = self.derive(record, now)
                except (AttributeError, TypeError, ValueError, ArithmeticError) as exc:
                    report.error(record["id"], f"Could not transform record: {exc}", collection=collection)
                    continue
                for field, value in backfill_defaults(record, self.defaults).items():
                    updates.setdefault(field, value)
                updates[self.marker] = True
                updates["updated_at"] = now
                yield WriteOp(collection, record["id"], updates, UPDATE)

    def derive(self, record: Record, now: datetime) -> Dict[str, Any]:
        return {}

    def summarize(self) -> Dict[str, Any]:
        marker = self.marker
        return {
            collection: collection_summary(self.store, collection, lambda r: bool(r.get(marker)))
            for collection in self.collections or (self.collection,)
        }


class EnhanceVenues(_EnhanceMigration):
    name = "enhance_venues"
    description = "Add address and contact fields to venues"
    collection = "venues"
    defaults = {
        "address": "",
        "city": "",
        "capacity": 0,
        "image_url": None,
        "coordinates": None,
        "contact_email": "",
        "website": "",
    }


class EnhanceEvents(_EnhanceMigration):
    """
    Add status, timing and classification fields to events.

    ``status`` is derived only when absent: past if the start is before
    now, soldOut if no tickets remain, active otherwise. ``end_time``
    defaults to four hours after the start.
    """

    name = "enhance_events"
    description = "Add status, timing and category fields to events"
    collection = "events"
    defaults = {"category": "general", "tags": []}

    def derive(self, record: Record, now: datetime) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        start = _as_aware(record.get("start_time") or record.get("date"))

        if _missing(record, "status"):
            sold_out = (record.get("tickets_sold") or 0) >= (record.get("max_tickets") or 0)
            if start is not None and start < now:
                updates["status"] = "past"
            elif sold_out:
                updates["status"] = "soldOut"
            else:
                updates["status"] = "active"

        if _missing(record, "end_time") and start is not None:
            updates["end_time"] = start + EVENT_DURATION

        if _missing(record, "start_time") and record.get("date") is not None:
            updates["start_time"] = record["date"]

        if _missing(record, "organizer_id"):
            updates["organizer_id"] = record.get("created_by")

        return updates


class EnhanceTickets(_EnhanceMigration):
    """
    Add lifecycle fields to tickets, in the root collection and the mirror.

    Both copies of a ticket share its id. A missing ``ticket_number`` is
    taken from the other copy when that one has it, otherwise generated
    once per id and written to both.
    """

    name = "enhance_tickets"
    description = "Add lifecycle fields to tickets"
    collection = "tickets"
    collections = ("tickets", "user_tickets")
    defaults = {
        "qr_code_signature": None,
        "scanned_by": None,
        "cancelled_at": None,
        "cancel_reason": None,
        "refunded_at": None,
        "refund_amount": None,
        "transferred_from": None,
        "transferred_at": None,
    }

    def __init__(self, *args, number_generator: Optional[TicketNumberGenerator] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.number_generator = number_generator or TicketNumberGenerator()
        self._numbers: Dict[str, str] = {}

    def plan(self, report: MigrationReport, claims) -> Iterator[WriteOp]:
        self._numbers = {}
        return super().plan(report, claims)

    def ticket_number_for(self, ticket_id: str) -> str:
        number = self._numbers.get(ticket_id)
        if number is None:
            for collection in self.collections:
                stored = self.store.get(collection, ticket_id)
                if stored and stored.get("ticket_number"):
                    number = stored["ticket_number"]
                    break
            else:
                number = self.number_generator.generate()
            self._numbers[ticket_id] = number
        return number

    def derive(self, record: Record, now: datetime) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        if _missing(record, "purchase_price") and record.get("price_per_ticket") is not None:
            updates["purchase_price"] = record["price_per_ticket"]
        if _missing(record, "status"):
            updates["status"] = ticket_status(record)
        if not record.get("ticket_number"):
            updates["ticket_number"] = self.ticket_number_for(record["id"])
        return updates


class EnhanceUsers(_EnhanceMigration):
    name = "enhance_users"
    description = "Add profile and preference fields to users"
    collection = "users"
    defaults = {
        "phone_number": None,
        "stripe_customer_id": None,
        "profile_image_url": None,
        "preferences": {
            "notifications": True,
            "email_marketing": False,
            "push_notifications": True,
        },
    }


class CreateEventStats(DataMigration):
    """
    Recompute ``event_stats`` for every event.

    Counts only confirmed and used tickets of the root collection (the
    mirror holds copies of the same tickets). Only records whose values
    changed are written, so an immediate re-run writes nothing.
    """

    name = "create_event_stats"
    description = "Recompute event statistics"
    collection = "event_stats"

    STAT_FIELDS = (
        "total_bookmarks",
        "total_tickets_sold",
        "tickets_used",
        "total_revenue",
        "tickets_sold_today",
    )

    def compute(self, now: datetime) -> Dict[str, Dict[str, Any]]:
        """Build the statistics of every event from tickets and bookmarks."""
        today_start = start_of_day(now)
        stats = {event["id"]: empty_event_stats() for event in self.store.scan("events")}

        for ticket in self.store.scan("tickets"):
            entry = stats.get(ticket.get("event_id"))
            if entry is not None:
                count_ticket(entry, ticket, today_start)

        for bookmark in self.store.scan("bookmarks"):
            entry = stats.get(bookmark.get("event_id"))
            if entry is not None:
                entry["total_bookmarks"] += 1

        return stats

    def plan(self, report: MigrationReport, claims) -> Iterator[WriteOp]:
        now = self.clock()
        for event_id, values in self.compute(now).items():
            current = self.store.get("event_stats", event_id)
            if current is None:
                yield WriteOp(
                    "event_stats",
                    event_id,
                    dict(values, trending_score=0.0, last_updated=now),
                    CREATE,
                )
            elif any(self._differs(current.get(f), values[f]) for f in self.STAT_FIELDS):
                yield WriteOp("event_stats", event_id, dict(values, last_updated=now), UPDATE)
            else:
                report.skip()

    @staticmethod
    def _differs(stored, computed) -> bool:
        if isinstance(computed, Decimal):
            return _as_decimal(stored) != computed
        return stored != computed

    def summarize(self) -> Dict[str, Any]:
        events = self.store.count("events")
        with_stats = self.store.count("event_stats")
        return {
            "event_stats": {
                "total": with_stats,
                "events": events,
                "pending": max(events - with_stats, 0),
                "status": "complete" if with_stats >= events else "pending",
            }
        }


PHASE1_MIGRATIONS = (CreateVenues, BackfillEventVenueIds, RelocateBookmarks)
PHASE4_MIGRATIONS = (EnhanceVenues, EnhanceEvents, EnhanceTickets, EnhanceUsers, CreateEventStats)

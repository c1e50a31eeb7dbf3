"""
Data migrations - admin-gated, re-runnable, batched record reshaping.

- DataMigration: base class (plan → batched → commit per batch → report)
- Phases: CreateVenues, BackfillEventVenueIds, RelocateBookmarks,
  EnhanceVenues, EnhanceEvents, EnhanceTickets, EnhanceUsers, CreateEventStats
- MigrationRunner: registry by name plus verification summaries
- RecordStore: port over raw records
"""

from .batching import MigrationReport, WriteOp, batched
from .base import DataMigration, MAX_BATCH_SIZE
from .phases import (
    CreateVenues,
    BackfillEventVenueIds,
    RelocateBookmarks,
    EnhanceVenues,
    EnhanceEvents,
    EnhanceTickets,
    EnhanceUsers,
    CreateEventStats,
    event_stats_from,
    normalize_venue_id,
)
from .ports import RecordStore, InMemoryRecordStore
from .runner import MigrationRunner

__all__ = [
    "MigrationReport",
    "WriteOp",
    "batched",
    "DataMigration",
    "MAX_BATCH_SIZE",
    "CreateVenues",
    "BackfillEventVenueIds",
    "RelocateBookmarks",
    "EnhanceVenues",
    "EnhanceEvents",
    "EnhanceTickets",
    "EnhanceUsers",
    "CreateEventStats",
    "event_stats_from",
    "normalize_venue_id",
    "RecordStore",
    "InMemoryRecordStore",
    "MigrationRunner",
]

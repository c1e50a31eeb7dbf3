"""
MigrationRunner - registry of the migration phases.

Looks up migrations by name for the HTTP endpoints and the Celery
task, and aggregates the read-only verification reports.
"""

from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Type
import logging

from src.core.identity.claims import CallerClaims
from src.core.identity.permissions import require_site_admin
from src.core.shared.exceptions import EntityNotFoundError
from src.core.shared.interfaces import utc_now
from src.core.shared.result import Failure, Result, Success, attempt

from .base import MAX_BATCH_SIZE, SITE_ADMIN_ONLY, DataMigration
from .phases import PHASE1_MIGRATIONS, PHASE4_MIGRATIONS, PHASE4_MARKER
from .ports import RecordStore


logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS = PHASE1_MIGRATIONS + PHASE4_MIGRATIONS


class MigrationRunner:
    """
    Runs migrations by name.

    Example:
        runner = MigrationRunner(store)
        runner.run("create_venues", claims)
        runner.verify_migration_status(claims)
    """

    def __init__(
        self,
        store: RecordStore,
        batch_size: int = MAX_BATCH_SIZE,
        clock: Callable[[], datetime] = utc_now,
        migrations: Iterable[Type[DataMigration]] = DEFAULT_MIGRATIONS,
    ):
        self.store = store
        self._migrations: Dict[str, DataMigration] = {
            migration_class.name: migration_class(store, batch_size=batch_size, clock=clock)
            for migration_class in migrations
        }

    def names(self) -> List[str]:
        return list(self._migrations)

    def get(self, name: str) -> Optional[DataMigration]:
        return self._migrations.get(name)

    def _lookup(self, name: str) -> Result:
        migration = self._migrations.get(name)
        if migration is None:
            return Failure(EntityNotFoundError(f"Unknown migration: {name}", "Migration", name))
        return Success(migration)

    def run(self, name: str, claims: Optional[CallerClaims]) -> Result:
        found = self._lookup(name)
        if found.is_failure:
            return found
        return found.value.run(claims)

    def status(self, name: str, claims: Optional[CallerClaims]) -> Result:
        found = self._lookup(name)
        if found.is_failure:
            return found
        return found.value.status(claims)

    def verify_migration_status(self, claims: Optional[CallerClaims]) -> Result:
        """
        Summary of phase 1: venues, event venue links and root bookmarks.
        """
        allowed = attempt(require_site_admin, claims, SITE_ADMIN_ONLY)
        if allowed.is_failure:
            return allowed

        venues = self.store.count("venues")
        events = self.store.count("events")
        with_venue = self.store.count("events", lambda r: bool(r.get("venue_id")))
        bookmarks = self.store.count("bookmarks")
        return Success(
            {
                "venues": {
                    "total": venues,
                    "status": "complete" if venues else "pending",
                },
                "events": {
                    "total": events,
                    "with_venue_id": with_venue,
                    "without_venue_id": events - with_venue,
                    "status": "complete" if with_venue == events else "pending",
                },
                "bookmarks": {
                    "in_root_collection": bookmarks,
                    "status": "complete" if bookmarks else "pending",
                },
            }
        )

    def verify_phase4_status(self, claims: Optional[CallerClaims]) -> Result:
        """
        Summary of phase 4: enhanced records per collection and event stats.
        """
        allowed = attempt(require_site_admin, claims, SITE_ADMIN_ONLY)
        if allowed.is_failure:
            return allowed

        summary = {}
        for collection in ("venues", "events", "tickets", "users"):
            total = self.store.count(collection)
            enhanced = self.store.count(collection, lambda r: bool(r.get(PHASE4_MARKER)))
            summary[collection] = {
                "total": total,
                "enhanced": enhanced,
                "status": "complete" if enhanced == total else "pending",
            }
        stats = self.store.count("event_stats")
        summary["event_stats"] = {
            "total": stats,
            "status": "complete" if stats >= summary["events"]["total"] else "pending",
        }
        return Success(summary)

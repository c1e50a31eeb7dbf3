"""
Base class of the data migrations.

A migration is an admin-gated, re-runnable batch job over one logical
record set:

1. ``plan`` walks the records and yields a ``WriteOp`` per record that
   needs a change, recording skips and per-record errors on the report
2. ``batched`` groups the planned writes into bounded batches
3. each batch is committed on its own; a failed batch is recorded as
   per-record errors and the run continues
4. the report folds the committed batches into the final totals

Re-running is safe: records already carrying the migration marker are
skipped by ``plan``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, Iterator, Optional
import logging

from src.core.identity.claims import CallerClaims
from src.core.identity.permissions import require_site_admin
from src.core.shared.exceptions import InternalError
from src.core.shared.interfaces import utc_now
from src.core.shared.result import Failure, Result, Success, attempt

from .batching import MigrationReport, WriteOp, batched
from .ports import Record, RecordStore


logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 500
SITE_ADMIN_ONLY = "Only site admins can run migrations"


def collection_summary(
    store: RecordStore,
    collection: str,
    is_migrated: Callable[[Record], bool],
) -> Dict[str, Any]:
    """
    Count migrated vs. pending records of ``collection`` (read only).

    Returns:
        {"total", "migrated", "pending", "status"}
    """
    total = store.count(collection)
    migrated = store.count(collection, is_migrated)
    pending = total - migrated
    return {
        "total": total,
        "migrated": migrated,
        "pending": pending,
        "status": "complete" if pending == 0 else "pending",
    }


class DataMigration(ABC):
    """
    An independently invocable migration phase.

    Attributes:
        name: Registry key (also used in URLs and Celery task arguments)
        description: One line description
        collection: Main record set the migration writes
        marker: Field tagged on every record the migration touched

    Example:
        migration = EnhanceEvents(store, batch_size=500)
        result = migration.run(claims)
        if result.is_success:
            print(result.value.updated)
    """

    name: ClassVar[str]
    description: ClassVar[str]
    collection: ClassVar[str]
    marker: ClassVar[Optional[str]] = None

    def __init__(
        self,
        store: RecordStore,
        batch_size: int = MAX_BATCH_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        self.clock = clock

    def run(self, claims: Optional[CallerClaims]) -> Result:
        """
        Execute the migration.

        Returns:
            Success(MigrationReport), or Failure with Unauthenticated,
            PermissionDenied or Internal
        """
        allowed = attempt(require_site_admin, claims, SITE_ADMIN_ONLY)
        if allowed.is_failure:
            return allowed

        logger.info(f"Migration {self.name} started by {claims.uid}")
        report = MigrationReport()
        try:
            for batch in batched(self.plan(report, claims), self.batch_size):
                try:
                    self.store.commit_batch(batch)
                except Exception as exc:
                    logger.exception(f"Migration {self.name}: batch of {len(batch)} writes failed: {exc}")
                    report.fail_batch(batch, exc)
                else:
                    report.absorb(batch)
        except Exception as exc:
            logger.exception(f"Migration {self.name} failed: {exc}")
            return Failure(InternalError("Migration failed", cause=exc))

        report.message = self.summary_message(report)
        logger.info(
            f"Migration {self.name} finished: updated={report.updated} created={report.created} "
            f"skipped={report.skipped} errors={len(report.errors)}"
        )
        return Success(report)

    def status(self, claims: Optional[CallerClaims]) -> Result:
        """Read-only completion check, same authorization as ``run``."""
        allowed = attempt(require_site_admin, claims, SITE_ADMIN_ONLY)
        if allowed.is_failure:
            return allowed
        return Success(self.summarize())

    @abstractmethod
    def plan(self, report: MigrationReport, claims: CallerClaims) -> Iterator[WriteOp]:
        """Yield the writes this run needs."""
        raise NotImplementedError

    def summarize(self) -> Dict[str, Any]:
        marker = self.marker
        return {self.collection: collection_summary(self.store, self.collection, lambda r: bool(r.get(marker)))}

    def summary_message(self, report: MigrationReport) -> str:
        return (
            f"{self.description}: updated {report.updated}, created {report.created}, "
            f"skipped {report.skipped}, errors {len(report.errors)}"
        )

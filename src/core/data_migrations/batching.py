"""
Batching primitives of the data migrations.

- WriteOp: one planned write (create or update of a record)
- batched: lazily groups planned writes into bounded batches
- MigrationReport: accumulator folding batch outcomes into the
  ``{updated, skipped, created, errors}`` report returned to the caller
"""

from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Dict, Iterable, Iterator, List, TypeVar


T = TypeVar("T")

CREATE = "create"
UPDATE = "update"


@dataclass(frozen=True)
class WriteOp:
    """
    A planned write.

    Attributes:
        collection: Logical record set ("events", "venues", ...)
        record_id: Key of the record
        data: Fields to write (full record for CREATE, changed fields for UPDATE)
        kind: CREATE or UPDATE
    """

    collection: str
    record_id: str
    data: Dict[str, Any]
    kind: str = UPDATE


def batched(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """
    Yield lists of at most ``size`` items, consuming ``items`` lazily.

    Example:
        list(batched(range(5), 2))  # [[0, 1], [2, 3], [4]]
    """
    if size < 1:
        raise ValueError("batch size must be at least 1")
    iterator = iter(items)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


@dataclass
class MigrationReport:
    """
    Outcome of one migration run.

    Attributes:
        updated: Records modified
        created: Records created
        skipped: Records left untouched (already migrated or nothing to do)
        errors: Per-record failures; a failure never aborts the run
        batches: Number of batches committed
        message: Human readable summary
        details: Migration specific figures (e.g. total_found)
    """

    updated: int = 0
    created: int = 0
    skipped: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    batches: int = 0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def skip(self, count: int = 1) -> None:
        self.skipped += count

    def error(self, record_id: str, message: str, **details) -> None:
        self.errors.append({"id": record_id, "error": message, **details})

    def absorb(self, batch: List[WriteOp]) -> None:
        """Fold a committed batch into the totals."""
        self.batches += 1
        for op in batch:
            if op.kind == CREATE:
                self.created += 1
            else:
                self.updated += 1

    def fail_batch(self, batch: List[WriteOp], exc: Exception) -> None:
        """Record every write of a failed batch as a per-record error."""
        for op in batch:
            self.error(op.record_id, f"Batch commit failed: {exc}", collection=op.collection)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "updated": self.updated,
            "created": self.created,
            "skipped": self.skipped,
            "errors": list(self.errors),
            **self.details,
        }

"""
Ports of the data migrations.

Migrations work on raw records (dicts keyed by field name) rather than
entities, since their job is to reshape records that predate the
current entities.

- RecordStore: scan / get / count records and commit a batch of writes
- InMemoryRecordStore: dict backed implementation for tests
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, runtime_checkable
import copy
import threading

from src.core.shared.exceptions import EntityNotFoundError

from .batching import CREATE, WriteOp


Record = Dict[str, Any]


@runtime_checkable
class RecordStore(Protocol):
    """
    Record level access for migrations.

    Implementations:
    - DjangoRecordStore (one database transaction per batch)
    - InMemoryRecordStore (tests)
    """

    def scan(self, collection: str) -> Iterator[Record]:
        """Iterate over every record of ``collection`` (each with an "id" key)."""
        ...

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        ...

    def count(self, collection: str, predicate: Optional[Callable[[Record], bool]] = None) -> int:
        ...

    def commit_batch(self, batch: List[WriteOp]) -> None:
        """
        Apply every write of ``batch`` atomically.

        Raises:
            Exception: Any failure; nothing from the batch is applied
        """
        ...


class InMemoryRecordStore:
    """
    Record store over plain dictionaries.

    Example:
        store = InMemoryRecordStore({"events": {"e1": {"venue": "The Grand Hall"}}})
        list(store.scan("events"))  # [{"id": "e1", "venue": "The Grand Hall"}]
    """

    def __init__(self, collections: Optional[Dict[str, Dict[str, Record]]] = None):
        self._collections: Dict[str, Dict[str, Record]] = copy.deepcopy(collections or {})
        self._lock = threading.RLock()

    def _collection(self, name: str) -> Dict[str, Record]:
        return self._collections.setdefault(name, {})

    def scan(self, collection: str) -> Iterator[Record]:
        with self._lock:
            records = [
                dict(copy.deepcopy(data), id=record_id)
                for record_id, data in sorted(self._collection(collection).items())
            ]
        return iter(records)

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        data = self._collection(collection).get(record_id)
        return dict(copy.deepcopy(data), id=record_id) if data is not None else None

    def count(self, collection: str, predicate: Optional[Callable[[Record], bool]] = None) -> int:
        if predicate is None:
            return len(self._collection(collection))
        return sum(1 for record in self.scan(collection) if predicate(record))

    def commit_batch(self, batch: List[WriteOp]) -> None:
        with self._lock:
            staged = copy.deepcopy(self._collections)
            for op in batch:
                records = staged.setdefault(op.collection, {})
                if op.kind == CREATE:
                    records[op.record_id] = copy.deepcopy(op.data)
                elif op.record_id in records:
                    records[op.record_id].update(copy.deepcopy(op.data))
                else:
                    raise EntityNotFoundError(
                        f"{op.collection}/{op.record_id} not found", op.collection, op.record_id
                    )
            self._collections = staged

    def records(self, collection: str) -> Dict[str, Record]:
        """Snapshot of a collection keyed by id (for assertions)."""
        return copy.deepcopy(self._collection(collection))

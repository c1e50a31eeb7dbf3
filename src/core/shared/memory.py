"""
In-memory datastore and Unit of Work.

Used by the core test-suite and by ``TestingContainer``. A single
``InMemoryDatastore`` plays the role of the database: repositories keep
their records in its named collections, and ``InMemoryUnitOfWork``
gives each transaction exclusive access to it.

Transactions are serialized with a re-entrant lock held from begin to
commit/rollback, and rollback restores a snapshot taken at begin. This
keeps the same all-or-nothing and no-lost-update properties as the
database-backed implementation, even with real threads.
"""

from typing import Any, Dict, List, Optional
import copy
import threading

from .events import DomainEvent
from .interfaces import EventPublisher, UnitOfWork


class InMemoryDatastore:
    """
    Named collections of records shared by in-memory repositories.

    Example:
        store = InMemoryDatastore()
        store.collection("events")["e1"] = event
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Any]] = {}
        self.lock = threading.RLock()

    def collection(self, name: str) -> Dict[str, Any]:
        return self._collections.setdefault(name, {})

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._collections)

    def restore(self, snapshot: Dict[str, Dict[str, Any]]) -> None:
        self._collections.clear()
        self._collections.update(snapshot)

    def clear(self) -> None:
        with self.lock:
            self._collections.clear()


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of Work over an ``InMemoryDatastore``.

    Example:
        uow = InMemoryUnitOfWork(store)
        with uow:
            repo.save(ticket)
            uow.publish_event(event)

        assert uow.committed
        assert len(uow.published_events) == 1
    """

    def __init__(
        self,
        datastore: Optional[InMemoryDatastore] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        super().__init__()
        self.datastore = datastore or InMemoryDatastore()
        self._event_publisher = event_publisher
        self._snapshot: Optional[Dict[str, Dict[str, Any]]] = None
        self._active = False
        self._committed = False
        self._rolled_back = False
        self._published_events: List[DomainEvent] = []

    def _begin_transaction(self) -> None:
        self.datastore.lock.acquire()
        self._snapshot = self.datastore.snapshot()
        self._active = True
        self._committed = False
        self._rolled_back = False

    def commit(self) -> None:
        if not self._active:
            return
        self._active = False
        self._snapshot = None
        self._committed = True
        self.datastore.lock.release()

        events = list(self._events)
        self.clear_events()
        self._published_events.extend(events)
        if self._event_publisher:
            self._event_publisher.publish_batch(events)

    def rollback(self) -> None:
        if not self._active:
            return
        self._active = False
        self.datastore.restore(self._snapshot)
        self._snapshot = None
        self._rolled_back = True
        self.clear_events()
        self.datastore.lock.release()

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def rolled_back(self) -> bool:
        return self._rolled_back

    @property
    def published_events(self) -> List[DomainEvent]:
        """Events delivered by successful commits."""
        return self._published_events

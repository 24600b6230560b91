"""
In-memory persistence.

Repository and Unit of Work implementations over a shared ``InMemoryStore``
for tests and demos. Each unit of work operates on a private snapshot of
the store; ``commit`` publishes the changed records and ``rollback``
discards them. Processing instances carry the same optimistic version
check as the SQL implementation.
"""
from copy import deepcopy
from datetime import datetime
from itertools import count
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple
import logging

from stagegate.application.interfaces import IUnitOfWork
from stagegate.domain.entities import Order, ProcessingInstance, StageDefinition, TransitionRecord
from stagegate.domain.enums import ProcessingStatus
from stagegate.domain.exceptions import ConcurrencyError, DataIntegrityError
from stagegate.domain.repositories import (
    AuditLogRepository,
    HistoryRepository,
    OrderRepository,
    ProcessingRepository,
    StageCatalog,
)


logger = logging.getLogger(__name__)


class InMemoryStore:
    """Committed state shared by every in-memory unit of work."""

    def __init__(self):
        self.orders: Dict[int, Order] = {}
        self.stages: Dict[int, StageDefinition] = {}
        self.processings: Dict[int, ProcessingInstance] = {}
        self.history: List[TransitionRecord] = []
        self.audit_entries: List[Dict[str, Any]] = []
        self._order_ids = count(1)
        self._processing_ids = count(1)
        self._child_ids = count(1)

    def next_order_id(self) -> int:
        return next(self._order_ids)

    def next_processing_id(self) -> int:
        return next(self._processing_ids)

    def next_child_id(self) -> int:
        return next(self._child_ids)


class _Workspace:
    """Private snapshot of the store plus the keys changed since it was taken."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.orders = deepcopy(store.orders)
        self.stages = deepcopy(store.stages)
        self.processings = deepcopy(store.processings)
        self.base_versions = {pid: p.version for pid, p in store.processings.items()}
        self.new_history: List[TransitionRecord] = []
        self.new_audit: List[Dict[str, Any]] = []
        self.dirty_orders: Set[int] = set()
        self.dirty_stages: Set[int] = set()
        self.dirty_processings: Set[int] = set()

    @property
    def has_changes(self) -> bool:
        return bool(
            self.dirty_orders or self.dirty_stages or self.dirty_processings
            or self.new_history or self.new_audit
        )


class InMemoryOrderRepository(OrderRepository):

    def __init__(self, ws: _Workspace):
        self._ws = ws

    def get(self, order_id: int) -> Optional[Order]:
        return deepcopy(self._ws.orders.get(order_id))

    def add(self, order: Order) -> Order:
        order.id = self._ws.store.next_order_id()
        self._ws.orders[order.id] = deepcopy(order)
        self._ws.dirty_orders.add(order.id)
        return order

    def update(self, order: Order) -> None:
        if order.id not in self._ws.orders:
            raise DataIntegrityError(f"Order {order.id} not found")
        self._ws.orders[order.id] = deepcopy(order)
        self._ws.dirty_orders.add(order.id)

    def find_created_between(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[Order]:
        result = []
        for order_id in sorted(self._ws.orders):
            order = self._ws.orders[order_id]
            if date_from is not None and (order.created_at is None or order.created_at < date_from):
                continue
            if date_to is not None and (order.created_at is None or order.created_at > date_to):
                continue
            result.append(deepcopy(order))
        return result


class InMemoryStageCatalog(StageCatalog):

    def __init__(self, ws: _Workspace):
        self._ws = ws

    def list_active(self) -> List[StageDefinition]:
        return [s for s in self.list_all() if s.is_active]

    def list_all(self) -> List[StageDefinition]:
        return sorted(self._ws.stages.values(), key=lambda s: (s.display_order, s.id))

    def get(self, stage_id: int) -> Optional[StageDefinition]:
        return self._ws.stages.get(stage_id)

    def add(self, stage: StageDefinition) -> StageDefinition:
        self._ws.stages[stage.id] = stage
        self._ws.dirty_stages.add(stage.id)
        return stage


class InMemoryProcessingRepository(ProcessingRepository):

    def __init__(self, ws: _Workspace):
        self._ws = ws

    def add(self, instance: ProcessingInstance) -> ProcessingInstance:
        instance.id = self._ws.store.next_processing_id()
        instance.version = 1
        self._assign_child_ids(instance)
        self._ws.processings[instance.id] = deepcopy(instance)
        self._ws.dirty_processings.add(instance.id)
        return instance

    def get(self, instance_id: int) -> Optional[ProcessingInstance]:
        return deepcopy(self._ws.processings.get(instance_id))

    def list_for_order(self, order_id: int) -> List[ProcessingInstance]:
        return [
            deepcopy(p) for pid, p in sorted(self._ws.processings.items())
            if p.order_id == order_id
        ]

    def update(self, instance: ProcessingInstance) -> None:
        current = self._ws.processings.get(instance.id)
        if current is None:
            raise DataIntegrityError(f"Processing instance {instance.id} not found")
        if current.version != instance.version:
            raise ConcurrencyError(
                f"Processing instance {instance.id} was modified concurrently "
                f"(expected version {instance.version}, found {current.version})"
            )
        instance.version += 1
        self._assign_child_ids(instance)
        self._ws.processings[instance.id] = deepcopy(instance)
        self._ws.dirty_processings.add(instance.id)

    def find_unchecked_in_progress(self) -> List[ProcessingInstance]:
        return [
            deepcopy(p) for _, p in sorted(self._ws.processings.items())
            if p.status is ProcessingStatus.IN_PROGRESS and p.quality_checked_at is None
        ]

    def assignment_stats(self, actor_id: int, since: datetime) -> Tuple[int, int]:
        window = [
            p for p in self._ws.processings.values()
            if p.assigned_to == actor_id and p.created_at is not None and p.created_at >= since
        ]
        completed = sum(1 for p in window if p.status is ProcessingStatus.COMPLETED)
        return len(window), completed

    def has_status(self, order_id: int, statuses: Iterable[ProcessingStatus]) -> bool:
        wanted = set(statuses)
        return any(p.order_id == order_id and p.status in wanted for p in self._ws.processings.values())

    def list_completed_for_stage(
        self,
        stage_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[ProcessingInstance]:
        result = []
        for _, p in sorted(self._ws.processings.items()):
            if p.stage_id != stage_id or p.status is not ProcessingStatus.COMPLETED:
                continue
            if date_from is not None and (p.completed_at is None or p.completed_at < date_from):
                continue
            if date_to is not None and (p.completed_at is None or p.completed_at > date_to):
                continue
            result.append(deepcopy(p))
        return result

    def _assign_child_ids(self, instance: ProcessingInstance) -> None:
        for child in list(instance.sorting_results) + list(instance.cutting_results):
            if child.id is None:
                child.id = self._ws.store.next_child_id()


class InMemoryHistoryRepository(HistoryRepository):

    def __init__(self, ws: _Workspace):
        self._ws = ws

    def append(self, record: TransitionRecord) -> None:
        self._ws.new_history.append(record)

    def list_for_order(self, order_id: int) -> List[TransitionRecord]:
        records = self._ws.store.history + self._ws.new_history
        return [r for r in records if r.order_id == order_id]


class InMemoryAuditLogRepository(AuditLogRepository):

    def __init__(self, ws: _Workspace):
        self._ws = ws

    def append(self, entry: Dict[str, Any]) -> None:
        self._ws.new_audit.append(dict(entry))

    def list_for_order(self, order_id: int) -> List[Dict[str, Any]]:
        entries = self._ws.store.audit_entries + self._ws.new_audit
        return [dict(e) for e in entries if e["order_id"] == order_id]


class InMemoryUnitOfWork(IUnitOfWork):
    """
    Unit of Work over an ``InMemoryStore``.

    Usage:
        store = InMemoryStore()
        with InMemoryUnitOfWork(store) as uow:
            uow.orders.add(order)
            uow.commit()
    """

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._ws: Optional[_Workspace] = None

    def __enter__(self) -> "InMemoryUnitOfWork":
        self._begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._ws is not None and self._ws.has_changes:
            self.rollback()

    def _begin(self) -> None:
        self._ws = _Workspace(self._store)
        self.orders = InMemoryOrderRepository(self._ws)
        self.stages = InMemoryStageCatalog(self._ws)
        self.processings = InMemoryProcessingRepository(self._ws)
        self.history = InMemoryHistoryRepository(self._ws)
        self.audit_log = InMemoryAuditLogRepository(self._ws)

    def commit(self):
        """Publish the workspace's changes to the store."""
        ws = self._ws
        store = self._store

        for pid in ws.dirty_processings:
            base = ws.base_versions.get(pid)
            stored = store.processings.get(pid)
            if base is not None and (stored is None or stored.version != base):
                self.rollback()
                raise ConcurrencyError(f"Processing instance {pid} was modified concurrently")

        for oid in ws.dirty_orders:
            store.orders[oid] = deepcopy(ws.orders[oid])
        for sid in ws.dirty_stages:
            store.stages[sid] = ws.stages[sid]
        for pid in ws.dirty_processings:
            store.processings[pid] = deepcopy(ws.processings[pid])
        store.history.extend(ws.new_history)
        store.audit_entries.extend(ws.new_audit)

        logger.info("✅ Transaction committed")
        # Continue from the freshly committed state
        self._begin()

    def rollback(self):
        """Discard every staged change."""
        if self._ws is not None and self._ws.has_changes:
            logger.warning("Transaction rolled back")
        self._begin()


def in_memory_uow_factory(store: InMemoryStore) -> Callable[[], InMemoryUnitOfWork]:
    """Factory producing a fresh unit of work per operation."""
    return lambda: InMemoryUnitOfWork(store)

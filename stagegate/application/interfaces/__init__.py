"""Application layer interfaces."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from stagegate.domain.entities import Order, ProcessingInstance
from stagegate.domain.enums import Capability
from stagegate.domain.events import StageAuditEvent
from stagegate.domain.repositories import (
    AuditLogRepository,
    HistoryRepository,
    OrderRepository,
    ProcessingRepository,
    StageCatalog,
)


class IUnitOfWork(ABC):
    """
    Transaction boundary exposing the repositories.

    Usage:
        with uow_factory() as uow:
            instance = uow.processings.get(instance_id)
            ...
            uow.commit()

    Leaving the block without ``commit()`` discards every change.
    """

    orders: OrderRepository
    stages: StageCatalog
    processings: ProcessingRepository
    history: HistoryRepository
    audit_log: AuditLogRepository

    def __enter__(self) -> "IUnitOfWork":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Uncommitted work is always discarded
        self.rollback()

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass


class IClock(ABC):
    """Source of the current time (naive UTC)."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class IAuditSink(ABC):
    """
    Receiver of stage audit events.

    Delivery is best-effort: callers retry a bounded number of times and
    never fail the business operation because of the sink.
    """

    @abstractmethod
    def publish(self, event: StageAuditEvent) -> None:
        """
        Deliver one audit event.

        Args:
            event: Stage event; ``event.to_audit_record()`` gives the flat record

        Raises:
            Exception: If delivery fails
        """
        pass


class IAuthorizer(ABC):
    """Yes/no capability check for an actor on a processing instance."""

    @abstractmethod
    def is_allowed(
        self,
        actor_id: Optional[int],
        capability: Capability,
        instance: ProcessingInstance,
    ) -> bool:
        """
        Check whether the actor holds the capability for this instance.

        Args:
            actor_id: Acting user
            capability: Capability required by the operation
            instance: Instance the operation targets

        Returns:
            True when the operation is allowed
        """
        pass


@dataclass(frozen=True)
class AllocationOutcome:
    """Pass/fail material allocation with its estimated cost."""
    success: bool
    estimated_cost: Optional[Decimal] = None
    message: str = ""


class IMaterialAllocator(ABC):
    """Material allocation and cost estimation for an order."""

    @abstractmethod
    def allocate(self, order: Order) -> AllocationOutcome:
        pass


__all__ = [
    "AllocationOutcome",
    "IAuditSink",
    "IAuthorizer",
    "IClock",
    "IMaterialAllocator",
    "IUnitOfWork",
]

"""In-memory persistence adapters."""

from .in_memory import (
    InMemoryAuditLogRepository,
    InMemoryHistoryRepository,
    InMemoryOrderRepository,
    InMemoryProcessingRepository,
    InMemoryStageCatalog,
    InMemoryStore,
    InMemoryUnitOfWork,
    in_memory_uow_factory,
)

__all__ = [
    "InMemoryAuditLogRepository",
    "InMemoryHistoryRepository",
    "InMemoryOrderRepository",
    "InMemoryProcessingRepository",
    "InMemoryStageCatalog",
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "in_memory_uow_factory",
]

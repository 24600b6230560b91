"""Domain repository interfaces."""

from .history_repository import AuditLogRepository, HistoryRepository
from .order_repository import OrderRepository
from .processing_repository import ProcessingRepository
from .stage_catalog import StageCatalog

__all__ = [
    "AuditLogRepository",
    "HistoryRepository",
    "OrderRepository",
    "ProcessingRepository",
    "StageCatalog",
]

"""SQLAlchemy repository implementations."""

from .sqlalchemy_history_repository import SQLAlchemyAuditLogRepository, SQLAlchemyHistoryRepository
from .sqlalchemy_order_repository import SQLAlchemyOrderRepository
from .sqlalchemy_processing_repository import SQLAlchemyProcessingRepository
from .sqlalchemy_stage_catalog import SQLAlchemyStageCatalog

__all__ = [
    "SQLAlchemyAuditLogRepository",
    "SQLAlchemyHistoryRepository",
    "SQLAlchemyOrderRepository",
    "SQLAlchemyProcessingRepository",
    "SQLAlchemyStageCatalog",
]

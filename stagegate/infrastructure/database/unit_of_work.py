"""
Unit of Work Pattern Implementation.

Manages database transactions and repository lifecycle.
"""
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session, sessionmaker

from stagegate.application.interfaces import IUnitOfWork
from stagegate.infrastructure.database.repositories import (
    SQLAlchemyAuditLogRepository,
    SQLAlchemyHistoryRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyProcessingRepository,
    SQLAlchemyStageCatalog,
)


logger = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of Work pattern implementation.

    Opens one session per ``with`` block and exposes the repositories bound
    to it.

    Usage:
        with SqlAlchemyUnitOfWork(session_factory) as uow:
            instance = uow.processings.get(instance_id)
            instance.start(actor_id, now)
            uow.processings.update(instance)
            uow.commit()
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize Unit of Work.

        Args:
            session_factory: SQLAlchemy session factory
        """
        self._session_factory = session_factory
        self.session: Optional[Session] = None
        self._committed = False

    def __enter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self._session_factory()
        self._committed = False
        self.orders = SQLAlchemyOrderRepository(self.session)
        self.stages = SQLAlchemyStageCatalog(self.session)
        self.processings = SQLAlchemyProcessingRepository(self.session)
        self.history = SQLAlchemyHistoryRepository(self.session)
        self.audit_log = SQLAlchemyAuditLogRepository(self.session)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """
        Exit context.

        Rolls back transaction if exception occurred or nothing was committed.
        """
        try:
            if exc_type is not None:
                # Callers log the failure at the level its type calls for
                self.rollback()
            elif not self._committed:
                self.session.rollback()
        finally:
            self.session.close()

    def commit(self):
        """Commit transaction."""
        try:
            self.session.commit()
            self._committed = True
            logger.info("✅ Transaction committed")
        except Exception as e:
            logger.error(f"❌ Commit failed: {e}")
            self.rollback()
            raise

    def rollback(self):
        """Rollback transaction."""
        self.session.rollback()
        logger.warning("Transaction rolled back")


def sqlalchemy_uow_factory(session_factory: sessionmaker) -> Callable[[], SqlAlchemyUnitOfWork]:
    """Factory producing a fresh unit of work per operation."""
    return lambda: SqlAlchemyUnitOfWork(session_factory)

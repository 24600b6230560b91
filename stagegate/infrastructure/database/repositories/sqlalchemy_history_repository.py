"""SQLAlchemy stage history and audit log."""
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from stagegate.domain.entities import TransitionRecord
from stagegate.domain.repositories import AuditLogRepository, HistoryRepository
from stagegate.infrastructure.database.mappers import HistoryMapper
from stagegate.infrastructure.database.models import AuditEntryModel, StageHistoryModel


class SQLAlchemyHistoryRepository(HistoryRepository):

    def __init__(self, session: Session):
        self.session = session

    def append(self, record: TransitionRecord) -> None:
        self.session.add(HistoryMapper.to_model(record))
        self.session.flush()

    def list_for_order(self, order_id: int) -> List[TransitionRecord]:
        stmt = (
            select(StageHistoryModel)
            .where(StageHistoryModel.order_id == order_id)
            .order_by(StageHistoryModel.id)
        )
        return [HistoryMapper.to_domain(row) for row in self.session.scalars(stmt)]


class SQLAlchemyAuditLogRepository(AuditLogRepository):

    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: Dict[str, Any]) -> None:
        self.session.add(AuditEntryModel(
            order_id=entry["order_id"],
            stage_id=entry["stage_id"],
            action=entry["action"],
            actor_id=entry.get("actor_id"),
            note=entry.get("note"),
            timestamp=entry["timestamp"],
        ))
        self.session.flush()

    def list_for_order(self, order_id: int) -> List[Dict[str, Any]]:
        stmt = (
            select(AuditEntryModel)
            .where(AuditEntryModel.order_id == order_id)
            .order_by(AuditEntryModel.id)
        )
        return [
            {
                "order_id": row.order_id,
                "stage_id": row.stage_id,
                "action": row.action,
                "actor_id": row.actor_id,
                "note": row.note,
                "timestamp": row.timestamp,
            }
            for row in self.session.scalars(stmt)
        ]

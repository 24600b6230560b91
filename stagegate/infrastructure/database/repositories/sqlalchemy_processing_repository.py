"""
SQLAlchemy ProcessingInstance Repository Implementation.

Updates are guarded by the row's ``version`` column. A version mismatch,
detected up front or by SQLAlchemy at flush time, surfaces as
``ConcurrencyError``.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from stagegate.domain.entities import ProcessingInstance
from stagegate.domain.enums import ProcessingStatus
from stagegate.domain.exceptions import ConcurrencyError, DataIntegrityError
from stagegate.domain.repositories import ProcessingRepository
from stagegate.infrastructure.database.mappers import ProcessingMapper
from stagegate.infrastructure.database.models import ProcessingInstanceModel


logger = logging.getLogger(__name__)

_LOAD = (
    selectinload(ProcessingInstanceModel.sorting_results),
    selectinload(ProcessingInstanceModel.cutting_results),
)


class SQLAlchemyProcessingRepository(ProcessingRepository):

    def __init__(self, session: Session):
        self.session = session

    def add(self, instance: ProcessingInstance) -> ProcessingInstance:
        row = ProcessingMapper.apply(instance, ProcessingInstanceModel())
        self.session.add(row)
        self.session.flush()
        instance.id = row.id
        instance.version = row.version
        instance.created_at = row.created_at
        ProcessingMapper.sync_child_ids(instance, row)
        return instance

    def get(self, instance_id: int) -> Optional[ProcessingInstance]:
        row = self.session.get(ProcessingInstanceModel, instance_id, options=list(_LOAD))
        return ProcessingMapper.to_domain(row) if row is not None else None

    def list_for_order(self, order_id: int) -> List[ProcessingInstance]:
        stmt = (
            select(ProcessingInstanceModel)
            .options(*_LOAD)
            .where(ProcessingInstanceModel.order_id == order_id)
            .order_by(ProcessingInstanceModel.id)
        )
        return [ProcessingMapper.to_domain(row) for row in self.session.scalars(stmt)]

    def update(self, instance: ProcessingInstance) -> None:
        row = self.session.get(ProcessingInstanceModel, instance.id)
        if row is None:
            raise DataIntegrityError(f"Processing instance {instance.id} not found")
        if row.version != instance.version:
            raise ConcurrencyError(
                f"Processing instance {instance.id} was modified concurrently "
                f"(expected version {instance.version}, found {row.version})"
            )

        ProcessingMapper.apply(instance, row)
        try:
            self.session.flush()
        except StaleDataError as e:
            raise ConcurrencyError(
                f"Processing instance {instance.id} was modified concurrently"
            ) from e

        instance.version = row.version
        ProcessingMapper.sync_child_ids(instance, row)

    def find_unchecked_in_progress(self) -> List[ProcessingInstance]:
        stmt = (
            select(ProcessingInstanceModel)
            .options(*_LOAD)
            .where(
                ProcessingInstanceModel.status == ProcessingStatus.IN_PROGRESS.value,
                ProcessingInstanceModel.quality_checked_at.is_(None),
            )
            .order_by(ProcessingInstanceModel.id)
        )
        return [ProcessingMapper.to_domain(row) for row in self.session.scalars(stmt)]

    def assignment_stats(self, actor_id: int, since: datetime) -> Tuple[int, int]:
        base = select(func.count(ProcessingInstanceModel.id)).where(
            ProcessingInstanceModel.assigned_to == actor_id,
            ProcessingInstanceModel.created_at >= since,
        )
        total = self.session.scalar(base) or 0
        completed = self.session.scalar(
            base.where(ProcessingInstanceModel.status == ProcessingStatus.COMPLETED.value)
        ) or 0
        return total, completed

    def has_status(self, order_id: int, statuses: Iterable[ProcessingStatus]) -> bool:
        values = [s.value for s in statuses]
        stmt = select(func.count(ProcessingInstanceModel.id)).where(
            ProcessingInstanceModel.order_id == order_id,
            ProcessingInstanceModel.status.in_(values),
        )
        return (self.session.scalar(stmt) or 0) > 0

    def list_completed_for_stage(
        self,
        stage_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[ProcessingInstance]:
        stmt = (
            select(ProcessingInstanceModel)
            .options(*_LOAD)
            .where(
                ProcessingInstanceModel.stage_id == stage_id,
                ProcessingInstanceModel.status == ProcessingStatus.COMPLETED.value,
            )
        )
        if date_from is not None:
            stmt = stmt.where(ProcessingInstanceModel.completed_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(ProcessingInstanceModel.completed_at <= date_to)
        return [ProcessingMapper.to_domain(row) for row in self.session.scalars(stmt.order_by(ProcessingInstanceModel.id))]

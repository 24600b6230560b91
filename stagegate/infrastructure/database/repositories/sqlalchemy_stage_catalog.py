"""SQLAlchemy stage catalog."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stagegate.domain.entities import StageDefinition
from stagegate.domain.repositories import StageCatalog
from stagegate.infrastructure.database.mappers import StageMapper
from stagegate.infrastructure.database.models import StageDefinitionModel


class SQLAlchemyStageCatalog(StageCatalog):

    def __init__(self, session: Session):
        self.session = session

    def list_active(self) -> List[StageDefinition]:
        stmt = (
            select(StageDefinitionModel)
            .where(StageDefinitionModel.is_active.is_(True))
            .order_by(StageDefinitionModel.display_order, StageDefinitionModel.id)
        )
        return [StageMapper.to_domain(row) for row in self.session.scalars(stmt)]

    def list_all(self) -> List[StageDefinition]:
        stmt = select(StageDefinitionModel).order_by(
            StageDefinitionModel.display_order, StageDefinitionModel.id
        )
        return [StageMapper.to_domain(row) for row in self.session.scalars(stmt)]

    def get(self, stage_id: int) -> Optional[StageDefinition]:
        row = self.session.get(StageDefinitionModel, stage_id)
        return StageMapper.to_domain(row) if row is not None else None

    def add(self, stage: StageDefinition) -> StageDefinition:
        self.session.add(StageMapper.to_model(stage))
        self.session.flush()
        return stage

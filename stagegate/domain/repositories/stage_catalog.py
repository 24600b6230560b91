"""Repository interface for stage definitions."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..entities.stage_definition import StageDefinition


class StageCatalog(ABC):
    """Ordered catalog of processing stages."""

    @abstractmethod
    def list_active(self) -> List[StageDefinition]:
        """Active stages sorted by ``display_order``."""
        pass

    @abstractmethod
    def list_all(self) -> List[StageDefinition]:
        """All stages (active or not) sorted by ``display_order``."""
        pass

    @abstractmethod
    def get(self, stage_id: int) -> Optional[StageDefinition]:
        pass

    @abstractmethod
    def add(self, stage: StageDefinition) -> StageDefinition:
        pass

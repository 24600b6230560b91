"""Repository interface for processing instances."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from ..entities.processing_instance import ProcessingInstance
from ..enums import ProcessingStatus


class ProcessingRepository(ABC):
    """Abstract repository for ProcessingInstance persistence."""

    @abstractmethod
    def add(self, instance: ProcessingInstance) -> ProcessingInstance:
        """Persist a new instance and assign its identifier.

        Args:
            instance: Instance to persist

        Returns:
            The stored instance with ``id`` populated
        """
        pass

    @abstractmethod
    def get(self, instance_id: int) -> Optional[ProcessingInstance]:
        pass

    @abstractmethod
    def list_for_order(self, order_id: int) -> List[ProcessingInstance]:
        """All instances of an order, in no particular order."""
        pass

    @abstractmethod
    def update(self, instance: ProcessingInstance) -> None:
        """Persist changes with an optimistic version check.

        Args:
            instance: Instance carrying the version it was loaded with

        Raises:
            ConcurrencyError: If the stored version moved since the load
        """
        pass

    @abstractmethod
    def find_unchecked_in_progress(self) -> List[ProcessingInstance]:
        """In-progress instances that have no quality check yet."""
        pass

    @abstractmethod
    def assignment_stats(self, actor_id: int, since: datetime) -> Tuple[int, int]:
        """Count instances assigned to an actor since a point in time.

        Args:
            actor_id: Assignee
            since: Window start, compared against ``created_at``

        Returns:
            Tuple ``(total, completed)``
        """
        pass

    @abstractmethod
    def has_status(self, order_id: int, statuses: Iterable[ProcessingStatus]) -> bool:
        """True when any instance of the order is in one of the statuses."""
        pass

    @abstractmethod
    def list_completed_for_stage(
        self,
        stage_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[ProcessingInstance]:
        """Completed instances of a stage, filtered on ``completed_at``."""
        pass

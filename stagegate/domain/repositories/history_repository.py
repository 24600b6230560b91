"""Append-only repositories for stage history and audit entries."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..entities.transition_record import TransitionRecord


class HistoryRepository(ABC):
    """Stage history. Records are never updated or deleted."""

    @abstractmethod
    def append(self, record: TransitionRecord) -> None:
        pass

    @abstractmethod
    def list_for_order(self, order_id: int) -> List[TransitionRecord]:
        """History of an order, oldest first."""
        pass


class AuditLogRepository(ABC):
    """Audit entries written inside approval transactions."""

    @abstractmethod
    def append(self, entry: Dict[str, Any]) -> None:
        """Store an audit record (``order_id, stage_id, action, actor_id, note, timestamp``)."""
        pass

    @abstractmethod
    def list_for_order(self, order_id: int) -> List[Dict[str, Any]]:
        pass

"""
Stage Domain Events.

Every stage transition and gate decision produces one of these. Each event
flattens to the audit record ``{order_id, stage_id, action, actor_id, note,
timestamp}``.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base import DomainEvent


@dataclass
class StageAuditEvent(DomainEvent):
    """Common shape of all stage events."""

    order_id: int = 0
    stage_id: int = 0
    processing_id: Optional[int] = None
    action: str = ""
    note: Optional[str] = None

    def __post_init__(self):
        """Set aggregate_id to order_id."""
        if not self.aggregate_id and self.order_id:
            object.__setattr__(self, 'aggregate_id', str(self.order_id))
        super().__post_init__()

    def to_audit_record(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "stage_id": self.stage_id,
            "action": self.action,
            "actor_id": self.user_id,
            "note": self.note,
            "timestamp": self.occurred_at,
        }


@dataclass
class StageTransitionedEvent(StageAuditEvent):
    """
    A processing instance changed status or recorded stage data.

    ``action`` is one of the history actions (start, complete, skip,
    weight_approved, measurements_recorded, sorting_completed,
    cutting_completed, transfer_completed).
    """

    previous_stage: Optional[str] = None
    new_stage: Optional[str] = None


@dataclass
class ApprovalGrantedEvent(StageAuditEvent):
    """A stage instance was approved, automatically or by a manager."""

    auto_approved: bool = False


@dataclass
class ApprovalDeniedEvent(StageAuditEvent):
    """The approval gate refused auto-approval."""
    pass


@dataclass
class QualityCheckedEvent(StageAuditEvent):
    """The quality sweep scored an instance."""

    score: float = 0.0
    requires_human_review: bool = False


@dataclass
class HumanReviewRequiredEvent(StageAuditEvent):
    """The quality sweep escalated an instance to a human reviewer."""
    pass

"""Domain events."""

from .base import DomainEvent
from .stage_events import (
    ApprovalDeniedEvent,
    ApprovalGrantedEvent,
    HumanReviewRequiredEvent,
    QualityCheckedEvent,
    StageAuditEvent,
    StageTransitionedEvent,
)

__all__ = [
    "ApprovalDeniedEvent",
    "ApprovalGrantedEvent",
    "DomainEvent",
    "HumanReviewRequiredEvent",
    "QualityCheckedEvent",
    "StageAuditEvent",
    "StageTransitionedEvent",
]

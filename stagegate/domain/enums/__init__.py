"""Domain enums."""

from .processing_status import Capability, OrderPriority, ProcessingStatus, TransitionAction
from .stage_kind import StageKind, StageType

__all__ = [
    "Capability",
    "OrderPriority",
    "ProcessingStatus",
    "StageKind",
    "StageType",
    "TransitionAction",
]

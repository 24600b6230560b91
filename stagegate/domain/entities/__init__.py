"""Domain entities."""

from .order import Order, SelectedMaterial
from .processing_instance import Approval, CuttingResult, ProcessingInstance, SortingResult
from .stage_definition import StageDefinition
from .transition_record import TransitionRecord

__all__ = [
    "Approval",
    "CuttingResult",
    "Order",
    "ProcessingInstance",
    "SelectedMaterial",
    "SortingResult",
    "StageDefinition",
    "TransitionRecord",
]

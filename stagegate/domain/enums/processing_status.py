"""
Processing status enums.

Status, action and priority values shared by the workflow and both gates.
"""
from enum import Enum


class ProcessingStatus(str, Enum):
    """Lifecycle status of a processing instance."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    # Set by collaborators outside the workflow (e.g. a machine fault report)
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ProcessingStatus.COMPLETED,
            ProcessingStatus.SKIPPED,
            ProcessingStatus.CANCELLED,
            ProcessingStatus.FAILED,
        )

    @property
    def is_open(self) -> bool:
        return self in (ProcessingStatus.PENDING, ProcessingStatus.IN_PROGRESS)


class TransitionAction(str, Enum):
    """Actions recorded in the stage history."""

    START = "start"
    COMPLETE = "complete"
    SKIP = "skip"
    WEIGHT_APPROVED = "weight_approved"
    SORTING_COMPLETED = "sorting_completed"
    CUTTING_COMPLETED = "cutting_completed"
    MEASUREMENTS_RECORDED = "measurements_recorded"
    TRANSFER_COMPLETED = "transfer_completed"


class OrderPriority(str, Enum):
    """Order priority values."""

    NORMAL = "normal"
    HIGH = "high"


class Capability(str, Enum):
    """Capabilities checked against the external authorizer."""

    APPROVE_WEIGHT = "approve_weight"
    RECORD_SORTING = "record_sorting"
    RECORD_CUTTING = "record_cutting"
    RECORD_MEASUREMENTS = "record_measurements"
    MANAGE_TRANSFER = "manage_transfer"
    APPROVE_STAGE = "approve_stage"

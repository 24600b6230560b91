"""
Processing instance entity.

One row per (order, stage). Carries the lifecycle status, the stage-specific
measurements and the approval flags the gates read and set.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..enums import ProcessingStatus
from ..exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Approval:
    """Who approved something, when, and why."""
    approved_by: Optional[int]
    approved_at: datetime
    note: Optional[str] = None


@dataclass
class SortingResult:
    """Split of one source roll into two rolls plus waste."""
    material_id: int
    original_weight: Decimal
    roll1_weight: Decimal
    roll2_weight: Decimal
    waste_weight: Decimal
    original_width: Optional[Decimal] = None
    roll1_width: Optional[Decimal] = None
    roll2_width: Optional[Decimal] = None
    roll1_location: Optional[str] = None
    roll2_location: Optional[str] = None
    waste_reason: Optional[str] = None
    notes: Optional[str] = None
    sorted_by: Optional[int] = None
    sorted_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def total_weight(self) -> Decimal:
        return self.roll1_weight + self.roll2_weight + self.waste_weight


@dataclass
class CuttingResult:
    """One cut piece with its target and actual dimensions."""
    target_length: Decimal
    actual_length: Decimal
    target_width: Optional[Decimal] = None
    actual_width: Optional[Decimal] = None
    id: Optional[int] = None

    def is_within_tolerance(self, tolerance: float) -> bool:
        """True when the actual length is within ``tolerance`` of the target."""
        return abs(self.actual_length - self.target_length) <= Decimal(str(tolerance)) * self.target_length


def _average(values: List[Optional[Decimal]]) -> Optional[Decimal]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present, Decimal("0")) / len(present)


@dataclass
class ProcessingInstance:
    """
    Per-order, per-stage processing record.

    Terminal statuses (completed, skipped, cancelled, failed) never revert:
    status transitions raise ``InvalidTransitionError`` when called out of
    one. Approval flags and the post-sorting transfer may still be set on a
    completed instance.
    """
    order_id: int
    stage_id: int
    id: Optional[int] = None
    status: ProcessingStatus = ProcessingStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assigned_to: Optional[int] = None
    actual_duration: Optional[float] = None  # minutes
    notes: Optional[str] = None

    # Skip data
    skip_reason: Optional[str] = None
    skipped_at: Optional[datetime] = None
    skipped_by: Optional[int] = None

    # Warehouse measurements
    weight_received: Optional[Decimal] = None
    weight_transferred: Optional[Decimal] = None
    weight_balance: Optional[Decimal] = None
    transfer_destination: Optional[str] = None

    # Sorting summary
    roll1_weight: Optional[Decimal] = None
    roll2_weight: Optional[Decimal] = None
    sorting_waste_weight: Optional[Decimal] = None
    roll1_width: Optional[Decimal] = None
    roll2_width: Optional[Decimal] = None
    roll1_location: Optional[str] = None
    roll2_location: Optional[str] = None

    # Measured dimensions
    measured_length: Optional[Decimal] = None
    measured_width: Optional[Decimal] = None
    measured_thickness: Optional[Decimal] = None
    material_received: Optional[str] = None

    # Approval flags
    transfer_approval: Optional[Approval] = None
    sorting_approval: Optional[Approval] = None
    cutting_approval: Optional[Approval] = None
    weight_received_approval: Optional[Approval] = None

    # Post-sorting transfer
    post_sorting_destination: Optional[str] = None
    destination_warehouse: Optional[str] = None
    transfer_completed: bool = False
    transfer_completed_at: Optional[datetime] = None

    # Quality sweep
    quality_score: Optional[float] = None
    quality_checked_at: Optional[datetime] = None
    requires_human_review: bool = False
    quality_check_data: Optional[Dict[str, Any]] = None

    sorting_results: List[SortingResult] = field(default_factory=list)
    cutting_results: List[CuttingResult] = field(default_factory=list)

    # Optimistic lock counter
    version: int = 0
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.status, ProcessingStatus):
            self.status = ProcessingStatus(self.status)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def transfer_approved(self) -> bool:
        return self.transfer_approval is not None

    @property
    def sorting_approved(self) -> bool:
        return self.sorting_approval is not None

    @property
    def cutting_approved(self) -> bool:
        return self.cutting_approval is not None

    @property
    def weight_received_approved(self) -> bool:
        return self.weight_received_approval is not None

    def _ensure_active(self, action: str) -> None:
        # Completed instances still accept approvals and the post-sorting transfer
        if self.is_terminal and self.status is not ProcessingStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Cannot {action} processing instance in status '{self.status.value}'",
                processing_id=self.id,
                status=self.status.value,
            )

    def _ensure_not_terminal(self, action: str) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Cannot {action} processing instance in status '{self.status.value}'",
                processing_id=self.id,
                status=self.status.value,
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, actor_id: Optional[int], now: datetime) -> None:
        """Move a pending instance to in_progress and assign it to the actor."""
        if self.status is not ProcessingStatus.PENDING:
            raise InvalidTransitionError(
                f"Only pending instances can be started (status '{self.status.value}')",
                processing_id=self.id,
                status=self.status.value,
            )
        self.status = ProcessingStatus.IN_PROGRESS
        self.started_at = now
        self.assigned_to = actor_id

    def complete(self, now: datetime) -> None:
        """Mark the instance completed and record its duration in minutes."""
        self._ensure_not_terminal("complete")
        self.status = ProcessingStatus.COMPLETED
        self.completed_at = now
        self.actual_duration = self.elapsed_minutes(now) if self.started_at else 0.0

    def can_be_skipped(self, skippable: bool) -> bool:
        return skippable and self.status.is_open

    def skip(self, actor_id: Optional[int], reason: Optional[str], now: datetime) -> None:
        self._ensure_not_terminal("skip")
        self.status = ProcessingStatus.SKIPPED
        self.skip_reason = reason
        self.skipped_at = now
        self.skipped_by = actor_id

    def elapsed_minutes(self, now: datetime) -> float:
        if self.started_at is None:
            return 0.0
        return (now - self.started_at).total_seconds() / 60

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    def approve_transfer(self, actor_id: Optional[int], now: datetime, note: Optional[str] = None) -> None:
        self._ensure_active("approve transfer of")
        if not self.transfer_approved:
            self.transfer_approval = Approval(actor_id, now, note)

    def approve_sorting(self, actor_id: Optional[int], now: datetime, note: Optional[str] = None) -> None:
        self._ensure_active("approve sorting of")
        if not self.sorting_approved:
            self.sorting_approval = Approval(actor_id, now, note)

    def approve_cutting(self, actor_id: Optional[int], now: datetime, note: Optional[str] = None) -> None:
        self._ensure_active("approve cutting of")
        if not self.cutting_approved:
            self.cutting_approval = Approval(actor_id, now, note)

    def approve_weight_received(
        self, weight: Decimal, actor_id: Optional[int], now: datetime, note: Optional[str] = None
    ) -> None:
        self._ensure_not_terminal("approve weight of")
        self.weight_received = weight
        self.weight_received_approval = Approval(actor_id, now, note)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_transfer(self, weight_transferred: Decimal, destination: str) -> None:
        """Record a warehouse transfer and recompute the weight balance."""
        self._ensure_not_terminal("record transfer on")
        if self.weight_received is None:
            raise InvalidTransitionError(
                "Weight received must be recorded before transfer",
                processing_id=self.id,
                status=self.status.value,
            )
        self.weight_transferred = weight_transferred
        self.transfer_destination = destination
        self.weight_balance = self.weight_received - weight_transferred

    def record_sorting_results(self, results: List[SortingResult]) -> None:
        """Store sorting results and the roll/waste summary."""
        self._ensure_not_terminal("record sorting results on")
        self.sorting_results = list(results)
        self.roll1_weight = sum((r.roll1_weight for r in results), Decimal("0"))
        self.roll2_weight = sum((r.roll2_weight for r in results), Decimal("0"))
        self.sorting_waste_weight = sum((r.waste_weight for r in results), Decimal("0"))
        self.roll1_width = _average([r.roll1_width for r in results])
        self.roll2_width = _average([r.roll2_width for r in results])
        self.roll1_location = next((r.roll1_location for r in results if r.roll1_location), None)
        self.roll2_location = next((r.roll2_location for r in results if r.roll2_location), None)

    def record_cutting_results(self, results: List[CuttingResult]) -> None:
        self._ensure_not_terminal("record cutting results on")
        self.cutting_results = list(results)

    def record_measurements(
        self,
        length: Optional[Decimal] = None,
        width: Optional[Decimal] = None,
        thickness: Optional[Decimal] = None,
        material_received: Optional[str] = None,
    ) -> None:
        """Record the measured stock; only the given values are set."""
        self._ensure_not_terminal("record measurements on")
        if length is not None:
            self.measured_length = length
        if width is not None:
            self.measured_width = width
        if thickness is not None:
            self.measured_thickness = thickness
        if material_received:
            self.material_received = material_received

    def complete_post_sorting_transfer(
        self, destination_warehouse: str, destination_type: str, now: datetime
    ) -> None:
        self._ensure_active("transfer")
        if not self.sorting_approved:
            raise InvalidTransitionError(
                "Sorting must be approved before transfer",
                processing_id=self.id,
                status=self.status.value,
            )
        self.post_sorting_destination = destination_type
        self.destination_warehouse = destination_warehouse
        self.transfer_completed = True
        self.transfer_completed_at = now
        if self.status.is_open:
            self.complete(now)

    def record_quality_check(
        self, score: float, requires_review: bool, payload: Dict[str, Any], now: datetime
    ) -> None:
        self.quality_score = score
        self.quality_checked_at = now
        self.requires_human_review = requires_review
        self.quality_check_data = payload

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def has_measurements(self) -> bool:
        return any(
            v is not None
            for v in (self.measured_length, self.measured_width, self.measured_thickness, self.material_received)
        )

    @property
    def total_sorted_weight(self) -> Decimal:
        """roll1 + roll2 + waste, treating unmeasured parts as zero."""
        return (
            (self.roll1_weight or Decimal("0"))
            + (self.roll2_weight or Decimal("0"))
            + (self.sorting_waste_weight or Decimal("0"))
        )

    @property
    def waste_ratio(self) -> Optional[float]:
        """Sorting waste as a fraction of the weight received."""
        if not self.weight_received or self.sorting_waste_weight is None:
            return None
        return float(self.sorting_waste_weight / self.weight_received)

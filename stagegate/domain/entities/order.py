"""
Order aggregate.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..enums import OrderPriority
from ..value_objects import DeliverySpecification


@dataclass
class SelectedMaterial:
    """Material roll allocated to an order."""
    material_id: int
    allocated_weight: Decimal = Decimal("0")
    allocated_cost: Decimal = Decimal("0")


@dataclass
class Order:
    """
    Manufacturing order moving through the stage pipeline.

    The workflow only touches ``current_stage``; everything else is read
    by the gates.
    """
    order_number: str
    id: Optional[int] = None
    required_weight: Optional[Decimal] = None
    delivery: DeliverySpecification = field(default_factory=DeliverySpecification)
    priority: OrderPriority = OrderPriority.NORMAL
    status: str = "processing"
    selected_materials: List[SelectedMaterial] = field(default_factory=list)

    # Pricing
    final_price: Optional[Decimal] = None
    estimated_material_cost: Optional[Decimal] = None

    delivery_deadline: Optional[datetime] = None
    current_stage: Optional[str] = None

    # Optional quality requirements
    material_type: Optional[str] = None
    quality_grade: Optional[int] = None

    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.priority, OrderPriority):
            self.priority = OrderPriority(self.priority)

    @property
    def is_high_priority(self) -> bool:
        return self.priority is OrderPriority.HIGH

    @property
    def allocated_weight(self) -> Decimal:
        return sum((m.allocated_weight for m in self.selected_materials), Decimal("0"))

    @property
    def allocated_cost(self) -> Decimal:
        return sum((m.allocated_cost for m in self.selected_materials), Decimal("0"))

    def owns_material(self, material_id: int) -> bool:
        """True when the material roll is allocated to this order."""
        return any(m.material_id == material_id for m in self.selected_materials)

    def hours_until_deadline(self, now: datetime) -> Optional[float]:
        """Hours left until the delivery deadline (negative once overdue)."""
        if self.delivery_deadline is None:
            return None
        return (self.delivery_deadline - now).total_seconds() / 3600

"""
Selected-materials allocator.

Decides allocation from the materials already selected on the order: the
allocation succeeds when the selected weight covers the required weight,
and the estimated cost is the sum of the selected materials' cost.
"""
from decimal import Decimal
import logging

from stagegate.application.interfaces import AllocationOutcome, IMaterialAllocator
from stagegate.domain.entities import Order


logger = logging.getLogger(__name__)


class SelectedMaterialsAllocator(IMaterialAllocator):

    def allocate(self, order: Order) -> AllocationOutcome:
        if not order.selected_materials:
            return AllocationOutcome(success=False, message="No materials selected for order")

        allocated = order.allocated_weight
        if order.required_weight is not None and allocated < Decimal(str(order.required_weight)):
            logger.info(
                f"Order {order.order_number}: allocated {allocated} "
                f"below required {order.required_weight}"
            )
            return AllocationOutcome(
                success=False,
                message=f"Allocated weight {allocated} below required {order.required_weight}",
            )

        return AllocationOutcome(
            success=True,
            estimated_cost=order.allocated_cost,
            message="Materials allocated",
        )

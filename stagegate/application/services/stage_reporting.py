"""
Read-only projections over orders and processing instances.

Reports do not serialise against writers; a dashboard may see a slightly
stale picture.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from stagegate.application.dtos import EfficiencyMetrics, OrderFilter, StageStatistics
from stagegate.application.interfaces import IUnitOfWork
from stagegate.domain.entities import Order
from stagegate.domain.enums import ProcessingStatus, StageType
from stagegate.domain.services import is_sorting_balanced


logger = logging.getLogger(__name__)

DEFAULT_STAGE_DURATION = 60


class StageReportingService:
    """Order listings, stage statistics and stage efficiency."""

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def filtered_orders(self, order_filter: Optional[OrderFilter] = None) -> List[Order]:
        """
        List orders matching the filter.

        ``sort_by="stage_priority"`` sorts high priority first, then by the
        current stage's catalog position, then oldest first.

        Args:
            order_filter: Filter and sort options

        Returns:
            Matching orders
        """
        f = order_filter or OrderFilter()
        with self._uow_factory() as uow:
            orders = uow.orders.find_created_between(f.date_from, f.date_to)
            positions = {s.label: s.display_order for s in uow.stages.list_all()}

        if f.stages:
            orders = [o for o in orders if o.current_stage in f.stages]
        if f.statuses:
            orders = [o for o in orders if o.status in f.statuses]
        if f.priority:
            orders = [o for o in orders if o.priority.value == f.priority]

        if f.sort_by == "stage_priority":
            unknown = max(positions.values(), default=0) + 1
            return sorted(
                orders,
                key=lambda o: (
                    0 if o.is_high_priority else 1,
                    positions.get(o.current_stage, unknown),
                    o.created_at or datetime.min,
                ),
            )

        if f.sort_by not in Order.__dataclass_fields__:
            logger.debug(f"Unknown sort field '{f.sort_by}', keeping insertion order")
            return orders

        present = [o for o in orders if getattr(o, f.sort_by) is not None]
        missing = [o for o in orders if getattr(o, f.sort_by) is None]
        present.sort(key=lambda o: getattr(o, f.sort_by), reverse=f.sort_direction == "desc")
        return present + missing

    def stage_statistics(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> StageStatistics:
        """Where orders created in the range currently sit."""
        with self._uow_factory() as uow:
            orders = uow.orders.find_created_between(date_from, date_to)
            stages = {s.id: s for s in uow.stages.list_all()}
            instances = [p for o in orders for p in uow.processings.list_for_order(o.id)]

        distribution = Counter(o.current_stage for o in orders)
        ranked = sorted(distribution.items(), key=lambda kv: kv[1], reverse=True)

        status_counts: Dict[str, Dict[str, int]] = defaultdict(dict)
        for p in instances:
            stage = stages.get(p.stage_id)
            label = stage.label if stage else str(p.stage_id)
            status_counts[label][p.status.value] = status_counts[label].get(p.status.value, 0) + 1

        durations = [
            p.actual_duration for p in instances
            if p.status is ProcessingStatus.COMPLETED and p.actual_duration is not None
        ]
        average = round(sum(durations) / len(durations), 2) if durations else 0.0

        return StageStatistics(
            total_orders=len(orders),
            stage_distribution={str(k): v for k, v in ranked},
            bottlenecks={str(k): v for k, v in ranked[:3]},
            status_counts=dict(status_counts),
            average_completion_time=average,
        )

    def efficiency_metrics(
        self,
        stage_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> EfficiencyMetrics:
        """Average duration of completed instances of a stage against its estimate."""
        with self._uow_factory() as uow:
            completed = uow.processings.list_completed_for_stage(stage_id, date_from, date_to)
            stage = uow.stages.get(stage_id)

        if not completed:
            return EfficiencyMetrics()

        estimated = stage.estimated_duration if stage and stage.estimated_duration else DEFAULT_STAGE_DURATION
        total = sum(p.actual_duration or estimated for p in completed)
        average = total / len(completed)
        rate = min(100.0, estimated / average * 100) if average > 0 else 100.0

        return EfficiencyMetrics(
            average_duration=round(average, 2),
            estimated_duration=estimated,
            efficiency_rate=round(rate, 2),
            total_completed=len(completed),
        )

    def sorting_summary(self, order_id: int) -> Dict[str, Any]:
        """Roll/waste summary of the order's sorting stage."""
        with self._uow_factory() as uow:
            stages = {s.id: s for s in uow.stages.list_all()}
            instance = next(
                (
                    p for p in uow.processings.list_for_order(order_id)
                    if p.stage_id in stages and stages[p.stage_id].kind.type is StageType.SORTING
                ),
                None,
            )

        if instance is None:
            return {"error": "No sorting stage found for this order"}

        def _s(value):
            return str(value) if value is not None else None

        return {
            "processing_id": instance.id,
            "status": instance.status.value,
            "approved": instance.sorting_approved,
            "approved_at": instance.sorting_approval.approved_at if instance.sorting_approval else None,
            "approved_by": instance.sorting_approval.approved_by if instance.sorting_approval else None,
            "total_input_weight": _s(instance.weight_received),
            "roll1_total_weight": _s(instance.roll1_weight),
            "roll1_avg_width": _s(instance.roll1_width),
            "roll2_total_weight": _s(instance.roll2_weight),
            "roll2_avg_width": _s(instance.roll2_width),
            "total_waste": _s(instance.sorting_waste_weight),
            "total_output": _s(instance.total_sorted_weight),
            "weight_balanced": is_sorting_balanced(instance),
            "transfer_completed": instance.transfer_completed,
            "destination": instance.post_sorting_destination,
            "destination_warehouse": instance.destination_warehouse,
            "results": [
                {
                    "material_id": r.material_id,
                    "original_weight": _s(r.original_weight),
                    "roll1_weight": _s(r.roll1_weight),
                    "roll1_width": _s(r.roll1_width),
                    "roll1_location": r.roll1_location,
                    "roll2_weight": _s(r.roll2_weight),
                    "roll2_width": _s(r.roll2_width),
                    "roll2_location": r.roll2_location,
                    "waste_weight": _s(r.waste_weight),
                    "waste_reason": r.waste_reason,
                    "sorted_by": r.sorted_by,
                    "sorted_at": r.sorted_at,
                }
                for r in instance.sorting_results
            ],
        }

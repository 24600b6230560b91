"""
Static mappers between domain entities and ORM rows.
"""
from typing import Optional

from stagegate.domain.entities import (
    Approval,
    CuttingResult,
    Order,
    ProcessingInstance,
    SelectedMaterial,
    SortingResult,
    StageDefinition,
    TransitionRecord,
)
from stagegate.domain.enums import OrderPriority, ProcessingStatus, TransitionAction
from stagegate.domain.value_objects import DeliverySpecification
from stagegate.infrastructure.database.models import (
    CuttingResultModel,
    OrderMaterialModel,
    OrderModel,
    ProcessingInstanceModel,
    SortingResultModel,
    StageDefinitionModel,
    StageHistoryModel,
)


# Approval flag prefix on the row -> attribute on the entity
_APPROVALS = {
    "transfer": "transfer_approval",
    "sorting": "sorting_approval",
    "cutting": "cutting_approval",
    "weight_received": "weight_received_approval",
}

# Plain columns copied one-to-one between entity and row
_INSTANCE_COLUMNS = (
    "order_id", "stage_id", "started_at", "completed_at", "assigned_to",
    "actual_duration", "notes", "skip_reason", "skipped_at", "skipped_by",
    "weight_received", "weight_transferred", "weight_balance", "transfer_destination",
    "roll1_weight", "roll2_weight", "sorting_waste_weight", "roll1_width", "roll2_width",
    "roll1_location", "roll2_location", "measured_length", "measured_width",
    "measured_thickness", "material_received", "post_sorting_destination",
    "destination_warehouse", "transfer_completed", "transfer_completed_at",
    "quality_score", "quality_checked_at", "requires_human_review", "quality_check_data",
    "created_at",
)


class OrderMapper:

    @staticmethod
    def to_domain(row: OrderModel) -> Order:
        return Order(
            id=row.id,
            order_number=row.order_number,
            status=row.status,
            priority=OrderPriority(row.priority),
            required_weight=row.required_weight,
            delivery=DeliverySpecification(
                width=row.delivery_width,
                length=row.delivery_length,
                thickness=row.delivery_thickness,
                grammage=row.delivery_grammage,
                quality=row.delivery_quality,
                quantity=row.delivery_quantity,
                weight=row.delivery_weight,
            ),
            selected_materials=[
                SelectedMaterial(
                    material_id=m.material_id,
                    allocated_weight=m.allocated_weight,
                    allocated_cost=m.allocated_cost,
                )
                for m in row.materials
            ],
            final_price=row.final_price,
            estimated_material_cost=row.estimated_material_cost,
            delivery_deadline=row.delivery_deadline,
            current_stage=row.current_stage,
            material_type=row.material_type,
            quality_grade=row.quality_grade,
            created_at=row.created_at,
        )

    @staticmethod
    def apply(order: Order, row: OrderModel) -> OrderModel:
        """Copy entity state onto a (new or loaded) row."""
        row.order_number = order.order_number
        row.status = order.status
        row.priority = order.priority.value
        row.required_weight = order.required_weight
        row.delivery_width = order.delivery.width
        row.delivery_length = order.delivery.length
        row.delivery_thickness = order.delivery.thickness
        row.delivery_grammage = order.delivery.grammage
        row.delivery_quality = order.delivery.quality
        row.delivery_quantity = order.delivery.quantity
        row.delivery_weight = order.delivery.weight
        row.final_price = order.final_price
        row.estimated_material_cost = order.estimated_material_cost
        row.delivery_deadline = order.delivery_deadline
        row.current_stage = order.current_stage
        row.material_type = order.material_type
        row.quality_grade = order.quality_grade
        if order.created_at is not None:
            row.created_at = order.created_at
        if not row.materials:
            row.materials = [
                OrderMaterialModel(
                    material_id=m.material_id,
                    allocated_weight=m.allocated_weight,
                    allocated_cost=m.allocated_cost,
                )
                for m in order.selected_materials
            ]
        return row


class StageMapper:

    @staticmethod
    def to_domain(row: StageDefinitionModel) -> StageDefinition:
        return StageDefinition(
            id=row.id,
            label=row.label,
            display_order=row.display_order,
            estimated_duration=row.estimated_duration,
            skippable=row.skippable,
            color=row.color,
            is_active=row.is_active,
        )

    @staticmethod
    def to_model(stage: StageDefinition) -> StageDefinitionModel:
        return StageDefinitionModel(
            id=stage.id,
            label=stage.label,
            display_order=stage.display_order,
            estimated_duration=stage.estimated_duration,
            skippable=stage.skippable,
            color=stage.color,
            is_active=stage.is_active,
        )


class ProcessingMapper:

    @staticmethod
    def to_domain(row: ProcessingInstanceModel) -> ProcessingInstance:
        instance = ProcessingInstance(
            order_id=row.order_id,
            stage_id=row.stage_id,
            id=row.id,
            status=ProcessingStatus(row.status),
            version=row.version,
        )
        for name in _INSTANCE_COLUMNS:
            setattr(instance, name, getattr(row, name))
        instance.transfer_completed = bool(row.transfer_completed)
        instance.requires_human_review = bool(row.requires_human_review)

        for prefix, attr in _APPROVALS.items():
            setattr(instance, attr, ProcessingMapper._approval(row, prefix))

        instance.sorting_results = [
            SortingResult(
                id=r.id,
                material_id=r.material_id,
                original_weight=r.original_weight,
                original_width=r.original_width,
                roll1_weight=r.roll1_weight,
                roll1_width=r.roll1_width,
                roll1_location=r.roll1_location,
                roll2_weight=r.roll2_weight,
                roll2_width=r.roll2_width,
                roll2_location=r.roll2_location,
                waste_weight=r.waste_weight,
                waste_reason=r.waste_reason,
                notes=r.notes,
                sorted_by=r.sorted_by,
                sorted_at=r.sorted_at,
            )
            for r in row.sorting_results
        ]
        instance.cutting_results = [
            CuttingResult(
                id=r.id,
                target_length=r.target_length,
                actual_length=r.actual_length,
                target_width=r.target_width,
                actual_width=r.actual_width,
            )
            for r in row.cutting_results
        ]
        return instance

    @staticmethod
    def apply(instance: ProcessingInstance, row: ProcessingInstanceModel) -> ProcessingInstanceModel:
        """Copy entity state onto a row; new child results are appended."""
        row.status = instance.status.value
        for name in _INSTANCE_COLUMNS:
            value = getattr(instance, name)
            if name == "created_at" and value is None:
                continue
            setattr(row, name, value)

        for prefix, attr in _APPROVALS.items():
            approval: Optional[Approval] = getattr(instance, attr)
            setattr(row, f"{prefix}_approved", approval is not None)
            setattr(row, f"{prefix}_approved_by", approval.approved_by if approval else None)
            setattr(row, f"{prefix}_approved_at", approval.approved_at if approval else None)
            setattr(row, f"{prefix}_notes", approval.note if approval else None)

        for r in instance.sorting_results:
            if r.id is None:
                row.sorting_results.append(SortingResultModel(
                    material_id=r.material_id,
                    original_weight=r.original_weight,
                    original_width=r.original_width,
                    roll1_weight=r.roll1_weight,
                    roll1_width=r.roll1_width,
                    roll1_location=r.roll1_location,
                    roll2_weight=r.roll2_weight,
                    roll2_width=r.roll2_width,
                    roll2_location=r.roll2_location,
                    waste_weight=r.waste_weight,
                    waste_reason=r.waste_reason,
                    notes=r.notes,
                    sorted_by=r.sorted_by,
                    sorted_at=r.sorted_at,
                ))
        for r in instance.cutting_results:
            if r.id is None:
                row.cutting_results.append(CuttingResultModel(
                    target_length=r.target_length,
                    actual_length=r.actual_length,
                    target_width=r.target_width,
                    actual_width=r.actual_width,
                ))
        return row

    @staticmethod
    def sync_child_ids(instance: ProcessingInstance, row: ProcessingInstanceModel) -> None:
        """Copy generated child ids back after a flush (children keep insertion order)."""
        for entity, model in zip(instance.sorting_results, row.sorting_results):
            entity.id = model.id
        for entity, model in zip(instance.cutting_results, row.cutting_results):
            entity.id = model.id

    @staticmethod
    def _approval(row: ProcessingInstanceModel, prefix: str) -> Optional[Approval]:
        if not getattr(row, f"{prefix}_approved"):
            return None
        return Approval(
            approved_by=getattr(row, f"{prefix}_approved_by"),
            approved_at=getattr(row, f"{prefix}_approved_at"),
            note=getattr(row, f"{prefix}_notes"),
        )


class HistoryMapper:

    @staticmethod
    def to_domain(row: StageHistoryModel) -> TransitionRecord:
        return TransitionRecord(
            id=row.id,
            order_id=row.order_id,
            stage_id=row.stage_id,
            action=TransitionAction(row.action),
            actor_id=row.actor_id,
            created_at=row.created_at,
            previous_stage=row.previous_stage,
            new_stage=row.new_stage,
            note=row.note,
        )

    @staticmethod
    def to_model(record: TransitionRecord) -> StageHistoryModel:
        return StageHistoryModel(
            order_id=record.order_id,
            stage_id=record.stage_id,
            previous_stage=record.previous_stage,
            new_stage=record.new_stage,
            action=record.action.value,
            actor_id=record.actor_id,
            note=record.note,
            created_at=record.created_at,
        )

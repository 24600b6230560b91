"""
Stage workflow.

State machine that moves an order through its processing stages and keeps
the authoritative transition history. Every mutating operation runs in one
unit of work: the instance changes and the history record commit together
or not at all.
"""

from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from stagegate.application.commands import CuttingResultInput, MeasurementInput, SortingResultInput
from stagegate.application.dtos import OperationResult
from stagegate.application.interfaces import IAuditSink, IAuthorizer, IClock, IUnitOfWork
from stagegate.application.services.approval_gate import ApprovalGate
from stagegate.application.services.stage_context import StageContext, load_stage_context
from stagegate.application.services.transactional import TransactionalService
from stagegate.domain.entities import (
    CuttingResult,
    Order,
    ProcessingInstance,
    SortingResult,
    StageDefinition,
    TransitionRecord,
)
from stagegate.domain.enums import Capability, ProcessingStatus, StageType, TransitionAction
from stagegate.domain.events import StageAuditEvent, StageTransitionedEvent
from stagegate.domain.exceptions import DataIntegrityError
from stagegate.domain.services import is_result_balanced


class StageWorkflow(TransactionalService):
    """Sequences a fixed stage list per order."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        clock: IClock,
        authorizer: IAuthorizer,
        audit: Optional[IAuditSink] = None,
        approval_gate: Optional[ApprovalGate] = None,
        audit_attempts: int = 3,
    ) -> None:
        super().__init__(uow_factory, clock, audit, audit_attempts)
        self._authorizer = authorizer
        self._approval_gate = approval_gate

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, order_id: int) -> OperationResult:
        """
        Create one pending instance per active stage, in catalog order.

        Args:
            order_id: Order to initialize

        Returns:
            OperationResult with the created instance ids
        """
        def work(uow, events):
            order = uow.orders.get(order_id)
            if order is None:
                return OperationResult.fail("Order not found")
            if uow.processings.list_for_order(order_id):
                return OperationResult.fail("Order stages already initialized")

            stages = uow.stages.list_active()
            if not stages:
                return OperationResult.fail("No active stages configured")

            now = self._clock.now()
            created = [
                uow.processings.add(ProcessingInstance(order_id=order_id, stage_id=stage.id, created_at=now))
                for stage in stages
            ]
            return OperationResult.ok(
                "Order stages initialized",
                {"order_id": order_id, "processing_ids": [p.id for p in created]},
            )

        return self._execute("initialize", work, order_id=order_id)

    def advance(self, order_id: int, actor_id: int, auto_approve: bool = False) -> OperationResult:
        """
        Complete the in-progress stage and start the next pending one.

        With no stage in progress, the first pending stage is started. When
        ``auto_approve`` is set the approval gate must approve the in-progress
        stage first; a denial leaves everything untouched.

        Args:
            order_id: Order to advance
            actor_id: Acting user, assigned to the started stage
            auto_approve: Consult the approval gate before completing

        Returns:
            OperationResult with the completed and started instance ids
        """
        def work(uow, events):
            order = uow.orders.get(order_id)
            if order is None:
                return OperationResult.fail("Order not found")

            now = self._clock.now()
            stages = self._stage_map(uow)
            instances = self._ordered_instances(uow.processings.list_for_order(order_id), stages)
            current = next((p for p in instances if p.status is ProcessingStatus.IN_PROGRESS), None)

            completed_id = None
            after_order = None
            if current is not None:
                stage = stages[current.stage_id]
                if auto_approve:
                    if self._approval_gate is None:
                        return OperationResult.fail("Approval gate not configured")
                    ctx = StageContext(instance=current, stage=stage, order=order)
                    decision = self._approval_gate.auto_approve_in(uow, ctx, actor_id, events)
                    if not decision.approved:
                        return OperationResult.fail(decision.reason)

                current.complete(now)
                uow.processings.update(current)
                self._record(uow, events, order, stage, current, TransitionAction.COMPLETE, actor_id, now)
                completed_id = current.id
                after_order = stage.display_order

            nxt = next(
                (
                    p for p in instances
                    if p.status is ProcessingStatus.PENDING
                    and (after_order is None or stages[p.stage_id].display_order > after_order)
                ),
                None,
            )
            if nxt is None:
                if current is None:
                    return OperationResult.fail("No pending stages available")
                return OperationResult.ok(
                    "Stage progression completed",
                    {"completed_id": completed_id, "started_id": None},
                )

            stage = stages[nxt.stage_id]
            nxt.start(actor_id, now)
            uow.processings.update(nxt)
            self._record(uow, events, order, stage, nxt, TransitionAction.START, actor_id, now)
            order.current_stage = stage.label
            uow.orders.update(order)

            return OperationResult.ok(
                "Stage progression completed",
                {"completed_id": completed_id, "started_id": nxt.id, "current_stage": stage.label},
            )

        return self._execute("advance", work, order_id=order_id, actor_id=actor_id)

    def skip(self, order_id: int, stage_id: int, actor_id: int, reason: Optional[str] = None) -> OperationResult:
        """Skip a skippable stage that is still pending or in progress."""
        def work(uow, events):
            order = uow.orders.get(order_id)
            if order is None:
                return OperationResult.fail("Order not found")

            instance = next(
                (p for p in uow.processings.list_for_order(order_id) if p.stage_id == stage_id),
                None,
            )
            if instance is None:
                return OperationResult.fail("Stage not found for this order")

            stage = uow.stages.get(stage_id)
            if stage is None:
                raise DataIntegrityError(f"Stage definition {stage_id} missing")
            if not instance.can_be_skipped(stage.skippable):
                return OperationResult.fail("Stage cannot be skipped")

            now = self._clock.now()
            instance.skip(actor_id, reason, now)
            uow.processings.update(instance)
            self._record(uow, events, order, stage, instance, TransitionAction.SKIP, actor_id, now, note=reason)
            return OperationResult.ok("Stage skipped successfully", {"processing_id": instance.id})

        return self._execute("skip", work, order_id=order_id, stage_id=stage_id, actor_id=actor_id)

    # ------------------------------------------------------------------
    # Stage-specific recording
    # ------------------------------------------------------------------

    def approve_weight_received(
        self,
        instance_id: int,
        actor_id: int,
        weight: Decimal,
        notes: Optional[str] = None,
    ) -> OperationResult:
        """Record the weight received at a warehouse or sorting stage."""
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            instance = ctx.instance

            match ctx.kind.type:
                case StageType.WAREHOUSE | StageType.SORTING:
                    pass
                case StageType.CUTTING | StageType.OTHER:
                    return OperationResult.fail("Not a warehouse or sorting stage")

            if not self._authorizer.is_allowed(actor_id, Capability.APPROVE_WEIGHT, instance):
                return OperationResult.fail("User not authorized to approve weight")
            if instance.weight_received_approved or instance.weight_received is not None:
                return OperationResult.fail("Weight already approved for this stage")

            amount = Decimal(str(weight))
            if amount <= 0:
                return OperationResult.fail("Weight must be greater than 0")

            now = self._clock.now()
            instance.approve_weight_received(amount, actor_id, now, notes)
            uow.processings.update(instance)
            self._record(
                uow, events, ctx.order, ctx.stage, instance,
                TransitionAction.WEIGHT_APPROVED, actor_id, now, note=notes,
            )
            return OperationResult.ok(
                "Weight received approved successfully",
                {"processing_id": instance.id, "weight_received": str(amount)},
            )

        return self._execute("approve_weight_received", work, processing_id=instance_id, actor_id=actor_id)

    def record_sorting_results(
        self,
        instance_id: int,
        actor_id: int,
        results: Sequence[SortingResultInput],
    ) -> OperationResult:
        """Store validated sorting results and complete the sorting stage."""
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            instance = ctx.instance

            if not ctx.kind.is_sorting:
                return OperationResult.fail("Not a sorting stage")
            if not self._authorizer.is_allowed(actor_id, Capability.RECORD_SORTING, instance):
                return OperationResult.fail("User not authorized to perform sorting")
            if instance.sorting_results:
                return OperationResult.fail("Sorting results already recorded for this stage")

            errors = self.validate_sorting_data(results, ctx.order)
            if errors:
                return OperationResult.fail("Sorting data validation failed", errors)

            now = self._clock.now()
            instance.record_sorting_results([self._to_result(r, actor_id, now) for r in results])
            instance.complete(now)
            uow.processings.update(instance)
            self._record(
                uow, events, ctx.order, ctx.stage, instance,
                TransitionAction.SORTING_COMPLETED, actor_id, now,
            )
            return OperationResult.ok(
                "Sorting results recorded successfully",
                {
                    "processing_id": instance.id,
                    "roll1_weight": str(instance.roll1_weight),
                    "roll2_weight": str(instance.roll2_weight),
                    "waste_weight": str(instance.sorting_waste_weight),
                },
            )

        return self._execute("record_sorting_results", work, processing_id=instance_id, actor_id=actor_id)

    def record_cutting_results(
        self,
        instance_id: int,
        actor_id: int,
        results: Sequence[CuttingResultInput],
    ) -> OperationResult:
        """Store the cut pieces and complete the cutting stage."""
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            instance = ctx.instance

            if not ctx.kind.is_cutting:
                return OperationResult.fail("Not a cutting stage")
            if not self._authorizer.is_allowed(actor_id, Capability.RECORD_CUTTING, instance):
                return OperationResult.fail("User not authorized to perform cutting")
            if instance.cutting_results:
                return OperationResult.fail("Cutting results already recorded for this stage")

            errors = self.validate_cutting_data(results)
            if errors:
                return OperationResult.fail("Cutting data validation failed", errors)

            now = self._clock.now()
            instance.record_cutting_results([
                CuttingResult(
                    target_length=r.target_length,
                    actual_length=r.actual_length,
                    target_width=r.target_width,
                    actual_width=r.actual_width,
                )
                for r in results
            ])
            instance.complete(now)
            uow.processings.update(instance)
            self._record(
                uow, events, ctx.order, ctx.stage, instance,
                TransitionAction.CUTTING_COMPLETED, actor_id, now,
            )
            return OperationResult.ok(
                "Cutting results recorded successfully",
                {"processing_id": instance.id, "pieces": len(results)},
            )

        return self._execute("record_cutting_results", work, processing_id=instance_id, actor_id=actor_id)

    def record_measurements(
        self,
        instance_id: int,
        actor_id: int,
        measurements: MeasurementInput,
    ) -> OperationResult:
        """
        Record the measured dimensions and material of an open stage.

        The quality gate compares these against the order's delivery
        specification. They can be written once per instance.
        """
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            instance = ctx.instance

            if not self._authorizer.is_allowed(actor_id, Capability.RECORD_MEASUREMENTS, instance):
                return OperationResult.fail("User not authorized to record measurements")
            if instance.has_measurements:
                return OperationResult.fail("Measurements already recorded for this stage")

            if measurements.is_empty:
                return OperationResult.fail("No measurements provided")
            for name in ("length", "width", "thickness"):
                value = getattr(measurements, name)
                if value is not None and value <= 0:
                    return OperationResult.fail(f"Measured {name} must be greater than 0")

            now = self._clock.now()
            instance.record_measurements(
                length=measurements.length,
                width=measurements.width,
                thickness=measurements.thickness,
                material_received=measurements.material_received,
            )
            uow.processings.update(instance)
            self._record(
                uow, events, ctx.order, ctx.stage, instance,
                TransitionAction.MEASUREMENTS_RECORDED, actor_id, now,
            )
            return OperationResult.ok(
                "Measurements recorded successfully",
                {"processing_id": instance.id},
            )

        return self._execute("record_measurements", work, processing_id=instance_id, actor_id=actor_id)

    def manage_transfer(
        self,
        instance_id: int,
        actor_id: int,
        destination: str,
        destination_type: str = "cutting_warehouse",
        weight_transferred: Optional[Decimal] = None,
    ) -> OperationResult:
        """
        Record a material transfer out of a warehouse or sorting stage.

        Warehouse stages record the transferred weight and recompute the
        balance. Sorting stages perform the post-sorting transfer, which
        requires sorting approval and completes the instance.
        """
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            instance = ctx.instance

            if ctx.kind.type not in (StageType.WAREHOUSE, StageType.SORTING):
                return OperationResult.fail("Transfers apply only to warehouse and sorting stages")
            if not self._authorizer.is_allowed(actor_id, Capability.MANAGE_TRANSFER, instance):
                return OperationResult.fail("User not authorized to manage transfer")

            now = self._clock.now()
            match ctx.kind.type:
                case StageType.WAREHOUSE:
                    if instance.weight_received is None:
                        return OperationResult.fail("Weight received must be recorded before transfer")
                    if instance.weight_transferred is not None:
                        return OperationResult.fail("Transfer already recorded for this stage")
                    if weight_transferred is None:
                        return OperationResult.fail("Transferred weight is required")
                    amount = Decimal(str(weight_transferred))
                    if amount < 0:
                        return OperationResult.fail("Transferred weight cannot be negative")
                    instance.record_transfer(amount, destination)
                case StageType.SORTING:
                    if not instance.sorting_approved:
                        return OperationResult.fail("Sorting must be approved before transfer")
                    if instance.transfer_completed:
                        return OperationResult.fail("Transfer already completed for this stage")
                    instance.complete_post_sorting_transfer(destination, destination_type, now)
                case StageType.CUTTING | StageType.OTHER:
                    return OperationResult.fail("Transfers apply only to warehouse and sorting stages")

            uow.processings.update(instance)
            self._record(
                uow, events, ctx.order, ctx.stage, instance,
                TransitionAction.TRANSFER_COMPLETED, actor_id, now,
                note=f"Transferred to {destination_type} - {destination}",
            )
            data = {"processing_id": instance.id, "destination": destination, "destination_type": destination_type}
            if instance.weight_balance is not None:
                data["weight_balance"] = str(instance.weight_balance)
            return OperationResult.ok("Materials transferred successfully", data)

        return self._execute("manage_transfer", work, processing_id=instance_id, actor_id=actor_id)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_sorting_data(results: Sequence[SortingResultInput], order: Order) -> List[str]:
        """
        Validate submitted sorting results.

        Args:
            results: Submitted results
            order: Order the sorted materials must belong to

        Returns:
            List of errors (empty when valid)
        """
        if not results:
            return ["At least one sorting result is required"]

        errors = []
        for r in results:
            mid = r.material_id
            if not order.owns_material(mid):
                errors.append(f"Order material not found for ID {mid}")
                continue

            if r.original_weight <= 0:
                errors.append(f"Invalid original weight for material {mid}")
            if r.roll1_weight < 0:
                errors.append(f"Invalid roll 1 weight for material {mid}")
            if r.roll2_weight < 0:
                errors.append(f"Invalid roll 2 weight for material {mid}")
            if r.waste_weight < 0:
                errors.append(f"Invalid waste weight for material {mid}")

            total = r.roll1_weight + r.roll2_weight + r.waste_weight
            if not is_result_balanced(SortingResult(
                material_id=mid,
                original_weight=r.original_weight,
                roll1_weight=r.roll1_weight,
                roll2_weight=r.roll2_weight,
                waste_weight=r.waste_weight,
            )):
                errors.append(
                    f"Weight imbalance for material {mid}: input {r.original_weight}, output {total}"
                )

            if r.roll1_weight <= 0 and r.roll2_weight <= 0:
                errors.append(f"At least one roll must have weight greater than 0 for material {mid}")
            if r.roll1_width is not None and r.roll1_width <= 0:
                errors.append(f"Invalid roll 1 width for material {mid}")
            if r.roll2_width is not None and r.roll2_width <= 0:
                errors.append(f"Invalid roll 2 width for material {mid}")
            if r.roll1_weight > 0 and not r.roll1_location:
                errors.append(f"Roll 1 location is required when weight > 0 for material {mid}")
            if r.roll2_weight > 0 and not r.roll2_location:
                errors.append(f"Roll 2 location is required when weight > 0 for material {mid}")
            if r.waste_weight > 0 and not r.waste_reason:
                errors.append(f"Waste reason is required when waste weight > 0 for material {mid}")

        return errors

    @staticmethod
    def validate_cutting_data(results: Sequence[CuttingResultInput]) -> List[str]:
        """Errors for submitted cut pieces, numbered from 1."""
        if not results:
            return ["At least one cutting result is required"]

        errors = []
        for n, r in enumerate(results, start=1):
            if r.target_length <= 0:
                errors.append(f"Invalid target length for piece {n}")
            if r.actual_length <= 0:
                errors.append(f"Invalid actual length for piece {n}")
            if r.target_width is not None and r.target_width <= 0:
                errors.append(f"Invalid target width for piece {n}")
            if r.actual_width is not None and r.actual_width <= 0:
                errors.append(f"Invalid actual width for piece {n}")
        return errors

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _stage_map(uow: IUnitOfWork) -> Dict[int, StageDefinition]:
        return {stage.id: stage for stage in uow.stages.list_all()}

    @staticmethod
    def _ordered_instances(
        instances: List[ProcessingInstance], stages: Dict[int, StageDefinition]
    ) -> List[ProcessingInstance]:
        for instance in instances:
            if instance.stage_id not in stages:
                raise DataIntegrityError(
                    f"Stage definition {instance.stage_id} missing for processing instance {instance.id}"
                )
        return sorted(instances, key=lambda p: (stages[p.stage_id].display_order, p.id or 0))

    @staticmethod
    def _to_result(r: SortingResultInput, actor_id: int, now) -> SortingResult:
        return SortingResult(
            material_id=r.material_id,
            original_weight=r.original_weight,
            roll1_weight=r.roll1_weight,
            roll2_weight=r.roll2_weight,
            waste_weight=r.waste_weight,
            original_width=r.original_width,
            roll1_width=r.roll1_width,
            roll2_width=r.roll2_width,
            roll1_location=r.roll1_location,
            roll2_location=r.roll2_location,
            waste_reason=r.waste_reason,
            notes=r.notes,
            sorted_by=actor_id,
            sorted_at=now,
        )

    def _record(
        self,
        uow: IUnitOfWork,
        events: List[StageAuditEvent],
        order: Order,
        stage: StageDefinition,
        instance: ProcessingInstance,
        action: TransitionAction,
        actor_id: Optional[int],
        now,
        note: Optional[str] = None,
    ) -> None:
        """Append a history record and queue the matching audit event."""
        record = TransitionRecord(
            order_id=order.id,
            stage_id=stage.id,
            action=action,
            actor_id=actor_id,
            created_at=now,
            previous_stage=order.current_stage,
            new_stage=stage.label,
            note=note,
        )
        uow.history.append(record)
        events.append(StageTransitionedEvent(
            order_id=order.id,
            stage_id=stage.id,
            processing_id=instance.id,
            action=action.value,
            note=note,
            user_id=actor_id,
            occurred_at=now,
            previous_stage=record.previous_stage,
            new_stage=record.new_stage,
        ))

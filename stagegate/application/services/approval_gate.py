"""
Approval gate.

Decides whether a stage instance may be approved without a human and
performs the approval. A decision has two parts that must both hold:

- routine classification (raw measurements inside auto-approval bounds)
- smart validation (weight balance, quality standards, timeline, cost)

Smart approval adds advanced criteria on top: assignee track record,
order priority and the order's history of failed stages.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from stagegate.application.dtos import OperationResult
from stagegate.application.interfaces import (
    IAuditSink,
    IAuthorizer,
    IClock,
    IMaterialAllocator,
    IUnitOfWork,
)
from stagegate.application.services.stage_context import StageContext, load_stage_context
from stagegate.application.services.transactional import TransactionalService
from stagegate.domain.enums import Capability, ProcessingStatus, StageType
from stagegate.domain.events import ApprovalDeniedEvent, ApprovalGrantedEvent, StageAuditEvent
from stagegate.domain.services import check_weight_balance, is_sorting_balanced
from stagegate.domain.value_objects import ApprovalDecision, CheckResult
from stagegate.settings import GateSettings


NOT_ROUTINE = "Operation is not routine and requires manual approval"
FAILED_VALIDATION = "Operation failed smart validation checks"
AUTO_APPROVED = "Auto-approved based on routine operation and validation checks"

_AUTO_NOTES = {
    StageType.WAREHOUSE: "Auto-approved for routine warehouse operation",
    StageType.SORTING: "Auto-approved for routine sorting operation",
    StageType.CUTTING: "Auto-approved for routine cutting operation",
}


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


class ApprovalGate(TransactionalService):
    """
    Automated approval of warehouse, sorting and cutting stages.

    Every public operation opens its own unit of work. ``auto_approve_in``
    evaluates and grants inside a caller's unit of work so the workflow can
    approve and complete a stage atomically.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        clock: IClock,
        audit: Optional[IAuditSink] = None,
        authorizer: Optional[IAuthorizer] = None,
        allocator: Optional[IMaterialAllocator] = None,
        settings: Optional[GateSettings] = None,
        audit_attempts: int = 3,
    ) -> None:
        super().__init__(uow_factory, clock, audit, audit_attempts)
        self._authorizer = authorizer
        self._allocator = allocator
        self._settings = settings or GateSettings()

    # ------------------------------------------------------------------
    # Routine classification
    # ------------------------------------------------------------------

    def classify_routine(self, ctx: StageContext) -> CheckResult:
        """
        Check whether the instance's measurements are routine for its stage.

        Args:
            ctx: Instance with its stage and order

        Returns:
            CheckResult naming the first bound that was not met
        """
        s = self._settings
        instance = ctx.instance

        match ctx.kind.type:
            case StageType.WAREHOUSE:
                received = instance.weight_received
                if received is None or received <= 0:
                    return CheckResult.fail("weight received not recorded")
                if received > _dec(s.routine_max_weight):
                    return CheckResult.fail("weight received exceeds routine maximum")
                if not instance.transfer_destination:
                    return CheckResult.fail("transfer destination not set")
                if instance.weight_balance is None or instance.weight_balance < _dec(s.routine_min_balance):
                    return CheckResult.fail("weight balance below routine minimum")
                return CheckResult.ok()

            case StageType.SORTING:
                received = instance.weight_received
                if received is None or received <= 0:
                    return CheckResult.fail("weight received not recorded")
                if not is_sorting_balanced(instance):
                    return CheckResult.fail("sorting weight does not balance")
                if not ((instance.roll1_weight or 0) > 0 or (instance.roll2_weight or 0) > 0):
                    return CheckResult.fail("no roll output recorded")
                if instance.sorting_waste_weight is None:
                    return CheckResult.fail("sorting waste not recorded")
                if instance.sorting_waste_weight > _dec(s.routine_waste_ratio) * received:
                    return CheckResult.fail("waste percentage exceeds routine threshold")
                return CheckResult.ok()

            case StageType.CUTTING:
                if not instance.cutting_results:
                    return CheckResult.fail("no cutting results recorded")
                if ctx.order.delivery.errors_for_stage(ctx.kind):
                    return CheckResult.fail("delivery specification errors")
                return CheckResult.ok()

            case StageType.OTHER:
                return CheckResult.fail(f"stage '{ctx.kind.name}' is never routine")

    def is_routine_operation(self, ctx: StageContext) -> bool:
        return self.classify_routine(ctx).passed

    # ------------------------------------------------------------------
    # Smart validation
    # ------------------------------------------------------------------

    def validate_weight_balance(self, ctx: StageContext) -> CheckResult:
        return check_weight_balance(ctx.kind, ctx.instance, self._settings.balance_tolerance)

    def validate_quality_standards(self, ctx: StageContext) -> CheckResult:
        errors = ctx.order.delivery.errors_for_stage(ctx.kind)
        if errors:
            return CheckResult.fail("delivery specification errors: " + "; ".join(errors))

        instance = ctx.instance
        match ctx.kind.type:
            case StageType.SORTING:
                if not instance.sorting_results:
                    return CheckResult.fail("no sorting results recorded")
                if not instance.weight_received:
                    return CheckResult.fail("weight received not recorded")
                waste = instance.sorting_waste_weight or Decimal("0")
                # Exactly at the limit is rejected
                if waste >= _dec(self._settings.quality_waste_ratio) * instance.weight_received:
                    return CheckResult.fail("waste percentage exceeds threshold")
            case StageType.CUTTING:
                if not instance.cutting_results:
                    return CheckResult.fail("no cutting results recorded")
            case StageType.WAREHOUSE | StageType.OTHER:
                pass
        return CheckResult.ok()

    def validate_timeline_compliance(self, ctx: StageContext, now: Optional[datetime] = None) -> CheckResult:
        now = now or self._clock.now()
        s = self._settings
        instance = ctx.instance
        estimated = ctx.stage.estimated_duration

        if estimated and instance.started_at is not None:
            elapsed = instance.actual_duration
            if elapsed is None:
                elapsed = instance.elapsed_minutes(now)
            if elapsed > s.timeline_grace * estimated:
                return CheckResult.fail("stage is overdue beyond the grace period")

        hours_left = ctx.order.hours_until_deadline(now)
        if hours_left is not None:
            stage_hours = (estimated or s.default_stage_duration) / 60
            if hours_left < stage_hours + s.deadline_buffer_hours:
                return CheckResult.fail("not enough time left before the delivery deadline")

        return CheckResult.ok()

    def validate_cost_efficiency(
        self, ctx: StageContext, estimated_material_cost: Optional[Decimal] = None
    ) -> CheckResult:
        order = ctx.order
        if not order.final_price:
            return CheckResult.ok()

        s = self._settings
        price = float(order.final_price)
        instance = ctx.instance

        waste_ratio = instance.waste_ratio
        if waste_ratio and estimated_material_cost:
            waste_cost = waste_ratio * float(estimated_material_cost)
            if waste_cost > s.waste_cost_ratio * price:
                return CheckResult.fail("waste cost exceeds allowed share of final price")

        duration = instance.actual_duration
        if duration is None:
            duration = ctx.stage.estimated_duration or s.default_stage_duration
        labour_cost = (duration / 60) * s.hourly_rate
        if labour_cost > s.labour_cost_ratio * price:
            return CheckResult.fail("labour cost exceeds allowed share of final price")

        return CheckResult.ok()

    def estimated_material_cost(self, ctx: StageContext) -> Optional[Decimal]:
        """Order's estimate, else the allocator's cost when allocation passes."""
        if ctx.order.estimated_material_cost:
            return ctx.order.estimated_material_cost
        if self._allocator is None:
            return None
        outcome = self._allocator.allocate(ctx.order)
        if not outcome.success:
            self._logger.debug(f"Allocation failed for order {ctx.order.id}: {outcome.message}")
            return None
        return outcome.estimated_cost

    def passes_smart_validation(self, ctx: StageContext, now: Optional[datetime] = None) -> CheckResult:
        """Run the four smart-validation checks, stopping at the first failure."""
        now = now or self._clock.now()
        for check in (
            lambda: self.validate_weight_balance(ctx),
            lambda: self.validate_quality_standards(ctx),
            lambda: self.validate_timeline_compliance(ctx, now),
            lambda: self.validate_cost_efficiency(ctx, self.estimated_material_cost(ctx)),
        ):
            result = check()
            if not result:
                return result
        return CheckResult.ok()

    def validate_advanced_criteria(
        self, uow: IUnitOfWork, ctx: StageContext, now: Optional[datetime] = None
    ) -> CheckResult:
        now = now or self._clock.now()
        s = self._settings
        instance = ctx.instance

        if instance.assigned_to is not None:
            since = now - timedelta(days=s.performance_window_days)
            total, completed = uow.processings.assignment_stats(instance.assigned_to, since)
            rate = completed / total if total else 1.0
            if rate < s.min_completion_rate:
                return CheckResult.fail("assignee completion rate below threshold")

        if ctx.order.is_high_priority:
            return CheckResult.fail("high priority orders require manual approval")

        if uow.processings.has_status(
            ctx.order.id, (ProcessingStatus.CANCELLED, ProcessingStatus.FAILED)
        ):
            return CheckResult.fail("order has cancelled or failed stages")

        return CheckResult.ok()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def evaluate(self, ctx: StageContext, now: Optional[datetime] = None) -> ApprovalDecision:
        """Routine + smart validation, without granting anything."""
        now = now or self._clock.now()
        routine = self.classify_routine(ctx)
        if not routine:
            return ApprovalDecision(False, f"{NOT_ROUTINE}: {routine.reason}")
        smart = self.passes_smart_validation(ctx, now)
        if not smart:
            return ApprovalDecision(False, f"{FAILED_VALIDATION}: {smart.reason}")
        return ApprovalDecision(True, AUTO_APPROVED, auto_approved=True)

    def auto_approve_in(
        self,
        uow: IUnitOfWork,
        ctx: StageContext,
        actor_id: Optional[int],
        events: List[StageAuditEvent],
    ) -> ApprovalDecision:
        """
        Evaluate and, when eligible, grant inside an open unit of work.

        The caller owns the commit.
        """
        now = self._clock.now()
        decision = self.evaluate(ctx, now)
        if not decision.approved:
            events.append(self._denied_event(ctx, actor_id, decision.reason, now))
            return decision

        if not self._grant(uow, ctx, actor_id, _AUTO_NOTES.get(ctx.kind.type), True, events, now):
            return ApprovalDecision(False, "Auto-approval failed")
        return decision

    def auto_approve_if_eligible(self, instance_id: int, actor_id: Optional[int] = None) -> ApprovalDecision:
        """
        Approve the instance automatically when it is routine and passes smart validation.

        Args:
            instance_id: Processing instance to approve
            actor_id: Acting user, None for the system

        Returns:
            ApprovalDecision ``{approved, reason, auto_approved}``
        """
        holder = {}

        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                holder["decision"] = ApprovalDecision(False, "Processing instance not found")
                return OperationResult.fail(holder["decision"].reason)
            decision = self.auto_approve_in(uow, ctx, actor_id, events)
            holder["decision"] = decision
            if decision.approved:
                return OperationResult.ok(decision.reason, decision.to_dict())
            return OperationResult.fail(decision.reason)

        result = self._execute("auto_approve_if_eligible", work, processing_id=instance_id)
        decision = holder.get("decision")
        if result.success:
            self._logger.info(f"✅ Stage auto-approved (processing_id={instance_id})")
            return decision
        if decision is not None and decision.reason == result.message:
            return decision
        return ApprovalDecision(False, f"Error during auto approval process: {result.message}")

    def grant_auto_approval(self, instance_id: int, actor_id: Optional[int] = None) -> OperationResult:
        """
        Set the stage's approval flag and write an audit record, atomically.

        An already-set flag counts as approved. Any exception rolls the whole
        grant back.
        """
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            if not self._grant(uow, ctx, actor_id, _AUTO_NOTES.get(ctx.kind.type), True, events):
                return OperationResult.fail(f"Stage '{ctx.kind.name}' does not support approval")
            return OperationResult.ok("Stage approved", {"processing_id": instance_id})

        return self._execute("grant_auto_approval", work, processing_id=instance_id)

    def grant_smart_approval(self, instance_id: int, actor_id: Optional[int] = None) -> OperationResult:
        """Smart validation plus advanced criteria, then the standard grant."""
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            now = self._clock.now()

            smart = self.passes_smart_validation(ctx, now)
            if not smart:
                reason = f"{FAILED_VALIDATION}: {smart.reason}"
                events.append(self._denied_event(ctx, actor_id, reason, now))
                return OperationResult.fail(reason)

            advanced = self.validate_advanced_criteria(uow, ctx, now)
            if not advanced:
                events.append(self._denied_event(ctx, actor_id, advanced.reason, now))
                return OperationResult.fail(advanced.reason)

            note = _AUTO_NOTES.get(ctx.kind.type)
            if not self._grant(uow, ctx, actor_id, note, True, events, now):
                return OperationResult.fail(f"Stage '{ctx.kind.name}' does not support approval")
            return OperationResult.ok("Smart approval granted", {"processing_id": instance_id})

        return self._execute("grant_smart_approval", work, processing_id=instance_id)

    def approve_stage(self, instance_id: int, actor_id: int, note: Optional[str] = None) -> OperationResult:
        """
        Manual sign-off of an escalated stage by a manager.

        Args:
            instance_id: Processing instance to approve
            actor_id: Approving manager
            note: Optional approval note

        Returns:
            OperationResult
        """
        def work(uow, events):
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            if self._authorizer is None or not self._authorizer.is_allowed(
                actor_id, Capability.APPROVE_STAGE, ctx.instance
            ):
                return OperationResult.fail("User not authorized to approve this stage")
            if not self._grant(uow, ctx, actor_id, note or "Approved by manager", False, events):
                return OperationResult.fail(f"Stage '{ctx.kind.name}' does not support approval")
            return OperationResult.ok("Stage approved successfully", {"processing_id": instance_id})

        return self._execute("approve_stage", work, processing_id=instance_id, actor_id=actor_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _grant(
        self,
        uow: IUnitOfWork,
        ctx: StageContext,
        actor_id: Optional[int],
        note: Optional[str],
        auto: bool,
        events: List[StageAuditEvent],
        now: Optional[datetime] = None,
    ) -> bool:
        now = now or self._clock.now()
        instance = ctx.instance

        match ctx.kind.type:
            case StageType.WAREHOUSE:
                instance.approve_transfer(actor_id, now, note)
            case StageType.SORTING:
                instance.approve_sorting(actor_id, now, note)
            case StageType.CUTTING:
                instance.approve_cutting(actor_id, now, note)
            case StageType.OTHER:
                return False

        uow.processings.update(instance)
        event = ApprovalGrantedEvent(
            order_id=instance.order_id,
            stage_id=instance.stage_id,
            processing_id=instance.id,
            action="auto_approval" if auto else "manual_approval",
            note=note,
            user_id=actor_id,
            occurred_at=now,
            auto_approved=auto,
        )
        uow.audit_log.append(event.to_audit_record())
        events.append(event)
        return True

    @staticmethod
    def _denied_event(ctx: StageContext, actor_id: Optional[int], reason: str, now: datetime) -> ApprovalDeniedEvent:
        return ApprovalDeniedEvent(
            order_id=ctx.instance.order_id,
            stage_id=ctx.instance.stage_id,
            processing_id=ctx.instance.id,
            action="approval_denied",
            note=reason,
            user_id=actor_id,
            occurred_at=now,
        )

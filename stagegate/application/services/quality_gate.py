"""
Quality gate.

Scores in-progress stage instances on four weighted checks and flags the
ones a human must review:

    dimensions 30 | weight balance 20 | visual 25 | specifications 25
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from stagegate.application.dtos import OperationResult
from stagegate.application.interfaces import IAuditSink, IClock, IUnitOfWork
from stagegate.application.services.stage_context import StageContext, load_stage_context
from stagegate.application.services.transactional import TransactionalService
from stagegate.domain.enums import StageType
from stagegate.domain.events import HumanReviewRequiredEvent, QualityCheckedEvent
from stagegate.domain.services import check_weight_balance
from stagegate.domain.value_objects import QualityReport, VisualAnalysis
from stagegate.settings import GateSettings, QualitySettings


DIMENSIONS_WEIGHT = 30
WEIGHT_BALANCE_WEIGHT = 20
VISUAL_WEIGHT = 25
SPECIFICATIONS_WEIGHT = 25


def _within(measured: Optional[Decimal], target: Optional[Decimal], tolerance: float) -> bool:
    # Unmeasured or unspecified dimensions are not checked
    if measured is None or target is None:
        return True
    return abs(measured - target) <= target * Decimal(str(tolerance))


def assess_quality_grade(score: float) -> int:
    """Map a 0-100 score onto the 1-5 grade scale."""
    if score >= 90:
        return 5
    if score >= 80:
        return 4
    if score >= 70:
        return 3
    if score >= 60:
        return 2
    return 1


class QualityGate(TransactionalService):
    """Automated quality control of processing instances."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        clock: IClock,
        audit: Optional[IAuditSink] = None,
        settings: Optional[QualitySettings] = None,
        gate_settings: Optional[GateSettings] = None,
        audit_attempts: int = 3,
    ) -> None:
        super().__init__(uow_factory, clock, audit, audit_attempts)
        self._settings = settings or QualitySettings()
        self._gate_settings = gate_settings or GateSettings()

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_dimensions(self, ctx: StageContext) -> bool:
        """Measured length/width within 2% and thickness within 5% of the delivery spec."""
        s = self._settings
        spec = ctx.order.delivery
        instance = ctx.instance
        return (
            _within(instance.measured_length, spec.length, s.length_tolerance)
            and _within(instance.measured_width, spec.width, s.width_tolerance)
            and _within(instance.measured_thickness, spec.thickness, s.thickness_tolerance)
        )

    def check_weight_balance(self, ctx: StageContext) -> bool:
        return check_weight_balance(ctx.kind, ctx.instance, self._gate_settings.balance_tolerance).passed

    def cutting_precision(self, ctx: StageContext) -> float:
        """Share of cutting results within tolerance of their target length."""
        if not ctx.kind.is_cutting:
            return 1.0
        results = ctx.instance.cutting_results
        if not results:
            return 0.0
        tolerance = self._settings.cutting_length_tolerance
        accurate = sum(1 for r in results if r.is_within_tolerance(tolerance))
        return accurate / len(results)

    def perform_visual_analysis(self, ctx: StageContext) -> VisualAnalysis:
        instance = ctx.instance
        issues: List[str] = []

        match ctx.kind.type:
            case StageType.SORTING:
                if (
                    instance.weight_received is not None
                    and instance.sorting_waste_weight is not None
                    and instance.sorting_waste_weight
                    > instance.weight_received * Decimal(str(self._settings.waste_ratio))
                ):
                    issues.append("High waste percentage detected")
                if not instance.sorting_results:
                    issues.append("No sorting results recorded")
            case StageType.CUTTING:
                if not instance.cutting_results:
                    issues.append("No cutting results recorded")
                if self.cutting_precision(ctx) < self._settings.precision_issue_threshold:
                    issues.append("Low cutting precision detected")
            case StageType.WAREHOUSE | StageType.OTHER:
                pass

        return VisualAnalysis(issues=issues)

    def specification_errors(self, ctx: StageContext, provisional_score: float) -> List[str]:
        """
        Specification problems for the instance.

        The quality grade requirement is judged against ``provisional_score``:
        the score with the specification component counted as passed.
        """
        order = ctx.order
        errors = list(order.delivery.errors_for_stage(ctx.kind))

        if order.material_type and ctx.instance.material_received != order.material_type:
            errors.append(
                f"Material received '{ctx.instance.material_received}' does not match '{order.material_type}'"
            )

        if order.quality_grade is not None:
            grade = assess_quality_grade(provisional_score)
            if grade < order.quality_grade:
                errors.append(f"Quality grade {grade} below required grade {order.quality_grade}")

        return errors

    def validate_specifications(self, ctx: StageContext) -> bool:
        base = self._base_score(ctx)
        return not self.specification_errors(ctx, base + SPECIFICATIONS_WEIGHT)

    def calculate_overall_score(self, ctx: StageContext) -> float:
        score = self._base_score(ctx)
        if self.validate_specifications(ctx):
            score += SPECIFICATIONS_WEIGHT
        return min(100.0, max(0.0, score))

    def requires_human_review(self, ctx: StageContext, score: Optional[float] = None) -> bool:
        return bool(self._review_reasons(ctx, score))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def evaluate(self, ctx: StageContext, now: Optional[datetime] = None) -> QualityReport:
        """Build the quality report for a loaded instance."""
        now = now or self._clock.now()
        dims = self.check_dimensions(ctx)
        weight = self.check_weight_balance(ctx)
        visual = self.perform_visual_analysis(ctx)

        base = self._score_parts(dims, weight, visual)
        spec_errors = self.specification_errors(ctx, base + SPECIFICATIONS_WEIGHT)
        specs = not spec_errors
        score = min(100.0, max(0.0, base + (SPECIFICATIONS_WEIGHT if specs else 0)))

        reasons = self._review_reasons(ctx, score, visual)
        instance = ctx.instance
        return QualityReport(
            processing_id=instance.id,
            dimensions_passed=dims,
            weight_balance_passed=weight,
            visual=visual,
            specifications_passed=specs,
            score=score,
            grade=assess_quality_grade(score),
            requires_human_review=bool(reasons),
            review_reasons=reasons,
            specification_errors=spec_errors,
            cutting_precision=self.cutting_precision(ctx) if ctx.kind.is_cutting else None,
            measured_dimensions={
                "length": str(instance.measured_length) if instance.measured_length is not None else None,
                "width": str(instance.measured_width) if instance.measured_width is not None else None,
                "thickness": str(instance.measured_thickness) if instance.measured_thickness is not None else None,
                "weight": str(instance.weight_received) if instance.weight_received is not None else None,
            },
            checked_at=now,
        )

    def perform_quality_check(self, instance_id: int) -> QualityReport:
        """
        Score one instance without persisting anything.

        Args:
            instance_id: Processing instance to check

        Returns:
            QualityReport; scoring failures yield score 0 with review required
        """
        now = self._clock.now()
        try:
            with self._uow_factory() as uow:
                ctx = load_stage_context(uow, instance_id)
                if ctx is None:
                    return QualityReport.failed(instance_id, "Processing instance not found", now)
                report = self.evaluate(ctx, now)
        except Exception as e:
            self._logger.error(f"❌ Quality check failed (processing_id={instance_id}): {e}")
            return QualityReport.failed(instance_id, str(e), now)

        self._logger.info(
            f"Quality check performed (processing_id={instance_id} score={report.score} "
            f"review={report.requires_human_review})"
        )
        return report

    def run(self) -> OperationResult:
        """
        Sweep every in-progress instance that has not been quality checked.

        Each instance is scored and persisted in its own transaction. A
        failure on one instance is reported in its summary entry and the
        sweep moves on.

        Returns:
            OperationResult with ``processings_checked`` and per-instance ``results``
        """
        try:
            with self._uow_factory() as uow:
                pending_ids = [p.id for p in uow.processings.find_unchecked_in_progress()]
        except Exception as e:
            self._logger.error(f"❌ Quality sweep could not list instances: {e}")
            return OperationResult.fail(str(e))

        results: List[Dict[str, Any]] = []
        for instance_id in pending_ids:
            results.append(self._check_and_persist(instance_id))

        self._logger.info(f"✅ Quality sweep checked {len(pending_ids)} processing instance(s)")
        return OperationResult.ok(
            "Quality sweep completed",
            {
                "processings_checked": len(pending_ids),
                "results": results,
                "timestamp": self._clock.now().isoformat(),
            },
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_and_persist(self, instance_id: int) -> Dict[str, Any]:
        pass_score = self._settings.pass_score

        def work(uow, events):
            now = self._clock.now()
            ctx = load_stage_context(uow, instance_id)
            if ctx is None:
                return OperationResult.fail("Processing instance not found")
            try:
                report = self.evaluate(ctx, now)
            except Exception as e:
                self._logger.error(f"❌ Quality scoring failed (processing_id={instance_id}): {e}")
                report = QualityReport.failed(instance_id, str(e), now)

            instance = ctx.instance
            instance.record_quality_check(report.score, report.requires_human_review, report.to_dict(), now)
            uow.processings.update(instance)

            events.append(QualityCheckedEvent(
                order_id=instance.order_id,
                stage_id=instance.stage_id,
                processing_id=instance.id,
                action="quality_checked",
                note=report.error,
                occurred_at=now,
                score=report.score,
                requires_human_review=report.requires_human_review,
            ))
            if report.requires_human_review:
                events.append(HumanReviewRequiredEvent(
                    order_id=instance.order_id,
                    stage_id=instance.stage_id,
                    processing_id=instance.id,
                    action="human_review_required",
                    note="; ".join(report.review_reasons),
                    occurred_at=now,
                ))
            return OperationResult.ok("Quality check stored", {
                "processing_id": instance_id,
                "overall_score": report.score,
                "requires_human_review": report.requires_human_review,
                "passed": report.passed(pass_score),
            })

        result = self._execute("quality_check", work, processing_id=instance_id)
        if result.success:
            return result.data
        return {
            "processing_id": instance_id,
            "overall_score": 0.0,
            "requires_human_review": True,
            "passed": False,
            "error": result.message,
        }

    def _base_score(self, ctx: StageContext) -> float:
        return self._score_parts(
            self.check_dimensions(ctx),
            self.check_weight_balance(ctx),
            self.perform_visual_analysis(ctx),
        )

    @staticmethod
    def _score_parts(dims: bool, weight: bool, visual: VisualAnalysis) -> float:
        score = 0.0
        score += DIMENSIONS_WEIGHT if dims else 0
        score += WEIGHT_BALANCE_WEIGHT if weight else 0
        score += VISUAL_WEIGHT if visual.passed else VISUAL_WEIGHT * (1 - visual.defect_rate)
        return score

    def _review_reasons(
        self,
        ctx: StageContext,
        score: Optional[float] = None,
        visual: Optional[VisualAnalysis] = None,
    ) -> List[str]:
        s = self._settings
        if score is None:
            score = self.calculate_overall_score(ctx)
        if visual is None:
            visual = self.perform_visual_analysis(ctx)

        reasons = []
        if score < s.pass_score:
            reasons.append(f"Score {score:g} below {s.pass_score:g}")
        if ctx.order.is_high_priority:
            reasons.append("High priority order")
        if len(visual.issues) > s.review_issue_limit:
            reasons.append("Too many visual issues")
        if ctx.kind.is_cutting and self.cutting_precision(ctx) < s.precision_review_threshold:
            reasons.append("Cutting precision below review threshold")
        return reasons

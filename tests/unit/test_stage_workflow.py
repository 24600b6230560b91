"""Tests for StageWorkflow."""
from decimal import Decimal

import pytest

from stagegate.application.commands import CuttingResultInput, MeasurementInput, SortingResultInput
from stagegate.domain.enums import Capability, ProcessingStatus, TransitionAction
from stagegate.domain.events import ApprovalDeniedEvent, StageTransitionedEvent

from tests.conftest import CUTTING, PACKAGING, RESERVATION, REVIEW, SORTING, StaticAuthorizer


def _sorting_input(**overrides) -> SortingResultInput:
    values = dict(
        material_id=11,
        original_weight=Decimal("1000"),
        roll1_weight=Decimal("500"),
        roll2_weight=Decimal("400"),
        waste_weight=Decimal("100"),
        roll1_location="A-1",
        roll2_location="A-2",
        waste_reason="edge trim",
    )
    values.update(overrides)
    return SortingResultInput(**values)


def _cutting_input(**overrides) -> CuttingResultInput:
    values = dict(target_length=Decimal("200"), actual_length=Decimal("201"))
    values.update(overrides)
    return CuttingResultInput(**values)


class TestInitialize:
    """Creation of the per-stage instances."""

    def test_creates_one_pending_instance_per_active_stage(self, create_order, workflow, uow_factory):
        order = create_order()

        result = workflow.initialize(order.id)

        assert result.success
        assert result.message == "Order stages initialized"
        with uow_factory() as uow:
            instances = uow.processings.list_for_order(order.id)
        assert [p.stage_id for p in instances] == [REVIEW, RESERVATION, SORTING, CUTTING, PACKAGING]
        assert all(p.status is ProcessingStatus.PENDING for p in instances)
        assert result.data["processing_ids"] == [p.id for p in instances]

    def test_second_call_is_rejected(self, initialized_order, workflow, uow_factory):
        order = initialized_order()

        result = workflow.initialize(order.id)

        assert not result.success
        assert result.message == "Order stages already initialized"
        with uow_factory() as uow:
            assert len(uow.processings.list_for_order(order.id)) == 5

    def test_unknown_order(self, workflow):
        result = workflow.initialize(999)

        assert not result.success
        assert result.message == "Order not found"

    def test_inactive_stages_are_not_instantiated(self, store, uow_factory, create_order, workflow):
        from stagegate.domain.entities import StageDefinition

        with uow_factory() as uow:
            uow.stages.add(StageDefinition(id=9, label="Lamination", display_order=6, is_active=False))
            uow.commit()
        order = create_order()

        result = workflow.initialize(order.id)

        assert len(result.data["processing_ids"]) == 5


class TestAdvance:
    """Stage progression."""

    def test_first_advance_starts_first_stage(self, initialized_order, workflow, instance_of, history_of, uow_factory, clock):
        order = initialized_order()

        result = workflow.advance(order.id, actor_id=7)

        assert result.success
        assert result.message == "Stage progression completed"
        review = instance_of(order.id, REVIEW)
        assert review.status is ProcessingStatus.IN_PROGRESS
        assert review.started_at == clock.now()
        assert review.assigned_to == 7
        with uow_factory() as uow:
            assert uow.orders.get(order.id).current_stage == "Review"

        history = history_of(order.id)
        assert len(history) == 1
        assert history[0].action is TransitionAction.START
        assert history[0].previous_stage is None
        assert history[0].new_stage == "Review"

    def test_advance_completes_current_and_starts_next(self, initialized_order, workflow, instance_of, history_of, clock):
        order = initialized_order()
        workflow.advance(order.id, actor_id=7)
        clock.advance(minutes=30)

        result = workflow.advance(order.id, actor_id=8)

        assert result.success
        review = instance_of(order.id, REVIEW)
        assert review.status is ProcessingStatus.COMPLETED
        assert review.actual_duration == pytest.approx(30.0)
        reservation = instance_of(order.id, RESERVATION)
        assert reservation.status is ProcessingStatus.IN_PROGRESS
        assert reservation.assigned_to == 8

        actions = [r.action for r in history_of(order.id)]
        assert actions == [TransitionAction.START, TransitionAction.COMPLETE, TransitionAction.START]
        last = history_of(order.id)[-1]
        assert last.previous_stage == "Review"
        assert last.new_stage == "Material Reservation"

    def test_at_most_one_instance_in_progress(self, initialized_order, workflow, uow_factory):
        order = initialized_order()
        for _ in range(3):
            workflow.advance(order.id, actor_id=7)

        with uow_factory() as uow:
            statuses = [p.status for p in uow.processings.list_for_order(order.id)]
        assert statuses.count(ProcessingStatus.IN_PROGRESS) == 1

    def test_skipped_stages_are_passed_over(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        workflow.skip(order.id, RESERVATION, actor_id=7, reason="stock on hand")
        workflow.advance(order.id, actor_id=7)

        workflow.advance(order.id, actor_id=7)

        assert instance_of(order.id, RESERVATION).status is ProcessingStatus.SKIPPED
        assert instance_of(order.id, SORTING).status is ProcessingStatus.IN_PROGRESS

    def test_last_stage_completes_then_nothing_pending(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        for _ in range(5):
            assert workflow.advance(order.id, actor_id=7).success

        completing = workflow.advance(order.id, actor_id=7)
        assert completing.success
        assert completing.data["started_id"] is None
        assert instance_of(order.id, PACKAGING).status is ProcessingStatus.COMPLETED

        result = workflow.advance(order.id, actor_id=7)
        assert not result.success
        assert result.message == "No pending stages available"

    def test_unknown_order(self, workflow):
        result = workflow.advance(404, actor_id=7)

        assert not result.success
        assert result.message == "Order not found"

    def test_transition_events_reach_audit_sink(self, initialized_order, workflow, audit_sink):
        order = initialized_order()

        workflow.advance(order.id, actor_id=7)

        assert len(audit_sink.events) == 1
        event = audit_sink.events[0]
        assert isinstance(event, StageTransitionedEvent)
        record = event.to_audit_record()
        assert record["order_id"] == order.id
        assert record["stage_id"] == REVIEW
        assert record["action"] == "start"
        assert record["actor_id"] == 7

    def test_audit_sink_failure_does_not_fail_advance(self, initialized_order, workflow, audit_sink, instance_of):
        order = initialized_order()
        audit_sink.failures = 10

        result = workflow.advance(order.id, actor_id=7)

        assert result.success
        assert instance_of(order.id, REVIEW).status is ProcessingStatus.IN_PROGRESS
        assert audit_sink.attempts == 3


class TestAdvanceWithAutoApproval:
    """advance(auto_approve=True) consults the approval gate first."""

    def test_denial_leaves_state_untouched(self, initialized_order, workflow, instance_of, history_of, audit_sink):
        order = initialized_order()
        workflow.advance(order.id, actor_id=7)
        before = history_of(order.id)

        result = workflow.advance(order.id, actor_id=7, auto_approve=True)

        assert not result.success
        assert result.message.startswith("Operation is not routine and requires manual approval")
        assert "never routine" in result.message
        assert instance_of(order.id, REVIEW).status is ProcessingStatus.IN_PROGRESS
        assert instance_of(order.id, RESERVATION).status is ProcessingStatus.PENDING
        assert history_of(order.id) == before
        assert isinstance(audit_sink.events[-1], ApprovalDeniedEvent)

    def test_routine_warehouse_stage_is_approved_and_completed(
        self, initialized_order, workflow, instance_of, modify_instance, store
    ):
        order = initialized_order()
        workflow.advance(order.id, actor_id=7)
        workflow.advance(order.id, actor_id=7)
        modify_instance(
            order.id, RESERVATION,
            weight_received=Decimal("1000"),
            weight_transferred=Decimal("999"),
            weight_balance=Decimal("1"),
            transfer_destination="WH-2",
        )

        result = workflow.advance(order.id, actor_id=7, auto_approve=True)

        assert result.success, result.message
        reservation = instance_of(order.id, RESERVATION)
        assert reservation.status is ProcessingStatus.COMPLETED
        assert reservation.transfer_approved
        assert reservation.transfer_approval.note == "Auto-approved for routine warehouse operation"
        assert instance_of(order.id, SORTING).status is ProcessingStatus.IN_PROGRESS
        assert [e["action"] for e in store.audit_entries] == ["auto_approval"]


class TestSkip:
    """Skipping skippable stages."""

    def test_skip_records_reason(self, initialized_order, workflow, instance_of, history_of, clock):
        order = initialized_order()

        result = workflow.skip(order.id, RESERVATION, actor_id=7, reason="stock on hand")

        assert result.success
        assert result.message == "Stage skipped successfully"
        instance = instance_of(order.id, RESERVATION)
        assert instance.status is ProcessingStatus.SKIPPED
        assert instance.skip_reason == "stock on hand"
        assert instance.skipped_by == 7
        assert instance.skipped_at == clock.now()

        history = history_of(order.id)
        assert history[-1].action is TransitionAction.SKIP
        assert history[-1].note == "stock on hand"

    def test_reason_is_optional(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()

        result = workflow.skip(order.id, PACKAGING, actor_id=7)

        assert result.success
        assert instance_of(order.id, PACKAGING).status is ProcessingStatus.SKIPPED
        assert instance_of(order.id, PACKAGING).skip_reason is None
        assert history_of(order.id)[-1].note is None

    def test_non_skippable_stage_is_rejected_without_history(self, initialized_order, workflow, history_of):
        order = initialized_order()

        result = workflow.skip(order.id, SORTING, actor_id=7, reason="no time")

        assert not result.success
        assert result.message == "Stage cannot be skipped"
        assert history_of(order.id) == []

    def test_completed_stage_cannot_be_skipped(self, initialized_order, workflow, modify_instance):
        order = initialized_order()
        modify_instance(order.id, PACKAGING, status=ProcessingStatus.COMPLETED)

        result = workflow.skip(order.id, PACKAGING, actor_id=7, reason="late")

        assert not result.success
        assert result.message == "Stage cannot be skipped"

    def test_unknown_stage(self, initialized_order, workflow):
        order = initialized_order()

        result = workflow.skip(order.id, 42, actor_id=7, reason="x")

        assert not result.success
        assert result.message == "Stage not found for this order"


class TestApproveWeightReceived:
    """Weight intake at warehouse and sorting stages."""

    def test_records_weight_and_history(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, RESERVATION).id

        result = workflow.approve_weight_received(pid, actor_id=3, weight=Decimal("1000"), notes="scale 2")

        assert result.success
        assert result.message == "Weight received approved successfully"
        instance = instance_of(order.id, RESERVATION)
        assert instance.weight_received == Decimal("1000")
        assert instance.weight_received_approved
        assert instance.weight_received_approval.approved_by == 3
        assert history_of(order.id)[-1].action is TransitionAction.WEIGHT_APPROVED

    def test_second_write_is_rejected(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, SORTING).id
        workflow.approve_weight_received(pid, actor_id=3, weight=Decimal("1000"))

        result = workflow.approve_weight_received(pid, actor_id=3, weight=Decimal("900"))

        assert not result.success
        assert result.message == "Weight already approved for this stage"
        assert instance_of(order.id, SORTING).weight_received == Decimal("1000")

    def test_wrong_stage_kind(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.approve_weight_received(pid, actor_id=3, weight=Decimal("10"))

        assert not result.success
        assert result.message == "Not a warehouse or sorting stage"

    def test_unauthorized_actor(self, uow_factory, clock, initialized_order, instance_of):
        from stagegate.application.services import StageWorkflow

        workflow = StageWorkflow(uow_factory, clock, StaticAuthorizer(denied={Capability.APPROVE_WEIGHT}))
        order = initialized_order()
        pid = instance_of(order.id, RESERVATION).id

        result = workflow.approve_weight_received(pid, actor_id=3, weight=Decimal("10"))

        assert not result.success
        assert result.message == "User not authorized to approve weight"

    def test_weight_must_be_positive(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, RESERVATION).id

        result = workflow.approve_weight_received(pid, actor_id=3, weight=Decimal("0"))

        assert not result.success
        assert result.message == "Weight must be greater than 0"
        assert history_of(order.id) == []


class TestRecordSortingResults:
    """Sorting result capture."""

    def test_records_results_and_completes_stage(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, SORTING).id

        result = workflow.record_sorting_results(pid, actor_id=5, results=[_sorting_input()])

        assert result.success, result.errors
        assert result.message == "Sorting results recorded successfully"
        instance = instance_of(order.id, SORTING)
        assert instance.status is ProcessingStatus.COMPLETED
        assert instance.roll1_weight == Decimal("500")
        assert instance.roll2_weight == Decimal("400")
        assert instance.sorting_waste_weight == Decimal("100")
        assert instance.roll1_location == "A-1"
        assert len(instance.sorting_results) == 1
        assert instance.sorting_results[0].sorted_by == 5
        assert instance.sorting_results[0].id is not None
        assert history_of(order.id)[-1].action is TransitionAction.SORTING_COMPLETED

    def test_second_write_is_rejected(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, SORTING).id
        workflow.record_sorting_results(pid, actor_id=5, results=[_sorting_input()])

        result = workflow.record_sorting_results(pid, actor_id=5, results=[_sorting_input()])

        assert not result.success
        assert result.message == "Sorting results already recorded for this stage"

    def test_validation_errors_are_reported(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, SORTING).id

        result = workflow.record_sorting_results(pid, actor_id=5, results=[
            _sorting_input(material_id=99),
            _sorting_input(roll2_weight=Decimal("300")),
        ])

        assert not result.success
        assert result.message == "Sorting data validation failed"
        assert "Order material not found for ID 99" in result.errors
        assert any(e.startswith("Weight imbalance for material 11") for e in result.errors)
        assert instance_of(order.id, SORTING).status is ProcessingStatus.PENDING
        assert history_of(order.id) == []

    def test_not_a_sorting_stage(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.record_sorting_results(pid, actor_id=5, results=[_sorting_input()])

        assert not result.success
        assert result.message == "Not a sorting stage"


class TestValidateSortingData:
    """Per-result validation rules."""

    def test_empty_submission(self):
        from stagegate.application.services import StageWorkflow
        from tests.conftest import make_order

        assert StageWorkflow.validate_sorting_data([], make_order()) == [
            "At least one sorting result is required"
        ]

    def test_balance_below_one_hundredth(self):
        from stagegate.application.services import StageWorkflow
        from tests.conftest import make_order

        ok = _sorting_input(waste_weight=Decimal("100.005"))
        off = _sorting_input(waste_weight=Decimal("100.01"))

        assert StageWorkflow.validate_sorting_data([ok], make_order()) == []
        assert StageWorkflow.validate_sorting_data([off], make_order()) != []

    def test_locations_and_waste_reason_required(self):
        from stagegate.application.services import StageWorkflow
        from tests.conftest import make_order

        errors = StageWorkflow.validate_sorting_data(
            [_sorting_input(roll1_location=None, roll2_location="", waste_reason=None)],
            make_order(),
        )

        assert "Roll 1 location is required when weight > 0 for material 11" in errors
        assert "Roll 2 location is required when weight > 0 for material 11" in errors
        assert "Waste reason is required when waste weight > 0 for material 11" in errors

    def test_some_roll_must_have_weight(self):
        from stagegate.application.services import StageWorkflow
        from tests.conftest import make_order

        errors = StageWorkflow.validate_sorting_data(
            [_sorting_input(roll1_weight=Decimal("0"), roll2_weight=Decimal("0"), waste_weight=Decimal("1000"))],
            make_order(),
        )

        assert "At least one roll must have weight greater than 0 for material 11" in errors


class TestRecordCuttingResults:
    """Cut piece capture."""

    def test_records_pieces_and_completes_stage(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.record_cutting_results(pid, actor_id=6, results=[
            _cutting_input(),
            _cutting_input(target_width=Decimal("100"), actual_width=Decimal("99.5")),
        ])

        assert result.success, result.errors
        assert result.message == "Cutting results recorded successfully"
        assert result.data == {"processing_id": pid, "pieces": 2}
        instance = instance_of(order.id, CUTTING)
        assert instance.status is ProcessingStatus.COMPLETED
        assert [r.actual_length for r in instance.cutting_results] == [Decimal("201"), Decimal("201")]
        assert instance.cutting_results[1].actual_width == Decimal("99.5")
        assert all(r.id is not None for r in instance.cutting_results)
        assert history_of(order.id)[-1].action is TransitionAction.CUTTING_COMPLETED
        assert history_of(order.id)[-1].actor_id == 6

    def test_second_write_is_rejected(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id
        workflow.record_cutting_results(pid, actor_id=6, results=[_cutting_input()])

        result = workflow.record_cutting_results(pid, actor_id=6, results=[_cutting_input()])

        assert not result.success
        assert result.message == "Cutting results already recorded for this stage"
        assert len(instance_of(order.id, CUTTING).cutting_results) == 1

    def test_validation_errors_are_reported(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.record_cutting_results(pid, actor_id=6, results=[
            _cutting_input(actual_length=Decimal("0")),
            _cutting_input(target_width=Decimal("-1")),
        ])

        assert not result.success
        assert result.message == "Cutting data validation failed"
        assert result.errors == ["Invalid actual length for piece 1", "Invalid target width for piece 2"]
        instance = instance_of(order.id, CUTTING)
        assert instance.status is ProcessingStatus.PENDING
        assert instance.cutting_results == []
        assert history_of(order.id) == []

    def test_not_a_cutting_stage(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, SORTING).id

        result = workflow.record_cutting_results(pid, actor_id=6, results=[_cutting_input()])

        assert not result.success
        assert result.message == "Not a cutting stage"

    def test_unauthorized_actor(self, initialized_order, uow_factory, clock, instance_of):
        from stagegate.application.services import StageWorkflow

        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id
        workflow = StageWorkflow(uow_factory, clock, StaticAuthorizer(denied={Capability.RECORD_CUTTING}))

        result = workflow.record_cutting_results(pid, actor_id=6, results=[_cutting_input()])

        assert not result.success
        assert result.message == "User not authorized to perform cutting"
        assert instance_of(order.id, CUTTING).status is ProcessingStatus.PENDING

    def test_recorded_pieces_feed_cutting_precision(self, initialized_order, workflow, quality_gate, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id
        pieces = [_cutting_input() for _ in range(4)] + [_cutting_input(actual_length=Decimal("220"))]
        workflow.record_cutting_results(pid, actor_id=6, results=pieces)

        report = quality_gate.perform_quality_check(pid)

        assert report.cutting_precision == pytest.approx(0.8)
        assert "Cutting precision below review threshold" in report.review_reasons


class TestValidateCuttingData:
    """Per-piece validation rules."""

    def test_empty_submission(self):
        from stagegate.application.services import StageWorkflow

        assert StageWorkflow.validate_cutting_data([]) == ["At least one cutting result is required"]

    def test_widths_are_optional(self):
        from stagegate.application.services import StageWorkflow

        assert StageWorkflow.validate_cutting_data([_cutting_input()]) == []

    def test_pieces_are_numbered_from_one(self):
        from stagegate.application.services import StageWorkflow

        errors = StageWorkflow.validate_cutting_data([
            _cutting_input(),
            _cutting_input(target_length=Decimal("0"), actual_width=Decimal("-2")),
        ])

        assert errors == ["Invalid target length for piece 2", "Invalid actual width for piece 2"]


class TestRecordMeasurements:
    """Measured dimensions and received material."""

    def test_records_values_and_history(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.record_measurements(pid, actor_id=6, measurements=MeasurementInput(
            length=Decimal("204"), width=Decimal("98"), thickness=Decimal("1.05"), material_received="kraft",
        ))

        assert result.success, result.errors
        assert result.message == "Measurements recorded successfully"
        instance = instance_of(order.id, CUTTING)
        assert instance.measured_length == Decimal("204")
        assert instance.measured_width == Decimal("98")
        assert instance.measured_thickness == Decimal("1.05")
        assert instance.material_received == "kraft"
        assert instance.status is ProcessingStatus.PENDING
        assert history_of(order.id)[-1].action is TransitionAction.MEASUREMENTS_RECORDED

    def test_partial_measurements(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        workflow.record_measurements(pid, actor_id=6, measurements=MeasurementInput(length=Decimal("200")))

        instance = instance_of(order.id, CUTTING)
        assert instance.measured_length == Decimal("200")
        assert instance.measured_width is None
        assert instance.material_received is None

    def test_second_write_is_rejected(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id
        workflow.record_measurements(pid, actor_id=6, measurements=MeasurementInput(length=Decimal("200")))

        result = workflow.record_measurements(pid, actor_id=6, measurements=MeasurementInput(length=Decimal("150")))

        assert not result.success
        assert result.message == "Measurements already recorded for this stage"
        assert instance_of(order.id, CUTTING).measured_length == Decimal("200")

    def test_empty_submission(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.record_measurements(pid, actor_id=6, measurements=MeasurementInput(material_received=""))

        assert not result.success
        assert result.message == "No measurements provided"
        assert history_of(order.id) == []

    def test_non_positive_dimension(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.record_measurements(
            pid, actor_id=6, measurements=MeasurementInput(length=Decimal("200"), thickness=Decimal("0")),
        )

        assert not result.success
        assert result.message == "Measured thickness must be greater than 0"
        assert instance_of(order.id, CUTTING).measured_length is None

    def test_terminal_instance_is_rejected(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, RESERVATION).id
        workflow.skip(order.id, RESERVATION, actor_id=7, reason="stock on hand")

        result = workflow.record_measurements(pid, actor_id=6, measurements=MeasurementInput(length=Decimal("200")))

        assert not result.success
        assert result.message == "Cannot record measurements on processing instance in status 'skipped'"

    def test_unauthorized_actor(self, initialized_order, uow_factory, clock, instance_of):
        from stagegate.application.services import StageWorkflow

        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id
        workflow = StageWorkflow(uow_factory, clock, StaticAuthorizer(denied={Capability.RECORD_MEASUREMENTS}))

        result = workflow.record_measurements(pid, actor_id=6, measurements=MeasurementInput(length=Decimal("200")))

        assert not result.success
        assert result.message == "User not authorized to record measurements"

    def test_measurements_feed_quality_sweep(self, initialized_order, workflow, quality_gate, instance_of):
        order = initialized_order()
        workflow.advance(order.id, actor_id=7)
        pid = instance_of(order.id, REVIEW).id
        workflow.record_measurements(pid, actor_id=7, measurements=MeasurementInput(length=Decimal("210")))

        result = quality_gate.run()

        entry = result.data["results"][0]
        assert entry["overall_score"] == 70
        assert not entry["passed"]
        assert instance_of(order.id, REVIEW).requires_human_review


class TestManageTransfer:
    """Warehouse and post-sorting transfers."""

    def test_warehouse_transfer_requires_weight_received(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, RESERVATION).id

        result = workflow.manage_transfer(pid, actor_id=3, destination="WH-2", weight_transferred=Decimal("999"))

        assert not result.success
        assert result.message == "Weight received must be recorded before transfer"

    def test_warehouse_transfer_sets_balance(self, initialized_order, workflow, instance_of, history_of):
        order = initialized_order()
        pid = instance_of(order.id, RESERVATION).id
        workflow.approve_weight_received(pid, actor_id=3, weight=Decimal("1000"))

        result = workflow.manage_transfer(pid, actor_id=3, destination="WH-2", weight_transferred=Decimal("999"))

        assert result.success
        assert result.message == "Materials transferred successfully"
        assert result.data["weight_balance"] == "1"
        instance = instance_of(order.id, RESERVATION)
        assert instance.weight_transferred == Decimal("999")
        assert instance.transfer_destination == "WH-2"
        assert instance.weight_balance == Decimal("1")
        last = history_of(order.id)[-1]
        assert last.action is TransitionAction.TRANSFER_COMPLETED
        assert last.note == "Transferred to cutting_warehouse - WH-2"

        again = workflow.manage_transfer(pid, actor_id=3, destination="WH-3", weight_transferred=Decimal("1"))
        assert not again.success
        assert again.message == "Transfer already recorded for this stage"

    def test_post_sorting_transfer_requires_approval(self, initialized_order, workflow, approval_gate, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, SORTING).id
        workflow.record_sorting_results(pid, actor_id=5, results=[_sorting_input()])

        denied = workflow.manage_transfer(pid, actor_id=3, destination="CW-1")
        assert not denied.success
        assert denied.message == "Sorting must be approved before transfer"

        assert approval_gate.approve_stage(pid, actor_id=2).success
        result = workflow.manage_transfer(pid, actor_id=3, destination="CW-1")

        assert result.success
        instance = instance_of(order.id, SORTING)
        assert instance.transfer_completed
        assert instance.destination_warehouse == "CW-1"
        assert instance.post_sorting_destination == "cutting_warehouse"
        assert instance.status is ProcessingStatus.COMPLETED

    def test_cutting_stage_has_no_transfer(self, initialized_order, workflow, instance_of):
        order = initialized_order()
        pid = instance_of(order.id, CUTTING).id

        result = workflow.manage_transfer(pid, actor_id=3, destination="X")

        assert not result.success


class TestUnexpectedFailures:
    """Unexpected exceptions roll back and surface as failures."""

    def test_exception_rolls_back(self, initialized_order, workflow, uow_factory, instance_of, history_of, monkeypatch):
        order = initialized_order()

        def boom(self, record):
            raise RuntimeError("history store offline")

        from stagegate.infrastructure.adapters.persistence import InMemoryHistoryRepository
        monkeypatch.setattr(InMemoryHistoryRepository, "append", boom)

        result = workflow.advance(order.id, actor_id=7)

        assert not result.success
        assert result.message == "history store offline"
        assert instance_of(order.id, REVIEW).status is ProcessingStatus.PENDING
        with uow_factory() as uow:
            assert uow.orders.get(order.id).current_stage is None

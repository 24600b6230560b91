"""Tests for the shared weight balance rules and the domain entities they read."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from stagegate.domain.entities import ProcessingInstance, SortingResult, StageDefinition
from stagegate.domain.enums import ProcessingStatus, StageKind, StageType
from stagegate.domain.exceptions import InvalidTransitionError
from stagegate.domain.services import check_weight_balance, is_result_balanced, is_sorting_balanced
from stagegate.domain.value_objects import DeliverySpecification


WAREHOUSE = StageKind.from_label("Material Reservation")
SORTING = StageKind.from_label("Sorting")
CUTTING = StageKind.from_label("Cutting")


class TestStageKind:
    """Kind derivation from catalog labels."""

    @pytest.mark.parametrize("label,stage_type", [
        ("Material Reservation", StageType.WAREHOUSE),
        ("material reservation", StageType.WAREHOUSE),
        ("Sorting", StageType.SORTING),
        (" Cutting ", StageType.CUTTING),
        ("Packaging", StageType.OTHER),
    ])
    def test_from_label(self, label, stage_type):
        assert StageKind.from_label(label).type is stage_type

    def test_other_keeps_its_name(self):
        kind = StageDefinition(id=1, label="Packaging", display_order=1).kind

        assert kind.type is StageType.OTHER
        assert kind.name == "Packaging"


class TestSortingBalance:

    def test_difference_must_be_below_one_hundredth(self):
        instance = ProcessingInstance(
            order_id=1, stage_id=3, weight_received=Decimal("1000"),
            roll1_weight=Decimal("500"), roll2_weight=Decimal("400"),
            sorting_waste_weight=Decimal("99.995"),
        )

        assert is_sorting_balanced(instance)

        instance.sorting_waste_weight = Decimal("99.99")
        assert not is_sorting_balanced(instance)

    def test_unmeasured_received_is_not_balanced(self):
        assert not is_sorting_balanced(ProcessingInstance(order_id=1, stage_id=3))

    def test_single_result(self):
        result = SortingResult(
            material_id=1, original_weight=Decimal("10"),
            roll1_weight=Decimal("6"), roll2_weight=Decimal("3"), waste_weight=Decimal("1"),
        )

        assert is_result_balanced(result)
        assert result.total_weight == Decimal("10")

    def test_single_result_at_one_hundredth_is_unbalanced(self):
        result = SortingResult(
            material_id=1, original_weight=Decimal("10"),
            roll1_weight=Decimal("6"), roll2_weight=Decimal("3"), waste_weight=Decimal("1.01"),
        )

        assert not is_result_balanced(result)


class TestCheckWeightBalance:

    def test_warehouse_without_received_weight(self):
        result = check_weight_balance(WAREHOUSE, ProcessingInstance(order_id=1, stage_id=2))

        assert result.reason == "weight received not recorded"

    def test_warehouse_without_transfer_is_out_of_balance(self):
        instance = ProcessingInstance(order_id=1, stage_id=2, weight_received=Decimal("1000"))

        assert not check_weight_balance(WAREHOUSE, instance).passed

    def test_warehouse_at_tolerance(self):
        instance = ProcessingInstance(
            order_id=1, stage_id=2, weight_received=Decimal("1000"),
            weight_transferred=Decimal("999"), weight_balance=Decimal("1"),
        )

        assert check_weight_balance(WAREHOUSE, instance).passed
        assert not check_weight_balance(WAREHOUSE, instance, balance_tolerance=0.0005).passed

    def test_cutting_always_passes(self):
        assert check_weight_balance(CUTTING, ProcessingInstance(order_id=1, stage_id=4)).passed


class TestProcessingInstanceTransitions:
    """Lifecycle guards on the entity."""

    def test_terminal_states_never_revert(self):
        now = datetime(2024, 5, 1, 12, 0)
        instance = ProcessingInstance(order_id=1, stage_id=1)
        instance.skip(7, "not needed", now)

        with pytest.raises(InvalidTransitionError):
            instance.complete(now)
        with pytest.raises(InvalidTransitionError):
            instance.start(7, now)
        assert instance.status is ProcessingStatus.SKIPPED

    def test_failed_is_terminal(self):
        instance = ProcessingInstance(order_id=1, stage_id=1, status=ProcessingStatus.FAILED)

        assert instance.is_terminal
        assert not instance.can_be_skipped(True)
        with pytest.raises(InvalidTransitionError):
            instance.approve_sorting(7, datetime(2024, 5, 1))

    def test_complete_records_duration(self):
        start = datetime(2024, 5, 1, 12, 0)
        instance = ProcessingInstance(order_id=1, stage_id=1)
        instance.start(7, start)

        instance.complete(start + timedelta(minutes=90))

        assert instance.actual_duration == pytest.approx(90.0)
        assert instance.completed_at == start + timedelta(minutes=90)

    def test_transfer_requires_received_weight(self):
        instance = ProcessingInstance(order_id=1, stage_id=2)

        with pytest.raises(InvalidTransitionError):
            instance.record_transfer(Decimal("10"), "WH-1")

    def test_waste_ratio(self):
        instance = ProcessingInstance(
            order_id=1, stage_id=3, weight_received=Decimal("1000"), sorting_waste_weight=Decimal("150"),
        )

        assert instance.waste_ratio == pytest.approx(0.15)
        assert ProcessingInstance(order_id=1, stage_id=3).waste_ratio is None


class TestDeliverySpecification:

    def test_cutting_needs_width_and_length(self):
        errors = DeliverySpecification(weight=Decimal("5")).errors_for_stage(CUTTING)

        assert "Delivery width is required for cutting operations" in errors
        assert "Delivery length is required for cutting operations" in errors

    def test_sorting_needs_weight_or_quantity(self):
        errors = DeliverySpecification(width=Decimal("100")).errors_for_stage(SORTING)

        assert errors == ["Either delivery weight or quantity is required for sorting operations"]

    def test_non_positive_values(self):
        errors = DeliverySpecification(weight=Decimal("-1"), quantity=2).errors_for_stage(SORTING)

        assert errors == ["Delivery weight must be greater than 0"]

    def test_warehouse_never_validates_spec(self):
        assert DeliverySpecification().errors_for_stage(WAREHOUSE) == []

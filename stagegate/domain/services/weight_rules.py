"""
Weight balance rules.

Shared by the approval gate and the quality gate so both judge a stage's
weights the same way.
"""
from decimal import Decimal

from ..entities.processing_instance import ProcessingInstance, SortingResult
from ..enums import StageKind, StageType
from ..value_objects import CheckResult

# roll1 + roll2 + waste must differ from the input weight by strictly less than this (kg)
SORTING_BALANCE_TOLERANCE = Decimal("0.01")


def is_sorting_balanced(instance: ProcessingInstance) -> bool:
    """True when roll1 + roll2 + waste differs from the weight received by less than 0.01."""
    if instance.weight_received is None:
        return False
    return abs(instance.weight_received - instance.total_sorted_weight) < SORTING_BALANCE_TOLERANCE


def is_result_balanced(result: SortingResult) -> bool:
    return abs(result.original_weight - result.total_weight) < SORTING_BALANCE_TOLERANCE


def check_weight_balance(
    kind: StageKind,
    instance: ProcessingInstance,
    balance_tolerance: float = 0.001,
) -> CheckResult:
    """
    Check the stage's weight balance.

    Args:
        kind: Kind of the instance's stage
        instance: Instance to check
        balance_tolerance: Allowed |balance| as a fraction of the weight received

    Returns:
        CheckResult with the failure reason
    """
    match kind.type:
        case StageType.WAREHOUSE:
            received = instance.weight_received
            if received is None or received <= 0:
                return CheckResult.fail("weight received not recorded")
            if instance.weight_transferred is not None and instance.weight_transferred > received:
                return CheckResult.fail("transferred weight exceeds weight received")
            balance = instance.weight_balance if instance.weight_balance is not None else received
            if abs(balance) > Decimal(str(balance_tolerance)) * received:
                return CheckResult.fail("weight balance outside tolerance")
            return CheckResult.ok()
        case StageType.SORTING:
            if not is_sorting_balanced(instance):
                return CheckResult.fail("sorting weight does not balance")
            return CheckResult.ok()
        case StageType.CUTTING | StageType.OTHER:
            return CheckResult.ok()

"""Domain services."""

from .weight_rules import check_weight_balance, is_result_balanced, is_sorting_balanced

__all__ = ["check_weight_balance", "is_result_balanced", "is_sorting_balanced"]

"""Application DTOs."""

from .report_dto import EfficiencyMetrics, OrderFilter, StageStatistics
from .result_dto import OperationResult

__all__ = ["EfficiencyMetrics", "OperationResult", "OrderFilter", "StageStatistics"]

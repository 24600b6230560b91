"""Domain value objects."""

from .decisions import ApprovalDecision, CheckResult, QualityReport, VisualAnalysis
from .delivery_specification import DeliverySpecification

__all__ = [
    "ApprovalDecision",
    "CheckResult",
    "DeliverySpecification",
    "QualityReport",
    "VisualAnalysis",
]

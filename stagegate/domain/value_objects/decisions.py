"""
Gate decision value objects.

Ephemeral results returned by the approval and quality gates.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single rule check, with the reason it failed."""

    passed: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> "CheckResult":
        return cls(passed=True)

    @classmethod
    def fail(cls, reason: str) -> "CheckResult":
        return cls(passed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.passed


@dataclass(frozen=True)
class ApprovalDecision:
    """Result of an approval gate evaluation."""

    approved: bool
    reason: str
    auto_approved: bool = False

    @property
    def success(self) -> bool:
        return self.approved

    @property
    def message(self) -> str:
        return self.reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approved": self.approved,
            "reason": self.reason,
            "auto_approved": self.auto_approved,
        }


@dataclass(frozen=True)
class VisualAnalysis:
    """Heuristic visual inspection result."""

    issues: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.issues

    @property
    def defect_rate(self) -> float:
        # Simulated defect rate, capped at 1.0
        return min(1.0, len(self.issues) / 10)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "issues": list(self.issues),
            "defect_rate": self.defect_rate,
        }


@dataclass(frozen=True)
class QualityReport:
    """
    Automated quality check result for one processing instance.

    ``score`` is on a 0-100 scale; ``grade`` on a 1-5 scale.
    """

    processing_id: Optional[int]
    dimensions_passed: bool
    weight_balance_passed: bool
    visual: VisualAnalysis
    specifications_passed: bool
    score: float
    grade: int
    requires_human_review: bool
    review_reasons: List[str] = field(default_factory=list)
    specification_errors: List[str] = field(default_factory=list)
    cutting_precision: Optional[float] = None
    measured_dimensions: Dict[str, Any] = field(default_factory=dict)
    checked_at: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, processing_id: Optional[int], error: str, checked_at: datetime) -> "QualityReport":
        """Report for an instance that could not be scored."""
        return cls(
            processing_id=processing_id,
            dimensions_passed=False,
            weight_balance_passed=False,
            visual=VisualAnalysis(),
            specifications_passed=False,
            score=0.0,
            grade=1,
            requires_human_review=True,
            review_reasons=["Quality check failed"],
            checked_at=checked_at,
            error=f"Quality check failed: {error}",
        )

    def passed(self, pass_score: float = 80) -> bool:
        return self.error is None and self.score >= pass_score

    def to_dict(self) -> Dict[str, Any]:
        """Serializable payload stored on the processing instance."""
        return {
            "processing_id": self.processing_id,
            "dimensions_check": self.dimensions_passed,
            "weight_balance_check": self.weight_balance_passed,
            "visual_analysis": self.visual.to_dict(),
            "specifications_validation": self.specifications_passed,
            "specification_errors": list(self.specification_errors),
            "overall_score": self.score,
            "quality_grade": self.grade,
            "requires_human_review": self.requires_human_review,
            "review_reasons": list(self.review_reasons),
            "cutting_precision": self.cutting_precision,
            "measured_dimensions": dict(self.measured_dimensions),
            "timestamp": self.checked_at.isoformat() if self.checked_at else None,
            "error": self.error,
        }

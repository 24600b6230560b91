"""Application services."""

from .approval_gate import ApprovalGate
from .audit_dispatcher import AuditDispatcher
from .quality_gate import QualityGate, assess_quality_grade
from .stage_context import StageContext, load_stage_context
from .stage_reporting import StageReportingService
from .stage_workflow import StageWorkflow

__all__ = [
    "ApprovalGate",
    "AuditDispatcher",
    "QualityGate",
    "StageContext",
    "StageReportingService",
    "StageWorkflow",
    "assess_quality_grade",
    "load_stage_context",
]

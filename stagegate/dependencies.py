"""
Service wiring.

Builds the application services from ``AppSettings`` with the SQLAlchemy
Unit of Work, the system clock and the logging audit sink. Instances are
created once and reused; ``reset_dependencies`` drops them.
"""
from typing import Callable, Optional
import logging

from stagegate.application.interfaces import IAuditSink, IAuthorizer, IUnitOfWork
from stagegate.application.services import (
    ApprovalGate,
    QualityGate,
    StageReportingService,
    StageWorkflow,
)
from stagegate.infrastructure.adapters.audit import LoggingAuditSink
from stagegate.infrastructure.adapters.auth import RoleAuthorizer
from stagegate.infrastructure.adapters.materials import SelectedMaterialsAllocator
from stagegate.infrastructure.clock import SystemClock
from stagegate.infrastructure.database.config import (
    create_engine_from_settings,
    get_session_factory,
    init_database,
)
from stagegate.infrastructure.database.unit_of_work import sqlalchemy_uow_factory
from stagegate.settings import get_app_settings


logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

_uow_factory: Optional[Callable[[], IUnitOfWork]] = None
_audit_sink: Optional[IAuditSink] = None
_authorizer: Optional[IAuthorizer] = None
_approval_gate: Optional[ApprovalGate] = None
_stage_workflow: Optional[StageWorkflow] = None
_quality_gate: Optional[QualityGate] = None
_reporting_service: Optional[StageReportingService] = None
_clock = SystemClock()


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_uow_factory() -> Callable[[], IUnitOfWork]:
    global _uow_factory
    if _uow_factory is None:
        engine = create_engine_from_settings(get_app_settings().database)
        init_database(engine)
        _uow_factory = sqlalchemy_uow_factory(get_session_factory(engine))
        logger.info("Created SQLAlchemy unit of work factory")
    return _uow_factory


def get_audit_sink() -> IAuditSink:
    global _audit_sink
    if _audit_sink is None:
        _audit_sink = LoggingAuditSink(logger_name=get_app_settings().audit.logger_name)
    return _audit_sink


def get_authorizer() -> IAuthorizer:
    global _authorizer
    if _authorizer is None:
        # Roles are granted by the embedding application
        _authorizer = RoleAuthorizer()
        logger.info("Created RoleAuthorizer instance")
    return _authorizer


def get_approval_gate() -> ApprovalGate:
    global _approval_gate
    if _approval_gate is None:
        settings = get_app_settings()
        _approval_gate = ApprovalGate(
            uow_factory=get_uow_factory(),
            clock=_clock,
            audit=get_audit_sink(),
            authorizer=get_authorizer(),
            allocator=SelectedMaterialsAllocator(),
            settings=settings.gate,
            audit_attempts=settings.audit.max_attempts,
        )
        logger.info("Created ApprovalGate instance")
    return _approval_gate


def get_stage_workflow() -> StageWorkflow:
    global _stage_workflow
    if _stage_workflow is None:
        _stage_workflow = StageWorkflow(
            uow_factory=get_uow_factory(),
            clock=_clock,
            authorizer=get_authorizer(),
            audit=get_audit_sink(),
            approval_gate=get_approval_gate(),
            audit_attempts=get_app_settings().audit.max_attempts,
        )
        logger.info("Created StageWorkflow instance")
    return _stage_workflow


def get_quality_gate() -> QualityGate:
    global _quality_gate
    if _quality_gate is None:
        settings = get_app_settings()
        _quality_gate = QualityGate(
            uow_factory=get_uow_factory(),
            clock=_clock,
            audit=get_audit_sink(),
            settings=settings.quality,
            gate_settings=settings.gate,
            audit_attempts=settings.audit.max_attempts,
        )
        logger.info("Created QualityGate instance")
    return _quality_gate


def get_reporting_service() -> StageReportingService:
    global _reporting_service
    if _reporting_service is None:
        _reporting_service = StageReportingService(get_uow_factory())
    return _reporting_service


def reset_dependencies() -> None:
    """Drop every cached instance (settings included)."""
    global _uow_factory, _audit_sink, _authorizer
    global _approval_gate, _stage_workflow, _quality_gate, _reporting_service
    _uow_factory = None
    _audit_sink = None
    _authorizer = None
    _approval_gate = None
    _stage_workflow = None
    _quality_gate = None
    _reporting_service = None
    get_app_settings.cache_clear()

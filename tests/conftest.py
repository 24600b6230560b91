"""Shared fixtures: fixed clock, in-memory persistence, seeded stage catalog."""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Set

import pytest

from stagegate.application.interfaces import IAuditSink, IAuthorizer, IClock
from stagegate.application.services import (
    ApprovalGate,
    QualityGate,
    StageReportingService,
    StageWorkflow,
)
from stagegate.domain.entities import (
    Order,
    ProcessingInstance,
    SelectedMaterial,
    StageDefinition,
)
from stagegate.domain.enums import Capability
from stagegate.domain.events import StageAuditEvent
from stagegate.domain.value_objects import DeliverySpecification
from stagegate.infrastructure.adapters.persistence import InMemoryStore, in_memory_uow_factory


NOW = datetime(2024, 5, 1, 12, 0, 0)

REVIEW, RESERVATION, SORTING, CUTTING, PACKAGING = 1, 2, 3, 4, 5

STAGES = [
    StageDefinition(id=REVIEW, label="Review", display_order=1, estimated_duration=60),
    StageDefinition(id=RESERVATION, label="Material Reservation", display_order=2,
                    estimated_duration=45, skippable=True),
    StageDefinition(id=SORTING, label="Sorting", display_order=3, estimated_duration=90),
    StageDefinition(id=CUTTING, label="Cutting", display_order=4, estimated_duration=120),
    StageDefinition(id=PACKAGING, label="Packaging", display_order=5, estimated_duration=30,
                    skippable=True),
]


class FixedClock(IClock):
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingAuditSink(IAuditSink):
    """Keeps every published event; optionally fails the first N publishes."""

    def __init__(self, failures: int = 0) -> None:
        self.events: List[StageAuditEvent] = []
        self.failures = failures
        self.attempts = 0

    def publish(self, event: StageAuditEvent) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("audit store unavailable")
        self.events.append(event)

    def actions(self) -> List[str]:
        return [e.action for e in self.events]


class StaticAuthorizer(IAuthorizer):
    """Allows everything except the denied capabilities."""

    def __init__(self, denied: Optional[Set[Capability]] = None) -> None:
        self.denied = set(denied or ())
        self.calls = []

    def is_allowed(self, actor_id, capability, instance) -> bool:
        self.calls.append((actor_id, capability, instance.id))
        return capability not in self.denied


def make_order(**overrides) -> Order:
    """Normal-priority order with one 1000 kg material and a full delivery spec."""
    values = dict(
        order_number="ORD-1001",
        required_weight=Decimal("1000"),
        delivery=DeliverySpecification(
            width=Decimal("100"), length=Decimal("200"), thickness=Decimal("1"),
            weight=Decimal("1000"), quantity=10,
        ),
        selected_materials=[
            SelectedMaterial(material_id=11, allocated_weight=Decimal("1000"), allocated_cost=Decimal("400")),
        ],
        created_at=NOW - timedelta(days=1),
    )
    values.update(overrides)
    return Order(**values)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def authorizer() -> StaticAuthorizer:
    return StaticAuthorizer()


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    with in_memory_uow_factory(store)() as uow:
        for stage in STAGES:
            uow.stages.add(stage)
        uow.commit()
    return store


@pytest.fixture
def uow_factory(store):
    return in_memory_uow_factory(store)


@pytest.fixture
def approval_gate(uow_factory, clock, audit_sink, authorizer) -> ApprovalGate:
    return ApprovalGate(uow_factory, clock, audit=audit_sink, authorizer=authorizer)


@pytest.fixture
def workflow(uow_factory, clock, audit_sink, authorizer, approval_gate) -> StageWorkflow:
    return StageWorkflow(
        uow_factory, clock, authorizer, audit=audit_sink, approval_gate=approval_gate,
    )


@pytest.fixture
def quality_gate(uow_factory, clock, audit_sink) -> QualityGate:
    return QualityGate(uow_factory, clock, audit=audit_sink)


@pytest.fixture
def reporting(uow_factory) -> StageReportingService:
    return StageReportingService(uow_factory)


@pytest.fixture
def create_order(uow_factory):
    """Persist an order and return it with its id."""
    def _create(**overrides) -> Order:
        order = make_order(**overrides)
        with uow_factory() as uow:
            uow.orders.add(order)
            uow.commit()
        return order
    return _create


@pytest.fixture
def initialized_order(create_order, workflow):
    """Order with one pending instance per catalog stage."""
    def _create(**overrides) -> Order:
        order = create_order(**overrides)
        result = workflow.initialize(order.id)
        assert result.success, result.message
        return order
    return _create


@pytest.fixture
def instance_of(uow_factory):
    """Load the order's instance for a stage."""
    def _get(order_id: int, stage_id: int) -> ProcessingInstance:
        with uow_factory() as uow:
            return next(p for p in uow.processings.list_for_order(order_id) if p.stage_id == stage_id)
    return _get


@pytest.fixture
def modify_instance(uow_factory, instance_of):
    """Set attributes on a stored instance and commit."""
    def _modify(order_id: int, stage_id: int, **attrs) -> ProcessingInstance:
        instance = instance_of(order_id, stage_id)
        for name, value in attrs.items():
            setattr(instance, name, value)
        with uow_factory() as uow:
            uow.processings.update(instance)
            uow.commit()
        return instance
    return _modify


@pytest.fixture
def history_of(uow_factory):
    def _history(order_id: int):
        with uow_factory() as uow:
            return uow.history.list_for_order(order_id)
    return _history

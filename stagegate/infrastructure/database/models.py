"""
SQLAlchemy ORM Models.

Maps domain entities to database tables.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, DateTime, Integer, Numeric, Float,
    Text, Boolean, Index, ForeignKey, UniqueConstraint, JSON
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ORDER MODELS
# =============================================================================

class OrderModel(Base):
    """
    Order database model.

    Delivery specification columns are denormalised onto the order row.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(64), unique=True, nullable=False, index=True)

    status = Column(String(32), nullable=False, default="processing", index=True)
    priority = Column(String(16), nullable=False, default="normal")
    required_weight = Column(Numeric(15, 3), nullable=True)

    # Delivery specification
    delivery_width = Column(Numeric(12, 3), nullable=True)
    delivery_length = Column(Numeric(12, 3), nullable=True)
    delivery_thickness = Column(Numeric(12, 3), nullable=True)
    delivery_grammage = Column(Numeric(12, 3), nullable=True)
    delivery_quality = Column(String(64), nullable=True)
    delivery_quantity = Column(Integer, nullable=True)
    delivery_weight = Column(Numeric(15, 3), nullable=True)

    # Pricing
    final_price = Column(Numeric(15, 2), nullable=True)
    estimated_material_cost = Column(Numeric(15, 2), nullable=True)

    delivery_deadline = Column(DateTime, nullable=True)
    current_stage = Column(String(128), nullable=True, index=True)
    material_type = Column(String(64), nullable=True)
    quality_grade = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)

    materials = relationship(
        "OrderMaterialModel", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderMaterialModel.id",
    )

    __table_args__ = (
        Index('ix_orders_created_at', 'created_at'),
    )


class OrderMaterialModel(Base):
    """Material roll allocated to an order."""

    __tablename__ = "order_materials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, nullable=False)
    allocated_weight = Column(Numeric(15, 3), nullable=False, default=0)
    allocated_cost = Column(Numeric(15, 2), nullable=False, default=0)

    order = relationship("OrderModel", back_populates="materials")


# =============================================================================
# STAGE MODELS
# =============================================================================

class StageDefinitionModel(Base):
    """Stage catalog entry."""

    __tablename__ = "stage_definitions"

    id = Column(Integer, primary_key=True)
    label = Column(String(128), nullable=False, unique=True)
    display_order = Column(Integer, nullable=False, index=True)
    estimated_duration = Column(Integer, nullable=True)
    skippable = Column(Boolean, nullable=False, default=False)
    color = Column(String(32), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class ProcessingInstanceModel(Base):
    """
    Per-order, per-stage processing row.

    ``version`` is SQLAlchemy's optimistic lock counter: every UPDATE is
    guarded by the version it was loaded with.
    """

    __tablename__ = "processing_instances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    stage_id = Column(Integer, ForeignKey("stage_definitions.id"), nullable=False, index=True)

    status = Column(String(32), nullable=False, default="pending", index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    assigned_to = Column(Integer, nullable=True, index=True)
    actual_duration = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    skip_reason = Column(Text, nullable=True)
    skipped_at = Column(DateTime, nullable=True)
    skipped_by = Column(Integer, nullable=True)

    # Warehouse
    weight_received = Column(Numeric(15, 3), nullable=True)
    weight_transferred = Column(Numeric(15, 3), nullable=True)
    weight_balance = Column(Numeric(15, 3), nullable=True)
    transfer_destination = Column(String(128), nullable=True)

    # Sorting summary
    roll1_weight = Column(Numeric(15, 3), nullable=True)
    roll2_weight = Column(Numeric(15, 3), nullable=True)
    sorting_waste_weight = Column(Numeric(15, 3), nullable=True)
    roll1_width = Column(Numeric(12, 3), nullable=True)
    roll2_width = Column(Numeric(12, 3), nullable=True)
    roll1_location = Column(String(128), nullable=True)
    roll2_location = Column(String(128), nullable=True)

    # Measurements
    measured_length = Column(Numeric(12, 3), nullable=True)
    measured_width = Column(Numeric(12, 3), nullable=True)
    measured_thickness = Column(Numeric(12, 3), nullable=True)
    material_received = Column(String(64), nullable=True)

    # Approvals
    transfer_approved = Column(Boolean, nullable=False, default=False)
    transfer_approved_by = Column(Integer, nullable=True)
    transfer_approved_at = Column(DateTime, nullable=True)
    transfer_notes = Column(Text, nullable=True)

    sorting_approved = Column(Boolean, nullable=False, default=False)
    sorting_approved_by = Column(Integer, nullable=True)
    sorting_approved_at = Column(DateTime, nullable=True)
    sorting_notes = Column(Text, nullable=True)

    cutting_approved = Column(Boolean, nullable=False, default=False)
    cutting_approved_by = Column(Integer, nullable=True)
    cutting_approved_at = Column(DateTime, nullable=True)
    cutting_notes = Column(Text, nullable=True)

    weight_received_approved = Column(Boolean, nullable=False, default=False)
    weight_received_approved_by = Column(Integer, nullable=True)
    weight_received_approved_at = Column(DateTime, nullable=True)
    weight_received_notes = Column(Text, nullable=True)

    # Post-sorting transfer
    post_sorting_destination = Column(String(64), nullable=True)
    destination_warehouse = Column(String(128), nullable=True)
    transfer_completed = Column(Boolean, nullable=False, default=False)
    transfer_completed_at = Column(DateTime, nullable=True)

    # Quality sweep
    quality_score = Column(Float, nullable=True)
    quality_checked_at = Column(DateTime, nullable=True, index=True)
    requires_human_review = Column(Boolean, nullable=False, default=False)
    quality_check_data = Column(JSON, nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    sorting_results = relationship(
        "SortingResultModel", cascade="all, delete-orphan", order_by="SortingResultModel.id",
    )
    cutting_results = relationship(
        "CuttingResultModel", cascade="all, delete-orphan", order_by="CuttingResultModel.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint('order_id', 'stage_id', name='uq_processing_order_stage'),
        Index('ix_processing_status_checked', 'status', 'quality_checked_at'),
    )


class SortingResultModel(Base):
    """One sorted source roll."""

    __tablename__ = "sorting_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    processing_id = Column(
        Integer, ForeignKey("processing_instances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_id = Column(Integer, nullable=False)
    original_weight = Column(Numeric(15, 3), nullable=False)
    original_width = Column(Numeric(12, 3), nullable=True)
    roll1_weight = Column(Numeric(15, 3), nullable=False)
    roll1_width = Column(Numeric(12, 3), nullable=True)
    roll1_location = Column(String(128), nullable=True)
    roll2_weight = Column(Numeric(15, 3), nullable=False)
    roll2_width = Column(Numeric(12, 3), nullable=True)
    roll2_location = Column(String(128), nullable=True)
    waste_weight = Column(Numeric(15, 3), nullable=False)
    waste_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    sorted_by = Column(Integer, nullable=True)
    sorted_at = Column(DateTime, nullable=True)


class CuttingResultModel(Base):
    """One cut piece."""

    __tablename__ = "cutting_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    processing_id = Column(
        Integer, ForeignKey("processing_instances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_length = Column(Numeric(12, 3), nullable=False)
    actual_length = Column(Numeric(12, 3), nullable=False)
    target_width = Column(Numeric(12, 3), nullable=True)
    actual_width = Column(Numeric(12, 3), nullable=True)


# =============================================================================
# HISTORY / AUDIT MODELS
# =============================================================================

class StageHistoryModel(Base):
    """Append-only stage history."""

    __tablename__ = "stage_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    stage_id = Column(Integer, ForeignKey("stage_definitions.id"), nullable=False)
    previous_stage = Column(String(128), nullable=True)
    new_stage = Column(String(128), nullable=True)
    action = Column(String(32), nullable=False)
    actor_id = Column(Integer, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)


class AuditEntryModel(Base):
    """Audit records written inside approval transactions."""

    __tablename__ = "audit_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, nullable=False, index=True)
    stage_id = Column(Integer, nullable=False)
    action = Column(String(64), nullable=False)
    actor_id = Column(Integer, nullable=True)
    note = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=_utcnow)

"""DTOs for reporting queries."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderFilter(BaseModel):
    """Filter and sort options for order listings."""

    date_from: Optional[datetime] = Field(None, description="Created on or after")
    date_to: Optional[datetime] = Field(None, description="Created on or before")
    stages: List[str] = Field(default_factory=list, description="Current stage labels")
    statuses: List[str] = Field(default_factory=list, description="Order statuses")
    priority: Optional[str] = Field(None, description="Order priority")
    sort_by: str = Field(default="created_at", description="Order attribute or 'stage_priority'")
    sort_direction: str = Field(default="desc", pattern="^(asc|desc)$")

    model_config = {"frozen": True}


class StageStatistics(BaseModel):
    """Snapshot of where orders sit in the pipeline."""

    total_orders: int = Field(..., ge=0)
    stage_distribution: dict = Field(default_factory=dict)
    bottlenecks: dict = Field(default_factory=dict)
    status_counts: dict = Field(default_factory=dict)
    average_completion_time: float = Field(default=0.0, description="Minutes")


class EfficiencyMetrics(BaseModel):
    """Completion efficiency of one stage."""

    average_duration: float = 0.0
    estimated_duration: int = 0
    efficiency_rate: float = 0.0
    total_completed: int = 0

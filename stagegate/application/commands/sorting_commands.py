"""Commands for stage recording entry points."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class SortingResultInput(BaseModel):
    """One sorted source roll as submitted by the sorting officer."""

    material_id: int = Field(..., description="Order material being sorted")
    original_weight: Decimal = Field(..., description="Weight of the source roll (kg)")
    roll1_weight: Decimal = Field(default=Decimal("0"))
    roll2_weight: Decimal = Field(default=Decimal("0"))
    waste_weight: Decimal = Field(default=Decimal("0"))
    original_width: Optional[Decimal] = None
    roll1_width: Optional[Decimal] = None
    roll2_width: Optional[Decimal] = None
    roll1_location: Optional[str] = None
    roll2_location: Optional[str] = None
    waste_reason: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"frozen": True}

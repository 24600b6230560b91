"""Commands for cutting and measurement capture."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CuttingResultInput(BaseModel):
    """One cut piece as submitted by the cutting officer."""

    target_length: Decimal = Field(..., description="Length the piece was cut to (mm)")
    actual_length: Decimal = Field(..., description="Measured length of the piece (mm)")
    target_width: Optional[Decimal] = None
    actual_width: Optional[Decimal] = None

    model_config = {"frozen": True}


class MeasurementInput(BaseModel):
    """Measured dimensions and material of the stock at a stage."""

    length: Optional[Decimal] = None
    width: Optional[Decimal] = None
    thickness: Optional[Decimal] = None
    material_received: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return (
            self.length is None and self.width is None
            and self.thickness is None and not self.material_received
        )

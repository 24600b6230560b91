"""Delivery specification value object."""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from ..enums.stage_kind import StageKind, StageType


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class DeliverySpecification:
    """
    What the customer ordered, as delivered.

    Every field is optional: ``None`` means "not specified".
    """

    width: Optional[Decimal] = None
    length: Optional[Decimal] = None
    thickness: Optional[Decimal] = None
    grammage: Optional[Decimal] = None
    quality: Optional[str] = None
    quantity: Optional[int] = None
    weight: Optional[Decimal] = None

    def __post_init__(self):
        # Convert to Decimal if needed
        for name in ("width", "length", "thickness", "grammage", "weight"):
            object.__setattr__(self, name, _to_decimal(getattr(self, name)))

    def is_empty(self) -> bool:
        """True when no field carries a value."""
        return not any(
            (self.width, self.length, self.thickness, self.grammage,
             self.quality, self.quantity, self.weight)
        )

    def value_errors(self) -> List[str]:
        """Errors for specified values that are not positive."""
        errors = []
        for name in ("width", "length", "thickness", "grammage", "quantity", "weight"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                errors.append(f"Delivery {name} must be greater than 0")
        return errors

    def errors_for_stage(self, kind: StageKind) -> List[str]:
        """
        Validate the specification for a processing stage.

        Only sorting and cutting stages depend on the delivery specification;
        every other stage type validates clean.

        Args:
            kind: Kind of the stage being validated

        Returns:
            List of human-readable errors (empty when valid)
        """
        if kind.type not in (StageType.SORTING, StageType.CUTTING):
            return []

        errors = []
        if self.is_empty():
            errors.append(f"Delivery specifications are required for {kind.name or 'this'} stage")

        match kind.type:
            case StageType.CUTTING:
                if not self.width:
                    errors.append("Delivery width is required for cutting operations")
                if not self.length:
                    errors.append("Delivery length is required for cutting operations")
            case StageType.SORTING:
                if not self.weight and not self.quantity:
                    errors.append("Either delivery weight or quantity is required for sorting operations")

        errors.extend(self.value_errors())
        return errors

    def to_dict(self) -> dict:
        return {
            "width": str(self.width) if self.width is not None else None,
            "length": str(self.length) if self.length is not None else None,
            "thickness": str(self.thickness) if self.thickness is not None else None,
            "grammage": str(self.grammage) if self.grammage is not None else None,
            "quality": self.quality,
            "quantity": self.quantity,
            "weight": str(self.weight) if self.weight is not None else None,
        }

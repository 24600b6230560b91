"""
Stage kind.

Closed tagged variant describing what a stage does. Gate logic dispatches
on ``StageKind.type`` with an exhaustive ``match``.
"""
from dataclasses import dataclass
from enum import Enum


class StageType(str, Enum):
    """Stage types with dedicated gate rules."""

    WAREHOUSE = "warehouse"
    SORTING = "sorting"
    CUTTING = "cutting"
    OTHER = "other"


# Catalog labels (lower-cased) recognised for each stage type
_LABELS = {
    StageType.WAREHOUSE: frozenset({"material reservation", "warehouse", "warehouse intake"}),
    StageType.SORTING: frozenset({"sorting"}),
    StageType.CUTTING: frozenset({"cutting"}),
}


@dataclass(frozen=True)
class StageKind:
    """
    Stage kind: Warehouse | Sorting | Cutting | Other(name).

    ``name`` is the catalog label the kind was derived from, so an
    ``OTHER`` kind still knows which stage it stands for.
    """

    type: StageType
    name: str

    @classmethod
    def from_label(cls, label: str) -> "StageKind":
        """
        Derive the kind from a catalog label.

        Args:
            label: Stage label (e.g. "Material Reservation")

        Returns:
            StageKind for the label, ``OTHER`` when unrecognised
        """
        normalized = (label or "").strip().lower()
        for stage_type, labels in _LABELS.items():
            if normalized in labels:
                return cls(type=stage_type, name=label)
        return cls(type=StageType.OTHER, name=label)

    @property
    def is_warehouse(self) -> bool:
        return self.type is StageType.WAREHOUSE

    @property
    def is_sorting(self) -> bool:
        return self.type is StageType.SORTING

    @property
    def is_cutting(self) -> bool:
        return self.type is StageType.CUTTING

    def __str__(self) -> str:
        return f"{self.type.value}:{self.name}"

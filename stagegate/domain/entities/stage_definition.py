"""Stage catalog entry."""
from dataclasses import dataclass, field
from typing import Optional

from ..enums import StageKind


@dataclass(frozen=True)
class StageDefinition:
    """
    A processing stage in the catalog.

    ``kind`` is derived from ``label`` and never set directly.
    """
    id: int
    label: str
    display_order: int
    estimated_duration: Optional[int] = None  # minutes
    skippable: bool = False
    color: Optional[str] = None
    is_active: bool = True
    kind: StageKind = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "kind", StageKind.from_label(self.label))

"""Stage history record."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..enums import TransitionAction


@dataclass(frozen=True)
class TransitionRecord:
    """Append-only entry in an order's stage history."""
    order_id: int
    stage_id: int
    action: TransitionAction
    actor_id: Optional[int]
    created_at: datetime
    previous_stage: Optional[str] = None
    new_stage: Optional[str] = None
    note: Optional[str] = None
    id: Optional[int] = None

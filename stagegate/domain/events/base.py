"""
Base Domain Event.

All stage events inherit from this base class. Events are handed to the
audit sink after the transaction that produced them commits.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class DomainEvent:
    """
    Base class for all domain events.

    Events are immutable records of things that have happened.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = field(init=False)

    # Owning order, as a string key
    aggregate_id: str = field(default="")

    user_id: Optional[int] = None

    # Timestamp (naive UTC)
    occurred_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        """Set event type from class name."""
        if not hasattr(self, 'event_type') or not self.event_type:
            object.__setattr__(self, 'event_type', self.__class__.__name__)

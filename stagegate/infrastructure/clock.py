"""System clock."""
from datetime import datetime, timezone

from stagegate.application.interfaces import IClock


class SystemClock(IClock):
    """Wall clock in naive UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)

"""Best-effort delivery of stage events to the audit sink."""

import logging
from typing import Iterable, Optional

from stagegate.application.interfaces import IAuditSink
from stagegate.domain.events import StageAuditEvent


logger = logging.getLogger(__name__)


class AuditDispatcher:
    """
    Publishes committed events to an ``IAuditSink``.

    Each event is attempted at most ``max_attempts`` times. A final failure
    is logged as a warning and dropped; it never reaches the caller.
    """

    def __init__(self, sink: Optional[IAuditSink], max_attempts: int = 3) -> None:
        self._sink = sink
        self._max_attempts = max(1, max_attempts)

    def dispatch(self, events: Iterable[StageAuditEvent]) -> int:
        """
        Publish events in order.

        Args:
            events: Events produced by a committed transaction

        Returns:
            Number of events delivered
        """
        if self._sink is None:
            return 0

        delivered = 0
        for event in events:
            if self._publish(event):
                delivered += 1
        return delivered

    def _publish(self, event: StageAuditEvent) -> bool:
        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._sink.publish(event)
                return True
            except Exception as e:
                last_error = e
                logger.debug(
                    f"Audit publish attempt {attempt}/{self._max_attempts} failed "
                    f"for {event.event_type} (order={event.order_id}): {e}"
                )

        logger.warning(
            f"Audit event dropped after {self._max_attempts} attempts: "
            f"{event.event_type} order={event.order_id} stage={event.stage_id} "
            f"action={event.action} error={last_error}"
        )
        return False

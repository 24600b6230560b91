"""
Logging Audit Sink.

Writes every stage audit event to a dedicated logger. Used as the default
sink for demos and as the delivery target when no external audit store
is wired in.
"""
from typing import Any, Dict, List
import logging

from stagegate.application.interfaces import IAuditSink
from stagegate.domain.events import StageAuditEvent
from stagegate.infrastructure.logging import get_logger


class LoggingAuditSink(IAuditSink):
    """
    Audit sink that logs events instead of shipping them anywhere.

    With ``keep_records`` the flat records are also kept in ``records``.
    """

    def __init__(self, logger_name: str = "stagegate.audit", keep_records: bool = False):
        """
        Initialize the sink.

        Args:
            logger_name: Logger the records are written to
            keep_records: Also retain each published record in memory
        """
        self._logger: logging.Logger = get_logger(logger_name)
        self._keep_records = keep_records
        self.records: List[Dict[str, Any]] = []
        self._logger.info("LoggingAuditSink initialized (console logging)")

    def publish(self, event: StageAuditEvent) -> None:
        record = event.to_audit_record()
        if self._keep_records:
            self.records.append(record)

        self._logger.info(
            f"📋 {event.event_type} [{event.event_id}]: order={record['order_id']} "
            f"stage={record['stage_id']} action={record['action']} "
            f"actor={record['actor_id']} note={record['note']!r}"
        )

"""
Transaction boundary shared by the workflow and the gates.

Runs one operation inside one unit of work, commits only on success,
publishes the collected events once the transaction has ended and
translates the domain error taxonomy into ``OperationResult`` failures.
"""

import logging
from typing import Callable, List, Optional

from stagegate.application.dtos import OperationResult
from stagegate.application.interfaces import IAuditSink, IClock, IUnitOfWork
from stagegate.application.services.audit_dispatcher import AuditDispatcher
from stagegate.domain.events import StageAuditEvent
from stagegate.domain.exceptions import (
    ConcurrencyError,
    DataIntegrityError,
    InvalidTransitionError,
)


Work = Callable[[IUnitOfWork, List[StageAuditEvent]], OperationResult]


class TransactionalService:
    """Base class for services whose operations each own one transaction."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        clock: IClock,
        audit: Optional[IAuditSink] = None,
        audit_attempts: int = 3,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock
        self._audit = AuditDispatcher(audit, max_attempts=audit_attempts)
        self._logger = logging.getLogger(type(self).__module__)

    def _execute(self, action: str, work: Work, **context) -> OperationResult:
        """
        Run ``work`` in a fresh unit of work.

        Args:
            action: Operation name used in log lines
            work: Callable receiving the unit of work and an event list
            **context: Identifiers logged with failures

        Returns:
            The work's result, or a failure describing the error
        """
        events: List[StageAuditEvent] = []
        ids = " ".join(f"{k}={v}" for k, v in context.items())
        try:
            with self._uow_factory() as uow:
                result = work(uow, events)
                if result.success:
                    uow.commit()
        except InvalidTransitionError as e:
            self._logger.info(f"{action} rejected ({ids}): {e}")
            return OperationResult.fail(str(e))
        except DataIntegrityError as e:
            self._logger.warning(f"{action} failed on missing data ({ids}): {e}")
            return OperationResult.fail(str(e))
        except ConcurrencyError as e:
            self._logger.warning(f"{action} lost a concurrent update ({ids}): {e}")
            return OperationResult.fail(str(e))
        except Exception as e:
            self._logger.error(f"❌ {action} failed ({ids}): {e}", exc_info=True)
            return OperationResult.fail(str(e))

        if not result.success:
            self._logger.debug(f"{action} rejected ({ids}): {result.message}")
        # Rejections only carry decision events, never transitions
        self._audit.dispatch(events)
        return result

"""
Role-based authorizer.

Maps the workflow capabilities onto operator roles:

    approve_weight       -> warehouse_manager
    record_sorting       -> sorting_officer, and only on instances assigned to the actor
    record_cutting       -> cutting_officer, and only on instances assigned to the actor
    record_measurements  -> any operator role
    manage_transfer      -> warehouse_manager or operations_manager
    approve_stage        -> warehouse_manager or operations_manager
"""
from typing import Dict, Iterable, Mapping, Optional, Set
import logging

from stagegate.application.interfaces import IAuthorizer
from stagegate.domain.entities import ProcessingInstance
from stagegate.domain.enums import Capability


logger = logging.getLogger(__name__)


WAREHOUSE_MANAGER = "warehouse_manager"
OPERATIONS_MANAGER = "operations_manager"
SORTING_OFFICER = "sorting_officer"
CUTTING_OFFICER = "cutting_officer"

CAPABILITY_ROLES: Dict[Capability, Set[str]] = {
    Capability.APPROVE_WEIGHT: {WAREHOUSE_MANAGER},
    Capability.RECORD_SORTING: {SORTING_OFFICER},
    Capability.RECORD_CUTTING: {CUTTING_OFFICER},
    Capability.RECORD_MEASUREMENTS: {WAREHOUSE_MANAGER, OPERATIONS_MANAGER, SORTING_OFFICER, CUTTING_OFFICER},
    Capability.MANAGE_TRANSFER: {WAREHOUSE_MANAGER, OPERATIONS_MANAGER},
    Capability.APPROVE_STAGE: {WAREHOUSE_MANAGER, OPERATIONS_MANAGER},
}

# Officers may only record on their own instances
ASSIGNEE_ONLY = {Capability.RECORD_SORTING, Capability.RECORD_CUTTING}


class RoleAuthorizer(IAuthorizer):
    """Authorizer backed by a static actor -> roles table."""

    def __init__(self, roles: Optional[Mapping[int, Iterable[str]]] = None):
        self._roles: Dict[int, Set[str]] = {
            actor_id: set(actor_roles) for actor_id, actor_roles in (roles or {}).items()
        }

    def grant(self, actor_id: int, *roles: str) -> None:
        self._roles.setdefault(actor_id, set()).update(roles)

    def roles_for(self, actor_id: Optional[int]) -> Set[str]:
        if actor_id is None:
            return set()
        return set(self._roles.get(actor_id, set()))

    def is_allowed(
        self,
        actor_id: Optional[int],
        capability: Capability,
        instance: ProcessingInstance,
    ) -> bool:
        held = self.roles_for(actor_id)
        allowed = bool(held & CAPABILITY_ROLES.get(capability, set()))

        if allowed and capability in ASSIGNEE_ONLY:
            allowed = instance.assigned_to == actor_id

        if not allowed:
            logger.debug(
                f"Actor {actor_id} denied {capability.value} on processing {instance.id}"
            )
        return allowed

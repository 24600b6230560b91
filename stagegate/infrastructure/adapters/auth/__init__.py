"""Authorization adapters."""

from .role_authorizer import (
    CAPABILITY_ROLES,
    CUTTING_OFFICER,
    OPERATIONS_MANAGER,
    SORTING_OFFICER,
    WAREHOUSE_MANAGER,
    RoleAuthorizer,
)

__all__ = [
    "CAPABILITY_ROLES",
    "CUTTING_OFFICER",
    "OPERATIONS_MANAGER",
    "SORTING_OFFICER",
    "WAREHOUSE_MANAGER",
    "RoleAuthorizer",
]

"""Role-based access control. No FastAPI."""

from typing import Dict, FrozenSet

from delivery_guard.domain.models.resource import Role
from delivery_guard.security.exceptions import AuthorizationError

# Permission matrix (resource -> actions):
# Role      deliveries                       payments                 profile     analytics  audit  risk            metrics
# CUSTOMER  create read_own update_own       create read_own          own r/w     ✗          ✗      ✗               ✗
# COURIER   read_assigned update_assigned    read_own                 own r/w     ✗          ✗      ✗               ✗
# BUSINESS  create read_own update_own bulk  create read_own          own r/w     read_own   ✗      ✗               ✗
# ADMIN     create read update               read update create       ✗           read       read   read report     read
# SYSTEM    read                             read update              ✗           ✗          ✗      report          ✗

_ACTION_PERMISSIONS: Dict[Role, Dict[str, FrozenSet[str]]] = {
    Role.CUSTOMER: {
        "deliveries": frozenset({"create", "read_own", "update_own"}),
        "payments": frozenset({"create", "read_own"}),
        "profile": frozenset({"read_own", "update_own"}),
    },
    Role.COURIER: {
        "deliveries": frozenset({"read_assigned", "update_assigned"}),
        "payments": frozenset({"read_own"}),
        "profile": frozenset({"read_own", "update_own"}),
        "location": frozenset({"update_own"}),
    },
    Role.BUSINESS: {
        "deliveries": frozenset({"create", "read_own", "update_own", "bulk_create"}),
        "payments": frozenset({"create", "read_own"}),
        "profile": frozenset({"read_own", "update_own"}),
        "analytics": frozenset({"read_own"}),
    },
    Role.ADMIN: {
        "deliveries": frozenset({"create", "read", "update"}),
        "payments": frozenset({"create", "read", "update"}),
        "users": frozenset({"read", "update"}),
        "analytics": frozenset({"read"}),
        "audit": frozenset({"read"}),
        "risk": frozenset({"read", "report"}),
        "metrics": frozenset({"read"}),
    },
    Role.SYSTEM: {
        "deliveries": frozenset({"read"}),
        "payments": frozenset({"read", "update"}),
        "risk": frozenset({"report"}),
    },
}


class RBACService:
    """Check permission for role, resource and action. Raise AuthorizationError if invalid."""

    def is_permitted(self, role: Role, resource: str, action: str) -> bool:
        return action in _ACTION_PERMISSIONS.get(role, {}).get(resource, frozenset())

    def check_permission(self, role: Role, resource: str, action: str) -> None:
        """Raises AuthorizationError if role does not have permission for action on resource."""
        if not self.is_permitted(role, resource, action):
            raise AuthorizationError(
                f"Role {role.value} does not have permission for '{action}' on '{resource}'"
            )

"""Verified caller identity as forwarded by the authentication layer."""

from dataclasses import dataclass
from typing import Optional

from delivery_guard.domain.models.resource import Role

PRIVILEGED_ROLES = frozenset({Role.ADMIN, Role.SYSTEM})


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: Role
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

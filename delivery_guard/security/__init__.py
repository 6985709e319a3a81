"""Security: actor identity, RBAC, ownership gate, replay guard, idempotency cache. No FastAPI."""

from delivery_guard.security.actor import PRIVILEGED_ROLES, Actor
from delivery_guard.security.idempotency import (
    IdempotencyCache,
    IdempotencyRepository,
    StoredResponse,
)
from delivery_guard.security.ownership import OwnershipGate, is_owner
from delivery_guard.security.rbac import RBACService
from delivery_guard.security.replay_guard import ReplayCheck, ReplayGuard, ReplayWindowStore

__all__ = [
    "PRIVILEGED_ROLES",
    "Actor",
    "IdempotencyCache",
    "IdempotencyRepository",
    "StoredResponse",
    "OwnershipGate",
    "is_owner",
    "RBACService",
    "ReplayCheck",
    "ReplayGuard",
    "ReplayWindowStore",
]

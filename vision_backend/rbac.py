"""
vision_backend/rbac.py

Role-Based Access Control: the single capability check used by every route
and resource service.

A capability names what a route requires (admin only, broker or admin).
Resource-level ownership is an extra condition applied when the caller
passes the owning user id of the entity being mutated: admins bypass it,
everyone else must be the owner.

Pure Python logic - no FastAPI routing, no database access.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Set

from vision_backend.errors import Forbidden


# ============================================================================
# Role Definitions
# ============================================================================

class Role:
    """Role constants for RBAC."""
    ADMIN = "admin"
    BROKER = "broker"


class Capability(str, Enum):
    ADMIN_ONLY = "admin_only"
    BROKER_OR_ADMIN = "broker_or_admin"


# ============================================================================
# Role to Capabilities Mapping
# ============================================================================

ROLE_CAPABILITIES: dict[str, Set[str]] = {
    Role.ADMIN: {
        Capability.ADMIN_ONLY.value,
        Capability.BROKER_OR_ADMIN.value,
    },
    Role.BROKER: {
        Capability.BROKER_OR_ADMIN.value,
    },
}


def role_capabilities(role: str) -> Set[str]:
    """Capabilities granted to a role; empty set for unknown roles."""
    return ROLE_CAPABILITIES.get(role.lower() if role else "", set())


def has_capability(role: str, capability: str) -> bool:
    return getattr(capability, "value", capability) in role_capabilities(role)


def check_capability(identity, capability: str, owner_id: Optional[str] = None) -> bool:
    """
    Decide whether identity may act with the given capability.

    Args:
        identity: object with user_id and role (AuthContext)
        capability: required Capability
        owner_id: owning user id of the target resource, when the action
            mutates a user-owned entity

    Returns:
        True if allowed, False otherwise.
    """
    if identity is None:
        return False
    if not has_capability(identity.role, capability):
        return False
    if owner_id is None:
        return True
    if identity.role == Role.ADMIN:
        return True
    return str(identity.user_id) == str(owner_id)


def authorize(
    identity,
    capability: str,
    owner_id: Optional[str] = None,
    message: Optional[str] = None,
) -> None:
    """
    Raise Forbidden unless check_capability() allows the action.
    """
    if check_capability(identity, capability, owner_id):
        return
    print(
        f"[AUTHZ] Denied: capability={getattr(capability, 'value', capability)}, "
        f"user_id={getattr(identity, 'user_id', None)}, role={getattr(identity, 'role', None)}, "
        f"owner_check={owner_id is not None}"
    )
    raise Forbidden(message)

"""
Role-based permission utilities for organization members.

Permissions are ``category:action`` strings. A role grants a static set of
them; ``*`` grants everything and ``category:*`` grants a whole category.
Permissions ending in ``:own`` apply only to resources the caller owns
(for deadlines: is assigned to).
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple


# Central role constants to ensure consistency across the codebase
ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_MEMBER = "member"
ROLE_VIEWER = "viewer"

# Highest privilege first; index is the role level.
ROLE_HIERARCHY: Tuple[str, ...] = (ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER, ROLE_MEMBER, ROLE_VIEWER)

ALL_PERMISSIONS: Tuple[str, ...] = (
    "deadlines:create",
    "deadlines:read",
    "deadlines:update",
    "deadlines:delete",
    "deadlines:complete",
    "deadlines:complete:own",
    "deadlines:assign",
    "documents:create",
    "documents:read",
    "documents:update",
    "documents:delete",
    "alerts:read",
    "alerts:read:own",
    "alerts:manage",
    "users:read",
    "users:invite",
    "users:remove",
    "settings:read",
    "settings:write",
    "billing:read",
    "billing:write",
    "audit:read",
)

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    ROLE_OWNER: ["*"],
    ROLE_ADMIN: [
        "deadlines:*",
        "documents:*",
        "alerts:*",
        "users:read",
        "users:invite",
        "users:remove",
        "settings:read",
        "settings:write",
        "audit:read",
    ],
    ROLE_MANAGER: [
        "deadlines:create",
        "deadlines:read",
        "deadlines:update",
        "deadlines:complete",
        "deadlines:assign",
        "documents:create",
        "documents:read",
        "documents:update",
        "alerts:read",
        "alerts:manage",
        "users:read",
    ],
    ROLE_MEMBER: [
        "deadlines:read",
        "deadlines:complete:own",
        "documents:create",
        "documents:read",
        "alerts:read:own",
    ],
    ROLE_VIEWER: [
        "deadlines:read",
        "documents:read",
    ],
}

ALLOWED_ROLES = set(ROLE_HIERARCHY)
INVITABLE_ROLES = frozenset({ROLE_ADMIN, ROLE_MANAGER, ROLE_MEMBER, ROLE_VIEWER})


class RoleEnum(str, Enum):
    """Enum for organization roles used in schemas and validation."""
    owner = ROLE_OWNER
    admin = ROLE_ADMIN
    manager = ROLE_MANAGER
    member = ROLE_MEMBER
    viewer = ROLE_VIEWER


def is_valid_role(role: Optional[str]) -> bool:
    return role in ALLOWED_ROLES


def validate_role(role: str) -> None:
    """
    Validate that a role is allowed.

    Raises:
        ValueError: If role is not allowed
    """
    if not is_valid_role(role):
        raise ValueError(f"Invalid role '{role}'. Allowed roles: {list(ROLE_HIERARCHY)}")


def get_role_level(role: str) -> int:
    """Position in the hierarchy (0 = owner). Unknown roles rank below viewer."""
    try:
        return ROLE_HIERARCHY.index(role)
    except ValueError:
        return len(ROLE_HIERARCHY)


def _wildcard_for(permission: str) -> str:
    return f"{permission.split(':', 1)[0]}:*"


def _grants(granted: List[str], permission: str) -> bool:
    return "*" in granted or _wildcard_for(permission) in granted or permission in granted


def has_permission(
    role: Optional[str],
    permission: str,
    user_id=None,
    resource_owner_id=None,
) -> bool:
    """
    Check whether ``role`` grants ``permission``.

    For ``:own`` permissions the caller passes its own id and the resource
    owner id; a role holding the base permission passes outright when the
    caller owns the resource, otherwise the ``:own`` grant itself decides.
    """
    granted = ROLE_PERMISSIONS.get(role or "")
    if granted is None:
        return False
    if _grants(granted, permission):
        return True
    if permission.endswith(":own"):
        base = permission[: -len(":own")]
        owns = user_id is not None and resource_owner_id is not None and str(user_id) == str(resource_owner_id)
        if owns and _grants(granted, base):
            return True
        return permission in granted
    return False


def can_manage_role(manager_role: str, target_role: str) -> bool:
    """Owners manage every role but owner; others manage strictly lower roles."""
    if not is_valid_role(manager_role) or not is_valid_role(target_role):
        return False
    if manager_role == ROLE_OWNER:
        return target_role != ROLE_OWNER
    return get_role_level(manager_role) < get_role_level(target_role)


def get_assignable_roles(manager_role: str) -> List[str]:
    return [r for r in ROLE_HIERARCHY if can_manage_role(manager_role, r)]


def get_resolved_permissions(role: str) -> List[str]:
    """Expand wildcards into the concrete permission list for display."""
    granted = ROLE_PERMISSIONS.get(role)
    if granted is None:
        return []
    return [p for p in ALL_PERMISSIONS if _grants(granted, p)]


def role_allows_manage(role: str) -> bool:
    """Return True if the role may change organization settings."""
    return has_permission(role, "settings:write")

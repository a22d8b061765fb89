"""
Authorization model for role and permission-table based access control.

Pure functions only: no database access, no FastAPI imports. The FastAPI
dependencies that enforce these decisions live in core/guards.py.

A PermissionTable is a fixed two-level mapping of boolean flags:

    {
        "transportation": {"viewTrips": True, "editTrips": False, ...},
        "inventory": {...},
        "reports": {...},
        "userManagement": {...},
    }

Admins bypass the table entirely. Staff are allowed an action only when the
matching leaf flag is exactly True.
"""

import enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from backend.app.models.enums import UserRole


PermissionTable = Dict[str, Dict[str, bool]]


class AccessDecision(str, enum.Enum):
    """Outcome of an authorization check."""
    ALLOW = "ALLOW"
    DENY = "DENY"


# Module -> ordered actions. Anything outside this grid is ignored on merge.
MODULE_ACTIONS: Mapping[str, tuple] = MappingProxyType({
    "transportation": ("viewTrips", "editTrips", "createTrips", "deleteTrips"),
    "inventory": ("viewInventory", "editTrucks", "addTrucks", "deleteTrucks"),
    "reports": ("viewReports", "exportReports"),
    "userManagement": ("viewUsers", "editUsers", "createUsers", "deleteUsers"),
})

STAFF_BASELINE_ACTIONS = frozenset({"viewTrips", "viewInventory", "viewReports"})


def _freeze(table: PermissionTable) -> Mapping[str, Mapping[str, bool]]:
    return MappingProxyType({
        module: MappingProxyType(dict(actions))
        for module, actions in table.items()
    })


_ADMIN_DEFAULTS = _freeze({
    module: {action: True for action in actions}
    for module, actions in MODULE_ACTIONS.items()
})

_STAFF_DEFAULTS = _freeze({
    module: {action: action in STAFF_BASELINE_ACTIONS for action in actions}
    for module, actions in MODULE_ACTIONS.items()
})


def default_permissions(role: UserRole) -> Mapping[str, Mapping[str, bool]]:
    """
    Return the read-only default permission table for a role.

    Admin gets every flag; staff gets view-only access to trips, inventory
    and reports with no user management.

    Args:
        role: UserRole (or its string value)

    Returns:
        Immutable nested mapping. Use to_plain_table() before storing it.
    """
    if UserRole(role) == UserRole.ADMIN:
        return _ADMIN_DEFAULTS
    return _STAFF_DEFAULTS


def to_plain_table(table: Mapping[str, Mapping[str, Any]]) -> PermissionTable:
    """Copy a (possibly frozen) table into plain dicts suitable for a JSON column."""
    return {module: dict(actions) for module, actions in table.items()}


def merge_permissions(
    base: Mapping[str, Mapping[str, Any]],
    overrides: Optional[Mapping[str, Mapping[str, Any]]]
) -> PermissionTable:
    """
    Merge override flags into a base table, one leaf at a time.

    Only known module/action pairs are applied. A module block in the
    overrides never replaces the whole base block, so a partial override
    like {"inventory": {"addTrucks": True}} keeps every other inventory flag.

    Args:
        base: Starting table (usually from default_permissions or the user's current table)
        overrides: Partial table supplied by an admin, may be None

    Returns:
        New plain-dict table covering the full module/action grid
    """
    merged: PermissionTable = {}
    for module, actions in MODULE_ACTIONS.items():
        base_block = base.get(module) or {}
        merged[module] = {action: base_block.get(action) is True for action in actions}

    if not overrides:
        return merged

    for module, flags in overrides.items():
        if module not in MODULE_ACTIONS or not isinstance(flags, Mapping):
            continue
        for action, value in flags.items():
            if action in MODULE_ACTIONS[module]:
                merged[module][action] = value is True

    return merged


def is_allowed(role: Any, permissions: Optional[Mapping[str, Any]], module: str, action: str) -> bool:
    """
    Core allow/deny rule.

    Missing modules, missing actions and non-boolean values all deny.
    """
    if role == UserRole.ADMIN or role == UserRole.ADMIN.value:
        return True

    if not isinstance(permissions, Mapping):
        return False

    block = permissions.get(module)
    if not isinstance(block, Mapping):
        return False

    return block.get(action) is True


def authorize(caller: Mapping[str, Any], module: str, action: str) -> AccessDecision:
    """
    Decide whether a caller may perform module.action.

    Args:
        caller: Resolved identity carrying at least "role" and "permissions"
        module: Permission module (e.g. "inventory")
        action: Action within the module (e.g. "deleteTrucks")

    Returns:
        AccessDecision.ALLOW or AccessDecision.DENY
    """
    if is_allowed(caller.get("role"), caller.get("permissions"), module, action):
        return AccessDecision.ALLOW
    return AccessDecision.DENY

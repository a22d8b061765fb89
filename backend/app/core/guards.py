"""
Security guards for permission-based access control.

Provides FastAPI dependencies that enforce the authorization model before a
handler runs, plus the self-service preconditions for user administration.
"""

import logging
from typing import Any
from fastapi import Depends
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError, InvalidInputError
from backend.app.core.permissions import AccessDecision, MODULE_ACTIONS, authorize

logger = logging.getLogger("transportpro.auth")


def require_permission(module: str, action: str):
    """
    Dependency factory for permission-table access control.

    Usage:
        @router.delete("/trucks/{truck_id}")
        async def delete_truck(
            truck_id: int,
            current_user: dict = Depends(require_permission("inventory", "deleteTrucks"))
        ):
            ...

    Admins always pass. Staff pass only if permissions[module][action] is True.

    Args:
        module: Permission module (transportation, inventory, reports, userManagement)
        action: Action flag within the module

    Returns:
        FastAPI dependency function returning the caller dict

    Raises:
        InsufficientPermissionsError (403) on deny
    """
    if action not in MODULE_ACTIONS.get(module, ()):
        raise ValueError(f"Unknown permission {module}.{action}")

    async def permission_checker(current_user: dict = Depends(get_current_user)) -> dict:
        if authorize(current_user, module, action) is AccessDecision.DENY:
            logger.info(
                "Permission denied",
                extra={"user_id": current_user.get("user_id"), "permission": f"{module}.{action}"}
            )
            raise InsufficientPermissionsError(
                message=f"Access denied. Missing permission: {module}.{action}",
                details={"permission_module": module, "permission_action": action}
            )
        return current_user

    return permission_checker


def _is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


class AccessGrantGuard:
    """
    Keeps role and permission management with admins.

    userManagement flags let staff maintain accounts, but only an admin may
    assign roles, edit permission tables or touch an admin account. Each check
    raises InsufficientPermissionsError (403).

    Usage:
        grant_guard = AccessGrantGuard()

        @router.put("/users/{user_id}")
        async def update_user(user_id: int, user_data: UserUpdate, current_user: dict = Depends(...)):
            grant_guard.check_fields(current_user, user_data.model_fields_set)
            ...
    """

    ACCESS_FIELDS = ("role", "permissions")

    def check_fields(self, current_user: dict, fields):
        """Block non-admins from sending role or permissions."""
        if _is_admin(current_user):
            return
        sent = sorted(set(fields) & set(self.ACCESS_FIELDS))
        if sent:
            logger.info(
                "Access grant denied",
                extra={"user_id": current_user.get("user_id"), "fields": sent}
            )
            raise InsufficientPermissionsError(
                message="Only admins can assign roles or permissions",
                details={"fields": sent}
            )

    def check_target(self, current_user: dict, target_role: Any):
        """Block non-admins from modifying an admin account."""
        if _is_admin(current_user):
            return
        if UserRole(target_role) == UserRole.ADMIN:
            raise InsufficientPermissionsError(message="Only admins can modify admin accounts")


def _user_id(value: Any) -> int:
    # bool is an int subclass; "1" is not 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"User id must be an int, got {type(value).__name__}")
    return value


def is_self(current_user: dict, target_user_id: int) -> bool:
    """True when the caller and the target are the same account."""
    return _user_id(current_user.get("user_id")) == _user_id(target_user_id)


class SelfServiceGuard:
    """
    Preconditions that stop a caller from locking themselves out.

    Each check raises InvalidInputError (400): the caller is authorized for
    the action in general, the request is just not valid for their own account.

    Usage:
        self_guard = SelfServiceGuard()

        @router.delete("/users/{user_id}")
        async def delete_user(user_id: int, current_user: dict = Depends(...)):
            self_guard.check_delete(current_user, user_id)
            ...
    """

    def check_role_change(self, current_user: dict, target_user_id: int, new_role: Any):
        """Block an admin from demoting their own account."""
        if new_role is None or not is_self(current_user, target_user_id):
            return
        if current_user.get("role") == UserRole.ADMIN.value and UserRole(new_role) != UserRole.ADMIN:
            raise InvalidInputError("You cannot change your own role from admin")

    def check_delete(self, current_user: dict, target_user_id: int):
        """Block deleting one's own account."""
        if is_self(current_user, target_user_id):
            raise InvalidInputError("You cannot delete your own account")

    def check_status_toggle(self, current_user: dict, target_user_id: int):
        """Block activating/deactivating one's own account."""
        if is_self(current_user, target_user_id):
            raise InvalidInputError("You cannot change your own account status")

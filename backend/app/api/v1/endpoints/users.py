"""
User Management API Endpoints.

Create, edit, deactivate and delete accounts, with audit logging. Access is
governed by the userManagement permission module (admins always pass), and
the self-service guard stops a caller from locking themselves out. Roles,
permission tables and admin accounts stay under admin control.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceConflictError, ResourceNotFoundError
from backend.app.core.guards import AccessGrantGuard, SelfServiceGuard, require_permission
from backend.app.core.permissions import default_permissions, merge_permissions
from backend.app.core.security import get_password_hash
from backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.base import MessageResponse
from backend.app.schemas.user import (
    UserCreate, UserUpdate, UserResponse, ResetPasswordRequest,
    AuditTrailResponse, AuditLogResponse
)
from backend.app.services.audit import log_admin_action, AuditAction, get_user_audit_history

router = APIRouter(prefix="/users", tags=["Users"])

self_guard = SelfServiceGuard()
grant_guard = AccessGrantGuard()


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


async def _ensure_identity_free(db: AsyncSession, username=None, email=None, exclude_id=None) -> None:
    conditions = []
    if username is not None:
        conditions.append(User.username == username)
    if email is not None:
        conditions.append(User.email == email)
    if not conditions:
        return

    query = select(User).where(or_(*conditions))
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query)
    existing = result.scalars().first()

    if existing:
        field = "username" if existing.username == username else "email"
        raise ResourceConflictError(
            message="User with this email or username already exists",
            details={"field": field}
        )


@router.get("", response_model=List[UserResponse])
async def list_users(
    current_user: dict = Depends(require_permission("userManagement", "viewUsers")),
    db: AsyncSession = Depends(get_db)
):
    """List all users, newest first."""
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [UserResponse.model_validate(user) for user in result.scalars().all()]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: dict = Depends(require_permission("userManagement", "createUsers")),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a user.

    The permission table starts from the role defaults; any flags in
    "permissions" are merged over them one by one.

    Raises:
        403: non-admin caller sending role or permissions
        409: username or email already taken
    """
    grant_guard.check_fields(current_user, user_data.model_fields_set)

    await _ensure_identity_free(db, username=user_data.username, email=user_data.email)

    new_user = User(
        username=user_data.username,
        email=user_data.email,
        full_name=user_data.full_name,
        phone=user_data.phone,
        department=user_data.department,
        hashed_password=get_password_hash(user_data.password),
        role=user_data.role,
        is_active=user_data.is_active,
        permissions=merge_permissions(default_permissions(user_data.role), user_data.permissions)
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    await log_admin_action(
        db=db,
        admin_id=current_user["user_id"],
        admin_username=current_user["sub"],
        action=AuditAction.USER_CREATED,
        target_user_id=new_user.id,
        target_username=new_user.username,
        metadata={"role": new_user.role.value}
    )

    return UserResponse.model_validate(new_user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: dict = Depends(require_permission("userManagement", "viewUsers")),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_user_or_404(db, user_id)
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    current_user: dict = Depends(require_permission("userManagement", "editUsers")),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a user.

    Permission handling:
    - role changed: table is reset to the new role's defaults, then the
      "permissions" overrides in the same request are merged in
    - role unchanged: "permissions" overrides merge into the current table

    Raises:
        400: caller demoting their own admin account or toggling their own status
        403: non-admin caller sending role or permissions, or editing an admin
        409: new username or email already taken
    """
    updates = user_data.model_dump(exclude_unset=True)

    grant_guard.check_fields(current_user, updates.keys())
    self_guard.check_role_change(current_user, user_id, updates.get("role"))

    user = await _get_user_or_404(db, user_id)
    grant_guard.check_target(current_user, user.role)

    if "is_active" in updates and updates["is_active"] != user.is_active:
        self_guard.check_status_toggle(current_user, user_id)

    await _ensure_identity_free(
        db,
        username=updates.get("username"),
        email=updates.get("email"),
        exclude_id=user.id
    )

    previous_role = user.role
    previous_active = user.is_active
    overrides = updates.pop("permissions", None)
    new_role = updates.get("role")

    for field, value in updates.items():
        setattr(user, field, value)

    role_changed = new_role is not None and new_role != previous_role
    if role_changed:
        user.permissions = merge_permissions(default_permissions(new_role), overrides)
    elif overrides:
        user.permissions = merge_permissions(user.permissions or {}, overrides)

    await db.commit()
    await db.refresh(user)

    if user.is_active != previous_active:
        if user.is_active:
            await clear_user_token_revocation(user.id)
        else:
            await revoke_all_user_tokens(user.id)

    if role_changed:
        action = AuditAction.ROLE_CHANGED
    elif overrides:
        action = AuditAction.PERMISSIONS_CHANGED
    else:
        action = AuditAction.USER_UPDATED

    await log_admin_action(
        db=db,
        admin_id=current_user["user_id"],
        admin_username=current_user["sub"],
        action=action,
        target_user_id=user.id,
        target_username=user.username,
        metadata={
            "fields": sorted(set(updates.keys()) | ({"permissions"} if overrides else set())),
            "from_role": previous_role.value,
            "to_role": user.role.value,
        }
    )

    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    current_user: dict = Depends(require_permission("userManagement", "deleteUsers")),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a user and revoke all their active tokens.

    Raises:
        400: caller deleting their own account
    """
    self_guard.check_delete(current_user, user_id)

    user = await _get_user_or_404(db, user_id)
    grant_guard.check_target(current_user, user.role)
    username = user.username

    await db.delete(user)
    await db.commit()

    await revoke_all_user_tokens(user_id)

    await log_admin_action(
        db=db,
        admin_id=current_user["user_id"],
        admin_username=current_user["sub"],
        action=AuditAction.USER_DELETED,
        target_user_id=user_id,
        target_username=username
    )

    return MessageResponse(message=f"User '{username}' deleted successfully")


@router.put("/{user_id}/reset-password", response_model=MessageResponse)
async def reset_user_password(
    user_id: int,
    password_data: ResetPasswordRequest,
    current_user: dict = Depends(require_permission("userManagement", "editUsers")),
    db: AsyncSession = Depends(get_db)
):
    """Set a new password for a user without knowing the old one."""
    user = await _get_user_or_404(db, user_id)
    grant_guard.check_target(current_user, user.role)

    user.hashed_password = get_password_hash(password_data.new_password)
    await db.commit()

    await log_admin_action(
        db=db,
        admin_id=current_user["user_id"],
        admin_username=current_user["sub"],
        action=AuditAction.PASSWORD_RESET,
        target_user_id=user.id,
        target_username=user.username
    )

    return MessageResponse(message="User password reset successfully")


@router.put("/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    user_id: int,
    current_user: dict = Depends(require_permission("userManagement", "editUsers")),
    db: AsyncSession = Depends(get_db)
):
    """
    Flip a user between active and inactive.

    Deactivation terminates all of the user's sessions immediately.

    Raises:
        400: caller toggling their own account
    """
    self_guard.check_status_toggle(current_user, user_id)

    user = await _get_user_or_404(db, user_id)
    grant_guard.check_target(current_user, user.role)
    user.is_active = not user.is_active
    await db.commit()
    await db.refresh(user)

    if user.is_active:
        await clear_user_token_revocation(user.id)
        action = AuditAction.USER_ACTIVATED
    else:
        await revoke_all_user_tokens(user.id)
        action = AuditAction.USER_DEACTIVATED

    await log_admin_action(
        db=db,
        admin_id=current_user["user_id"],
        admin_username=current_user["sub"],
        action=action,
        target_user_id=user.id,
        target_username=user.username
    )

    return UserResponse.model_validate(user)


@router.get("/{user_id}/audit-trail", response_model=AuditTrailResponse)
async def get_user_audit_trail(
    user_id: int,
    limit: int = Query(50, ge=1, le=500, description="Maximum number of entries"),
    current_user: dict = Depends(require_permission("userManagement", "viewUsers")),
    db: AsyncSession = Depends(get_db)
):
    """Audit entries where the user was the actor or the target, most recent first."""
    await _get_user_or_404(db, user_id)

    logs = await get_user_audit_history(db, user_id, limit=limit)

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )

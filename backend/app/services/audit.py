"""
Audit logging service for tracking security events, admin actions and fleet changes.

Provides centralized logging for compliance and security monitoring.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog

logger = logging.getLogger("transportpro.audit")


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    ROLE_CHANGED = "ROLE_CHANGED"
    PERMISSIONS_CHANGED = "PERMISSIONS_CHANGED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PASSWORD_RESET = "PASSWORD_RESET"

    # Transportation
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"
    TRIP_DELETED = "TRIP_DELETED"

    # Inventory
    TRUCK_CREATED = "TRUCK_CREATED"
    TRUCK_UPDATED = "TRUCK_UPDATED"
    TRUCK_STATUS_CHANGED = "TRUCK_STATUS_CHANGED"
    TRUCK_DELETED = "TRUCK_DELETED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log a security, admin or fleet event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        target_user_id: ID of user being acted upon (if applicable)
        target_username: Username of target
        entity_type: "trip" or "truck" for fleet events
        entity_id: Primary key of the trip / truck
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    logger.info(
        "Audit event recorded",
        extra={"action": action, "actor_id": actor_id, "entity_type": entity_type, "entity_id": entity_id}
    )

    return audit_log


async def log_admin_action(
    db: AsyncSession,
    admin_id: int,
    admin_username: str,
    action: str,
    target_user_id: int,
    target_username: str,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log a user-administration action (create, update, delete, toggle).

    Args:
        db: Database session
        admin_id: ID of acting user
        admin_username: Username of acting user
        action: Action performed (use AuditAction constants)
        target_user_id: ID of user being acted upon
        target_username: Username of target
        metadata: Additional context

    Returns:
        Created AuditLog instance
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=admin_id,
        actor_username=admin_username,
        target_user_id=target_user_id,
        target_username=target_username,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an authentication event (login success/failure, logout)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        ip_address=ip_address,
        metadata=metadata
    )


async def log_fleet_event(
    db: AsyncSession,
    action: str,
    current_user: dict,
    entity_type: str,
    entity_id: int,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log a trip or truck mutation performed by the current user."""
    return await log_event(
        db=db,
        action=action,
        actor_id=current_user.get("user_id"),
        actor_username=current_user.get("sub"),
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=metadata
    )


async def get_user_audit_history(
    db: AsyncSession,
    user_id: int,
    limit: int = 50
) -> list[AuditLog]:
    """
    Get complete audit history for a specific user.

    Args:
        db: Database session
        user_id: User ID to get history for
        limit: Maximum number of records

    Returns:
        List of audit logs where user was actor or target, most recent first
    """
    query = select(AuditLog).where(
        (AuditLog.actor_id == user_id) | (AuditLog.target_user_id == user_id)
    ).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()

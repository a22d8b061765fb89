"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.jwt import decode_access_token
from backend.app.core.exceptions import AuthenticationError, TokenRevokedError
from backend.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from backend.app.db.session import get_db
from backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency resolving the caller identity.

    Checks:
    1. Validates JWT token signature and expiry
    2. Checks if token has been explicitly revoked (logout)
    3. Checks if all user tokens have been revoked (user deactivated/deleted)
    4. Verifies user still exists and is active in the database

    The returned dict is the token payload with "role" and "permissions"
    replaced by the current database values, so a role change or permission
    override takes effect on the very next request.

    Args:
        credentials: HTTP Bearer token from request header
        db: Database session for real-time user status check

    Returns:
        Caller dict: sub, user_id, role, permissions

    Raises:
        AuthenticationError / TokenRevokedError: 401 if authentication fails
        HTTPException: 403 if the account is inactive
    """
    token = credentials.credentials

    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("user_id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise AuthenticationError("Invalid token payload")

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(token):
        raise TokenRevokedError()

    # 3. Check if all user tokens have been revoked
    if await are_user_tokens_revoked(user_id):
        raise TokenRevokedError("User access has been revoked")

    # 4. Real-time database check
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return {
        **payload,
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
        "permissions": user.permissions or {},
    }

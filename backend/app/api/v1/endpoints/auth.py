"""
Authentication API endpoints.

Provides login, logout, current-user and change-password endpoints. Accounts
are created by an administrator through /users; there is no self sign-up.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.auth import UserLogin, TokenResponse, ChangePasswordRequest
from backend.app.schemas.base import MessageResponse
from backend.app.schemas.user import UserResponse
from backend.app.core.security import get_password_hash, verify_password
from backend.app.core.jwt import create_access_token
from backend.app.core.dependencies import get_current_user, security
from backend.app.core.exceptions import InvalidInputError
from backend.app.core.token_revocation import revoke_token
from backend.app.services.audit import log_auth_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


async def _load_current_user(db: AsyncSession, current_user: dict) -> User:
    result = await db.execute(select(User).where(User.id == current_user["user_id"]))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Accepts username or email for login.
    Logs successful and failed login attempts for security monitoring.
    """
    ip_address = _client_ip(request)

    # usernames cannot contain "@", so the identifier picks a single unique column
    if "@" in credentials.username:
        lookup = User.email == credentials.username
    else:
        lookup = User.username == credentials.username
    result = await db.execute(select(User).where(lookup))
    user = result.scalar_one_or_none()

    if not user:
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=None,
            username=credentials.username,
            ip_address=ip_address,
            metadata={"reason": "User not found"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Verify password
    if not verify_password(credentials.password, user.hashed_password):
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id,
            username=user.username,
            ip_address=ip_address,
            metadata={"reason": "Invalid password"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Check if user is active
    if not user.is_active:
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id,
            username=user.username,
            ip_address=ip_address,
            metadata={"reason": "Account is inactive"}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    # Permissions are not put in the token; they are re-read on every request
    jwt_payload = {
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value
    }

    access_token = create_access_token(data=jwt_payload)

    await log_auth_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        user_id=user.id,
        username=user.username,
        ip_address=ip_address
    )

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        permissions=user.permissions or {}
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Requires valid JWT token in Authorization header.

    Returns:
        UserResponse with role and the effective permission table
    """
    user = await _load_current_user(db, current_user)
    return UserResponse.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the presented token. Other sessions of the user stay valid."""
    await revoke_token(credentials.credentials, current_user["user_id"])

    await log_auth_event(
        db=db,
        action=AuditAction.LOGOUT,
        user_id=current_user["user_id"],
        username=current_user.get("sub"),
        ip_address=_client_ip(request)
    )

    return MessageResponse(message="Logged out successfully")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    password_data: ChangePasswordRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Change the caller's own password.

    Raises:
        400: current password does not match
    """
    user = await _load_current_user(db, current_user)

    if not verify_password(password_data.current_password, user.hashed_password):
        raise InvalidInputError("Current password is incorrect")

    user.hashed_password = get_password_hash(password_data.new_password)
    await db.commit()

    await log_auth_event(
        db=db,
        action=AuditAction.PASSWORD_CHANGED,
        user_id=user.id,
        username=user.username
    )

    return MessageResponse(message="Password changed successfully")

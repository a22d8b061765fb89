"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints. The
token envelope keeps the OAuth2 snake_case names (access_token, token_type).
"""

from pydantic import BaseModel, Field
from typing import Dict
from backend.app.models.enums import UserRole
from backend.app.schemas.base import CamelModel


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    Supports login with either username or email.
    """
    username: str = Field(..., description="Username or email")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by a successful login. Role and permissions are included so a
    client can shape its UI; the server re-reads both on every request.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: int = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(..., description="User role")
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6, description="Password (min 6 characters)")

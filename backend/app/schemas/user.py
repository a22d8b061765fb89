"""
User management schemas.

Permission overrides are partial tables: only the module/action flags sent
are applied, on top of the role defaults (create, role change) or the
user's current table (permissions-only update).
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import EmailStr, Field, field_validator

from backend.app.models.enums import UserRole
from backend.app.schemas.base import CamelModel, reject_null

PermissionOverrides = Dict[str, Dict[str, bool]]

# login accepts a username or an email, so usernames never look like one
USERNAME_PATTERN = r"^[^\s@]+$"


class UserCreate(CamelModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    department: Optional[str] = Field(None, max_length=100)
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    role: UserRole = UserRole.STAFF
    is_active: bool = True
    permissions: Optional[PermissionOverrides] = None


class UserUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    department: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    permissions: Optional[PermissionOverrides] = None

    @field_validator("username", "email", "full_name", "role", "is_active")
    @classmethod
    def required_columns_not_null(cls, value, info):
        return reject_null(value, info)


class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    full_name: str
    phone: Optional[str] = None
    department: Optional[str] = None
    role: UserRole
    is_active: bool
    permissions: PermissionOverrides
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ResetPasswordRequest(CamelModel):
    new_password: str = Field(..., min_length=6, description="Password (min 6 characters)")


class AuditLogResponse(CamelModel):
    id: int
    actor_id: Optional[int] = None
    actor_username: Optional[str] = None
    action: str
    target_user_id: Optional[int] = None
    target_username: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    meta_data: Optional[dict] = None
    ip_address: Optional[str] = None
    timestamp: datetime


class AuditTrailResponse(CamelModel):
    logs: List[AuditLogResponse]
    total: int

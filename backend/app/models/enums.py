"""
User roles enumeration.

Defines the role types for the transport management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Full access, bypasses the permission table
        STAFF: Access governed by the per-user permission table (default role)
    """
    ADMIN = "admin"
    STAFF = "staff"

"""
User database model.

This module defines the User SQLAlchemy model for authentication and
permission-based authorization.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole


class User(Base):
    """
    User model.

    The permissions column holds the full PermissionTable (module -> action ->
    bool). It is seeded from the role defaults and may carry admin overrides.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    department = Column(String(100), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]), default=UserRole.STAFF, nullable=False)
    permissions = Column(JSON, nullable=False, default=dict)

    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}', role='{self.role.value}')>"

"""
Audit Log Database Model.

Records who changed what: user administration, logins, and every trip and
truck mutation.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - USER_CREATED / USER_UPDATED / USER_DELETED / USER_ACTIVATED / USER_DEACTIVATED
    - LOGIN_SUCCESS / LOGIN_FAILED / LOGOUT
    - ROLE_CHANGED (for privilege escalation detection)
    - TRIP_* and TRUCK_* mutations (entity_type / entity_id set)
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Who was the target of the action (for user management actions)
    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)

    # Which fleet record was touched (for trip / truck actions)
    entity_type = Column(String(50), nullable=True, index=True)
    entity_id = Column(Integer, nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # IP address for login tracking
    ip_address = Column(String(50), nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, entity={self.entity_type}:{self.entity_id})>"

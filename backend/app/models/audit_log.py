"""
Audit Log Database Model.

Records account events, admin actions and every donation state change.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - LOGIN_SUCCESS / LOGIN_FAILED / LOGOUT
    - USER_REGISTERED / USER_BLOCKED / USER_UNBLOCKED
    - DONATION_CREATED / DONATION_UPDATED / DONATION_DELETED
    - DONATION_RESERVED / RESERVATION_CANCELLED / DONATION_PICKED_UP
    - DONATIONS_EXPIRED (sweep)
    - USER_UPDATED / VOLUNTEER_REGISTERED / VOLUNTEER_UPDATED / VOLUNTEER_RATED
    - CONTACT_ASSIGNED / CONTACT_RESPONDED / CONTACT_FOLLOW_UP_SCHEDULED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions such as the expiry sweep)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Subject of the action
    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)
    donation_id = Column(Integer, index=True, nullable=True)

    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, donation={self.donation_id})>"

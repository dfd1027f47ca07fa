"""
Admin API Schema Definitions.

Pydantic schemas for admin endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, Optional, List
from backend.app.schemas.auth import UserResponse
from backend.app.schemas.common import Pagination


class UserListData(BaseModel):
    """Schema for list users response."""
    users: List[UserResponse]
    pagination: Pagination


class BlockUserRequest(BaseModel):
    """Schema for blocking or unblocking a user."""
    reason: Optional[str] = Field(None, description="Reason (for audit log)")


class AdminActionData(BaseModel):
    """Schema for admin action response."""
    user_id: int
    action: str
    audit_log_id: int


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    action: str
    target_user_id: Optional[int]
    target_username: Optional[str]
    donation_id: Optional[int]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailData(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int


class ExpirySweepData(BaseModel):
    expired_count: int
    swept_at: datetime


class OverviewStatsData(BaseModel):
    users_by_role: Dict[str, int]
    active_users: int
    donations_by_status: Dict[str, int]
    total_donations: int
    total_views: int

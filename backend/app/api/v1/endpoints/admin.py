"""
Admin API Endpoints.

Provides admin-only user management, dashboard statistics, the manual
expiry sweep and the audit trail.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.schemas.admin import (
    UserListData, BlockUserRequest, AdminActionData, AuditTrailData,
    AuditLogResponse, ExpirySweepData, OverviewStatsData
)
from backend.app.schemas.auth import UserData, UserResponse
from backend.app.schemas.common import ApiResponse, Pagination
from backend.app.core.actor import Actor
from backend.app.core.guards import require_admin
from backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from backend.app.api.v1.endpoints.users import get_user_or_404
from backend.app.domain.donations.lifecycle import DonationLifecycle
from backend.app.services.analytics import AnalyticsService
from backend.app.services.audit import log_admin_action, log_event, AuditAction, get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/users", response_model=ApiResponse[UserListData])
async def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List users (admin-only), newest first.
    """
    conditions = [User.role == role] if role else []

    total_result = await db.execute(select(func.count(User.id)).where(*conditions))
    total = total_result.scalar() or 0

    offset = (page - 1) * limit
    query = (
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)
    users = result.scalars().all()

    return ApiResponse(
        data=UserListData(
            users=[UserResponse.model_validate(user) for user in users],
            pagination=Pagination.build(page, limit, total)
        )
    )


@router.get("/users/{user_id}", response_model=ApiResponse[UserData])
async def get_user(
    user_id: int,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get detailed information about a specific user (admin-only).
    """
    user = await get_user_or_404(db, user_id)
    return ApiResponse(data=UserData(user=UserResponse.model_validate(user)))


@router.post("/users/{user_id}/block", response_model=ApiResponse[AdminActionData])
async def block_user(
    user_id: int,
    request: Optional[BlockUserRequest] = None,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Block a user and revoke all their active tokens (admin-only).

    This immediately terminates all user sessions.
    """
    target_user = await get_user_or_404(db, user_id)

    if target_user.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot block another admin user"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already blocked"
        )

    target_user.is_active = False
    await db.commit()

    await revoke_all_user_tokens(user_id)

    reason = request.reason if request else None
    audit_log = await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.USER_BLOCKED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"reason": reason} if reason else None
    )

    return ApiResponse(
        message=f"User '{target_user.username}' has been blocked",
        data=AdminActionData(
            user_id=user_id,
            action=AuditAction.USER_BLOCKED,
            audit_log_id=audit_log.id
        )
    )


@router.post("/users/{user_id}/unblock", response_model=ApiResponse[AdminActionData])
async def unblock_user(
    user_id: int,
    request: Optional[BlockUserRequest] = None,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Unblock a user and clear token revocations (admin-only).

    User will be able to login again and generate new tokens.
    """
    target_user = await get_user_or_404(db, user_id)

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    target_user.is_active = True
    await db.commit()

    await clear_user_token_revocation(user_id)

    reason = request.reason if request else None
    audit_log = await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.USER_UNBLOCKED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"reason": reason} if reason else None
    )

    return ApiResponse(
        message=f"User '{target_user.username}' has been unblocked",
        data=AdminActionData(
            user_id=user_id,
            action=AuditAction.USER_UNBLOCKED,
            audit_log_id=audit_log.id
        )
    )


@router.get("/stats/overview", response_model=ApiResponse[OverviewStatsData])
async def stats_overview(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """User and donation totals for the admin dashboard."""
    stats = await AnalyticsService.get_overview_stats(db, DonationLifecycle(db).now())
    return ApiResponse(data=stats)


@router.post("/donations/expire-sweep", response_model=ApiResponse[ExpirySweepData])
async def expire_sweep(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Run the expiry sweep now (admin-only).

    Idempotent: a second run right after the first expires nothing.
    """
    lifecycle = DonationLifecycle(db)
    swept_at = lifecycle.now()
    count = await lifecycle.sweep_expired()

    if count:
        await log_event(
            db=db,
            action=AuditAction.DONATIONS_EXPIRED,
            actor_id=admin.user_id,
            actor_username=admin.username,
            metadata={"count": count, "trigger": "admin"}
        )

    return ApiResponse(
        message=f"{count} donation(s) marked expired",
        data=ExpirySweepData(expired_count=count, swept_at=swept_at)
    )


@router.get("/audit-logs", response_model=ApiResponse[AuditTrailData])
async def get_audit_logs(
    user_id: Optional[int] = Query(None, description="Filter by target user ID"),
    donation_id: Optional[int] = Query(None, description="Filter by donation ID"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).

    Returns recent audit logs for security monitoring and dispute resolution.
    """
    logs, total = await get_audit_trail(
        db=db,
        target_user_id=user_id,
        donation_id=donation_id,
        action=action,
        limit=limit
    )

    return ApiResponse(
        data=AuditTrailData(
            logs=[AuditLogResponse.model_validate(log) for log in logs],
            total=total
        )
    )

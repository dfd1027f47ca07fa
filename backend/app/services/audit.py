"""
Audit logging service for account events, admin actions, donation lifecycle
changes and volunteer and contact-ticket handling.

Provides centralized logging for compliance and dispute resolution.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func
from backend.app.core.actor import Actor
from backend.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    USER_REGISTERED = "USER_REGISTERED"
    USER_BLOCKED = "USER_BLOCKED"
    USER_UNBLOCKED = "USER_UNBLOCKED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    USER_UPDATED = "USER_UPDATED"

    DONATION_CREATED = "DONATION_CREATED"
    DONATION_UPDATED = "DONATION_UPDATED"
    DONATION_DELETED = "DONATION_DELETED"
    DONATION_RESERVED = "DONATION_RESERVED"
    RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
    DONATION_PICKED_UP = "DONATION_PICKED_UP"
    DONATIONS_EXPIRED = "DONATIONS_EXPIRED"

    VOLUNTEER_REGISTERED = "VOLUNTEER_REGISTERED"
    VOLUNTEER_UPDATED = "VOLUNTEER_UPDATED"
    VOLUNTEER_RATED = "VOLUNTEER_RATED"

    CONTACT_ASSIGNED = "CONTACT_ASSIGNED"
    CONTACT_RESPONDED = "CONTACT_RESPONDED"
    CONTACT_FOLLOW_UP_SCHEDULED = "CONTACT_FOLLOW_UP_SCHEDULED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    donation_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log an event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        target_user_id: ID of user being acted upon (if applicable)
        target_username: Username of target
        donation_id: Donation the event concerns (if applicable)
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        donation_id=donation_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def log_donation_event(
    db: AsyncSession,
    action: str,
    actor: Actor,
    donation_id: int,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log a donation lifecycle event performed by an authenticated actor."""
    return await log_event(
        db=db,
        action=action,
        actor_id=actor.user_id,
        actor_username=actor.username,
        donation_id=donation_id,
        metadata={"role": actor.role.value, **(metadata or {})}
    )


async def log_admin_action(
    db: AsyncSession,
    admin: Actor,
    action: str,
    target_user_id: int,
    target_username: str,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an admin action (block, unblock, ...)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=admin.user_id,
        actor_username=admin.username,
        target_user_id=target_user_id,
        target_username=target_username,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an authentication event (register, login success/failure, logout)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    donation_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> tuple[list[AuditLog], int]:
    """
    Retrieve audit trail with optional filtering, most recent first.

    Returns:
        (logs, total matching count)
    """
    conditions = []
    if target_user_id:
        conditions.append(AuditLog.target_user_id == target_user_id)
    if donation_id:
        conditions.append(AuditLog.donation_id == donation_id)
    if action:
        conditions.append(AuditLog.action == action)

    total_result = await db.execute(select(func.count(AuditLog.id)).where(*conditions))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(AuditLog)
        .where(*conditions)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
        .limit(limit)
    )
    return list(result.scalars().all()), total

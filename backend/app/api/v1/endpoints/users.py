"""
User API Endpoints.

Profile read and update for the signed-in user (or an admin), nearby-user
discovery and the admin user search.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.actor import Actor
from backend.app.core.config import settings
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.core.guards import require_admin
from backend.app.core.token_revocation import clear_user_token_revocation, revoke_all_user_tokens
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.schemas.auth import UserData, UserResponse
from backend.app.schemas.common import ApiResponse
from backend.app.schemas.map import MapCenter, MapUsersData
from backend.app.schemas.user import ADMIN_ONLY_FIELDS, UserSearchData, UserUpdate
from backend.app.services.analytics import AnalyticsService
from backend.app.services.audit import AuditAction, log_event

router = APIRouter(prefix="/users", tags=["Users"])

SEARCH_MIN_LENGTH = 2
SEARCH_RESULT_LIMIT = 20


async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


def _ensure_self_or_admin(actor: Actor, user_id: int, action: str):
    if not actor.is_admin and actor.user_id != user_id:
        raise InsufficientPermissionsError(
            message=f"You can only {action} your own profile",
            details={"resource": "user", "id": user_id}
        )


@router.get("/nearby", response_model=ApiResponse[MapUsersData])
async def nearby_users(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(settings.default_radius_miles, ge=0.1, le=settings.max_radius_miles, description="Miles"),
    role: Optional[UserRole] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Active users with a home location within the radius, nearest first."""
    if role is UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role must be one of: donor, volunteer, charity"
        )

    users = await AnalyticsService.find_users_nearby(db, lat, lng, radius, role=role, limit=limit)

    return ApiResponse(
        data=MapUsersData(
            users=users,
            center=MapCenter(lat=lat, lng=lng),
            radius=radius,
            filters={"role": role.value if role else None},
        )
    )


@router.get("/search", response_model=ApiResponse[UserSearchData])
async def search_users(
    q: str = Query(..., description="Name, username, email or organization fragment"),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Search users by name, username, email or organization (admin-only).
    """
    query = q.strip()
    if len(query) < SEARCH_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Search query must be at least {SEARCH_MIN_LENGTH} characters long"
        )

    result = await db.execute(
        select(User)
        .where(
            or_(
                User.first_name.icontains(query, autoescape=True),
                User.last_name.icontains(query, autoescape=True),
                User.username.icontains(query, autoescape=True),
                User.email.icontains(query, autoescape=True),
                User.organization.icontains(query, autoescape=True),
            )
        )
        .order_by(User.id.asc())
        .limit(SEARCH_RESULT_LIMIT)
    )
    users = [UserResponse.model_validate(user) for user in result.scalars().all()]

    return ApiResponse(data=UserSearchData(query=query, users=users, total=len(users)))


@router.get("/{user_id}", response_model=ApiResponse[UserData])
async def get_profile(
    user_id: int,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """A user's own profile; admins may read any profile."""
    _ensure_self_or_admin(current_user, user_id, "view")
    user = await get_user_or_404(db, user_id)
    return ApiResponse(data=UserData(user=UserResponse.model_validate(user)))


@router.put("/{user_id}", response_model=ApiResponse[UserData])
async def update_profile(
    user_id: int,
    update: UserUpdate,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a profile.

    Users edit their own name, contact details and home location. Only
    admins may change ``role`` or ``is_active``, and an admin cannot demote
    or deactivate their own account. Deactivation revokes the user's tokens.
    """
    _ensure_self_or_admin(current_user, user_id, "update")
    changes = update.to_columns()

    if not current_user.is_admin and ADMIN_ONLY_FIELDS & changes.keys():
        raise InsufficientPermissionsError(
            message="Only admins can change role or active status",
            details={"fields": sorted(ADMIN_ONLY_FIELDS & changes.keys())}
        )

    user = await get_user_or_404(db, user_id)

    demotes_self = current_user.is_admin and user_id == current_user.user_id and (
        changes.get("is_active") is False
        or changes.get("role", UserRole.ADMIN) is not UserRole.ADMIN
    )
    if demotes_self:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot demote or deactivate your own account"
        )

    was_active = user.is_active
    for column, value in changes.items():
        setattr(user, column, value)
    await db.commit()
    await db.refresh(user)

    if was_active and not user.is_active:
        await revoke_all_user_tokens(user.id)
    elif user.is_active and not was_active:
        await clear_user_token_revocation(user.id)

    await log_event(
        db=db,
        action=AuditAction.USER_UPDATED,
        actor_id=current_user.user_id,
        actor_username=current_user.username,
        target_user_id=user.id,
        target_username=user.username,
        metadata={"fields": sorted(changes)}
    )

    return ApiResponse(
        message="User updated successfully",
        data=UserData(user=UserResponse.model_validate(user))
    )

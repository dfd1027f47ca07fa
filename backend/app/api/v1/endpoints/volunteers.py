"""
Volunteer API Endpoints.

Volunteer profiles: registration, listing, availability search, ratings and
the admin overview.
"""

from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.actor import Actor
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError, ResourceNotFoundError
from backend.app.core.guards import require_admin
from backend.app.db.session import get_db
from backend.app.models.enums import ExperienceLevel, VolunteerRole, VolunteerSkill, VolunteerStatus, Weekday
from backend.app.models.user import User
from backend.app.models.volunteer import VolunteerProfile
from backend.app.schemas.common import ApiResponse, Pagination
from backend.app.schemas.donation import TIME_OF_DAY_PATTERN
from backend.app.schemas.volunteer import (
    AvailableVolunteersData,
    RateVolunteerRequest,
    Rating,
    RatingData,
    VolunteerCreate,
    VolunteerData,
    VolunteerListData,
    VolunteerResponse,
    VolunteerStatsData,
    VolunteerUpdate,
    normalize_time_of_day,
)
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.volunteers import VolunteerService

router = APIRouter(prefix="/volunteers", tags=["Volunteers"])


async def _get_volunteer_or_404(db: AsyncSession, volunteer_id: int) -> Tuple[VolunteerProfile, User]:
    result = await db.execute(
        select(VolunteerProfile, User)
        .join(User, User.id == VolunteerProfile.user_id)
        .where(VolunteerProfile.id == volunteer_id)
    )
    row = result.one_or_none()
    if row is None:
        raise ResourceNotFoundError("Volunteer", volunteer_id)
    return row[0], row[1]


@router.get("", response_model=ApiResponse[VolunteerListData])
async def list_volunteers(
    role: Optional[VolunteerRole] = Query(None),
    status_filter: VolunteerStatus = Query(VolunteerStatus.ACTIVE, alias="status"),
    experience: Optional[ExperienceLevel] = Query(None),
    skill: Optional[VolunteerSkill] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    """List volunteer profiles, best rated first. Only active profiles unless ``status`` says otherwise."""
    rows = await VolunteerService.list_profiles(
        db, role=role, status=status_filter, skill=skill, experience=experience
    )

    offset = (page - 1) * limit
    return ApiResponse(
        data=VolunteerListData(
            volunteers=[
                VolunteerResponse.from_model(profile, user)
                for profile, user in rows[offset:offset + limit]
            ],
            pagination=Pagination.build(page, limit, len(rows)),
        )
    )


@router.get("/stats/overview", response_model=ApiResponse[VolunteerStatsData])
async def volunteer_stats(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Profile counts by status, role and experience (admin-only)."""
    return ApiResponse(data=await VolunteerService.get_stats(db))


@router.get("/available/{role}/{day}", response_model=ApiResponse[AvailableVolunteersData])
async def available_volunteers(
    role: VolunteerRole,
    day: Weekday,
    start_time: Optional[str] = Query(None, pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h"),
    end_time: Optional[str] = Query(None, pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h"),
    skill: Optional[VolunteerSkill] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Active volunteers of ``role`` who work on ``day``.

    With both start_time and end_time, a volunteer must be flexible or have
    a single time slot covering the whole window.
    """
    start = normalize_time_of_day(start_time) if start_time else None
    end = normalize_time_of_day(end_time) if end_time else None
    if start and end and start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_time must be before end_time"
        )

    rows = await VolunteerService.find_available(db, role, day, start, end, skill=skill)

    return ApiResponse(
        data=AvailableVolunteersData(
            volunteers=[VolunteerResponse.from_model(profile, user) for profile, user in rows],
            filters={
                "role": role.value,
                "day": day.value,
                "start_time": start,
                "end_time": end,
                "skill": skill.value if skill else None,
            },
        )
    )


@router.get("/{volunteer_id}", response_model=ApiResponse[VolunteerData])
async def get_volunteer(
    volunteer_id: int,
    db: AsyncSession = Depends(get_db)
):
    """A volunteer profile with its reviews, newest first."""
    profile, user = await _get_volunteer_or_404(db, volunteer_id)
    reviews = await VolunteerService.get_reviews(db, profile.id)
    return ApiResponse(data=VolunteerData(volunteer=VolunteerResponse.from_model(profile, user, reviews)))


@router.post("", response_model=ApiResponse[VolunteerData], status_code=status.HTTP_201_CREATED)
async def register_volunteer(
    volunteer: VolunteerCreate,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Register the signed-in user as a volunteer.

    One profile per user. New profiles wait in ``pending-approval`` until an
    admin activates them.
    """
    existing = await db.execute(
        select(VolunteerProfile.id).where(VolunteerProfile.user_id == current_user.user_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are already registered as a volunteer"
        )

    profile = VolunteerProfile(user_id=current_user.user_id, **volunteer.to_columns())
    db.add(profile)
    await db.commit()
    await db.refresh(profile)

    await log_event(
        db=db,
        action=AuditAction.VOLUNTEER_REGISTERED,
        actor_id=current_user.user_id,
        actor_username=current_user.username,
        metadata={"volunteer_id": profile.id, "role": profile.volunteer_role.value}
    )

    profile, user = await _get_volunteer_or_404(db, profile.id)
    return ApiResponse(
        message="Volunteer profile created successfully",
        data=VolunteerData(volunteer=VolunteerResponse.from_model(profile, user))
    )


@router.put("/{volunteer_id}", response_model=ApiResponse[VolunteerData])
async def update_volunteer(
    volunteer_id: int,
    update: VolunteerUpdate,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a volunteer profile (owner or admin). Only admins may change ``status``."""
    profile, user = await _get_volunteer_or_404(db, volunteer_id)

    if not current_user.is_admin and profile.user_id != current_user.user_id:
        raise InsufficientPermissionsError(
            message="You can only update your own volunteer profile",
            details={"resource": "volunteer", "id": volunteer_id}
        )

    changes = update.to_columns()
    if "status" in changes and not current_user.is_admin:
        raise InsufficientPermissionsError(
            message="Only admins can change a volunteer's status",
            details={"resource": "volunteer", "id": volunteer_id}
        )

    for column, value in changes.items():
        setattr(profile, column, value)
    await db.commit()
    await db.refresh(profile)

    await log_event(
        db=db,
        action=AuditAction.VOLUNTEER_UPDATED,
        actor_id=current_user.user_id,
        actor_username=current_user.username,
        target_user_id=profile.user_id,
        target_username=user.username,
        metadata={"volunteer_id": profile.id, "fields": sorted(changes)}
    )

    return ApiResponse(
        message="Volunteer profile updated successfully",
        data=VolunteerData(volunteer=VolunteerResponse.from_model(profile, user))
    )


@router.post("/{volunteer_id}/rate", response_model=ApiResponse[RatingData])
async def rate_volunteer(
    volunteer_id: int,
    request: RateVolunteerRequest,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Rate a volunteer from 1 to 5.

    Rating again replaces the caller's earlier rating. Volunteers cannot
    rate themselves.
    """
    profile, user = await _get_volunteer_or_404(db, volunteer_id)

    if profile.user_id == current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot rate your own volunteer profile"
        )

    profile = await VolunteerService.record_rating(
        db, profile, current_user.user_id, request.rating, request.comment
    )

    await log_event(
        db=db,
        action=AuditAction.VOLUNTEER_RATED,
        actor_id=current_user.user_id,
        actor_username=current_user.username,
        target_user_id=profile.user_id,
        target_username=user.username,
        metadata={"volunteer_id": profile.id, "rating": request.rating}
    )

    return ApiResponse(
        message="Rating submitted successfully",
        data=RatingData(
            volunteer_id=profile.id,
            rating=Rating(average=profile.rating_average, count=profile.rating_count),
        )
    )

"""
Map discovery endpoints.

Public, read-only views of donations and users around a point, separately or
combined, plus area statistics and address search.
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.endpoints.donations import dietary_flags, get_lifecycle
from backend.app.core.config import settings
from backend.app.db.session import get_db
from backend.app.domain.donations.filters import DonationFilter
from backend.app.domain.donations.lifecycle import DonationLifecycle
from backend.app.models.enums import DonationStatus, FoodCategory, UserRole
from backend.app.schemas.common import ApiResponse
from backend.app.schemas.donation import DonationResponse
from backend.app.schemas.map import (
    MapAllData,
    MapCenter,
    MapDonation,
    MapDonationsData,
    MapSearchData,
    MapStatsData,
    MapUser,
    MapUsersData,
)
from backend.app.services.analytics import AnalyticsService

router = APIRouter(prefix="/map", tags=["Map"])

SEARCH_MIN_LENGTH = 3
SEARCH_RESULT_LIMIT = 20

MapLayer = Literal["donations", "users"]

_LAT = Query(..., ge=-90, le=90, description="Latitude of the map center")
_LNG = Query(..., ge=-180, le=180, description="Longitude of the map center")
_RADIUS = Query(settings.default_radius_miles, ge=0.1, le=settings.max_radius_miles, description="Miles")


@router.get("/donations", response_model=ApiResponse[MapDonationsData])
async def map_donations(
    lat: float = _LAT,
    lng: float = _LNG,
    radius: float = _RADIUS,
    category: Optional[FoodCategory] = Query(None),
    status_filter: DonationStatus = Query(DonationStatus.AVAILABLE, alias="status"),
    urgent: Optional[bool] = Query(None),
    dietary: frozenset = Depends(dietary_flags),
    lifecycle: DonationLifecycle = Depends(get_lifecycle)
):
    """Unexpired donations within the radius, nearest first."""
    if status_filter is DonationStatus.EXPIRED or status_filter is DonationStatus.CANCELLED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Status must be one of: available, reserved, picked-up"
        )

    nearby = await lifecycle.find_nearby(
        lat,
        lng,
        radius,
        DonationFilter(
            statuses=frozenset({status_filter}), category=category, dietary=dietary, urgent=urgent
        ),
        limit=settings.map_result_limit,
    )
    now = lifecycle.now()

    return ApiResponse(
        data=MapDonationsData(
            donations=[
                MapDonation.from_response(
                    DonationResponse.from_model(
                        hit.donation, now, lifecycle.urgent_threshold_days, hit.distance_miles
                    )
                )
                for hit in nearby
            ],
            center=MapCenter(lat=lat, lng=lng),
            radius=radius,
            filters={
                "category": category.value if category else None,
                "status": status_filter.value,
                "urgent": None if urgent is None else str(urgent).lower(),
                "dietary": ",".join(sorted(dietary)) or None,
            },
        )
    )


@router.get("/all", response_model=ApiResponse[MapAllData])
async def map_all(
    lat: float = _LAT,
    lng: float = _LNG,
    radius: float = _RADIUS,
    types: List[MapLayer] = Query(["donations", "users"]),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """Available donations and active users around a point in one response; ``types`` picks the layers."""
    layers = sorted(set(types))
    data = MapAllData(center=MapCenter(lat=lat, lng=lng), radius=radius, types=layers)

    if "donations" in layers:
        nearby = await lifecycle.find_nearby(
            lat, lng, radius, DonationFilter(), limit=settings.map_result_limit
        )
        now = lifecycle.now()
        data.donations = [
            MapDonation.from_response(
                DonationResponse.from_model(
                    hit.donation, now, lifecycle.urgent_threshold_days, hit.distance_miles
                )
            )
            for hit in nearby
        ]

    if "users" in layers:
        data.users = await AnalyticsService.find_users_nearby(
            db, lat, lng, radius, limit=settings.map_result_limit
        )

    return ApiResponse(data=data)


@router.get("/users", response_model=ApiResponse[MapUsersData])
async def map_users(
    lat: float = _LAT,
    lng: float = _LNG,
    radius: float = _RADIUS,
    role: Optional[UserRole] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Active donors, volunteers and charities with a home location within the radius."""
    if role is UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role must be one of: donor, volunteer, charity"
        )

    users = await AnalyticsService.find_users_nearby(
        db, lat, lng, radius, role=role, limit=settings.map_result_limit
    )

    return ApiResponse(
        data=MapUsersData(
            users=users,
            center=MapCenter(lat=lat, lng=lng),
            radius=radius,
            filters={"role": role.value if role else None},
        )
    )


@router.get("/stats", response_model=ApiResponse[MapStatsData])
async def map_stats(
    lat: float = _LAT,
    lng: float = _LNG,
    radius: float = _RADIUS,
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """Donation and user counts for the area around a point."""
    donation_stats, user_stats = await AnalyticsService.get_area_stats(db, lifecycle, lat, lng, radius)

    return ApiResponse(
        data=MapStatsData(
            donations=donation_stats,
            users=user_stats,
            center=MapCenter(lat=lat, lng=lng),
            radius=radius,
        )
    )


@router.get("/search", response_model=ApiResponse[MapSearchData])
async def map_search(
    q: str = Query(..., description="Street, city, state or zip code fragment"),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """Address search over available donations and active users."""
    query = q.strip()
    if len(query) < SEARCH_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Search query must be at least {SEARCH_MIN_LENGTH} characters long"
        )

    now = lifecycle.now()
    donations, users = await AnalyticsService.search_addresses(db, query, now, limit=SEARCH_RESULT_LIMIT)

    map_donations = [
        MapDonation.from_response(
            DonationResponse.from_model(donation, now, lifecycle.urgent_threshold_days)
        )
        for donation in donations
    ]
    map_users = [
        MapUser(
            id=user.id,
            name=user.full_name,
            role=user.role,
            organization=user.organization,
            coordinates=[user.longitude, user.latitude],
            city=user.city,
        )
        for user in users
    ]

    return ApiResponse(
        data=MapSearchData(
            query=query,
            donations=map_donations,
            users=map_users,
            total=len(map_donations) + len(map_users),
        )
    )

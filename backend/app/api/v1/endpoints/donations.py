"""
Donation API Endpoints.

HTTP surface of the donation lifecycle: listing and search, donor CRUD, and
the reserve / cancel-reservation / pickup transitions.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.actor import Actor
from backend.app.core.config import settings
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InvalidDonationError, ResourceNotFoundError
from backend.app.core.guards import require_role
from backend.app.db.session import get_db
from backend.app.domain.donations.filters import DonationFilter
from backend.app.domain.donations.lifecycle import DonationLifecycle
from backend.app.models.donation import Donation
from backend.app.models.enums import DonationStatus, FoodCategory, UserRole
from backend.app.schemas.common import ApiResponse, MessageData, Pagination
from backend.app.schemas.donation import (
    DonationCreate,
    DonationData,
    DonationListData,
    DonationResponse,
    DonationUpdate,
    ExpiringSoonData,
    ReserveRequest,
)
from backend.app.services.audit import AuditAction, log_donation_event

router = APIRouter(prefix="/donations", tags=["Donations"])

require_donor = require_role([UserRole.DONOR])
require_reserver = require_role([UserRole.VOLUNTEER, UserRole.CHARITY])

SortField = Literal["created_at", "expiry_date", "pickup_date", "views"]


def get_lifecycle(db: AsyncSession = Depends(get_db)) -> DonationLifecycle:
    return DonationLifecycle(db)


def dietary_flags(
    vegetarian: bool = Query(False),
    vegan: bool = Query(False),
    gluten_free: bool = Query(False),
    nut_free: bool = Query(False),
    halal: bool = Query(False),
    kosher: bool = Query(False),
) -> frozenset:
    """Requested dietary flags as ``is_*`` column names; every one must hold."""
    requested = {
        "is_vegetarian": vegetarian,
        "is_vegan": vegan,
        "is_gluten_free": gluten_free,
        "is_nut_free": nut_free,
        "is_halal": halal,
        "is_kosher": kosher,
    }
    return frozenset(name for name, wanted in requested.items() if wanted)


def parse_donation_id(donation_id: str = Path(..., description="Donation ID")) -> int:
    """A malformed id is reported the same way as a missing donation."""
    try:
        parsed = int(donation_id)
    except ValueError:
        raise ResourceNotFoundError("Donation", donation_id)
    if parsed < 1:
        raise ResourceNotFoundError("Donation", donation_id)
    return parsed


def _respond(lifecycle: DonationLifecycle, donation: Donation, distance_miles: Optional[float] = None) -> DonationResponse:
    return DonationResponse.from_model(
        donation,
        lifecycle.now(),
        urgent_threshold_days=lifecycle.urgent_threshold_days,
        distance_miles=distance_miles,
    )


@router.get("", response_model=ApiResponse[DonationListData])
async def list_donations(
    category: Optional[FoodCategory] = Query(None),
    status_filter: DonationStatus = Query(DonationStatus.AVAILABLE, alias="status"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(settings.default_radius_miles, ge=0.1, le=settings.max_radius_miles, description="Miles"),
    urgent: Optional[bool] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    sort: SortField = Query("created_at"),
    dietary: frozenset = Depends(dietary_flags),
    lifecycle: DonationLifecycle = Depends(get_lifecycle)
):
    """
    List donations with filtering and pagination.

    With lat/lng the results are ordered nearest first and expired donations
    are excluded unless status=expired is requested. Without a point they are
    ordered by ``sort`` descending.
    """
    if lat is not None and lng is not None:
        donation_filter = DonationFilter(
            statuses=frozenset({status_filter}),
            category=category,
            dietary=dietary,
            urgent=urgent,
        )
        nearby = await lifecycle.find_nearby(lat, lng, radius, donation_filter)
        total = len(nearby)
        offset = (page - 1) * limit
        donations = [
            _respond(lifecycle, hit.donation, hit.distance_miles)
            for hit in nearby[offset:offset + limit]
        ]
    else:
        donation_filter = DonationFilter(
            statuses=frozenset({status_filter}),
            category=category,
            dietary=dietary,
            urgent=urgent,
            include_expired=status_filter is not DonationStatus.AVAILABLE,
        )
        rows, total = await lifecycle.list_donations(donation_filter, page=page, limit=limit, sort=sort)
        donations = [_respond(lifecycle, donation) for donation in rows]

    return ApiResponse(
        data=DonationListData(
            donations=donations,
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.get("/expiring-soon", response_model=ApiResponse[ExpiringSoonData])
@router.get("/expiring-soon/{days}", response_model=ApiResponse[ExpiringSoonData])
async def expiring_soon(
    days: int = settings.expiring_soon_default_days,
    lifecycle: DonationLifecycle = Depends(get_lifecycle)
):
    """Available donations expiring within the next ``days`` days (1-30, default 3)."""
    if days < 1 or days > settings.expiring_soon_max_days:
        raise InvalidDonationError(
            f"Days must be between 1 and {settings.expiring_soon_max_days}", field="days"
        )

    donations = await lifecycle.find_expiring_soon(days)

    return ApiResponse(
        data=ExpiringSoonData(
            donations=[_respond(lifecycle, donation) for donation in donations],
            days_until_expiry=days,
        )
    )


@router.get("/{donation_id}", response_model=ApiResponse[DonationData])
async def get_donation(
    donation_id: int = Depends(parse_donation_id),
    lifecycle: DonationLifecycle = Depends(get_lifecycle)
):
    """Fetch a donation and count the view."""
    donation = await lifecycle.increment_views(donation_id)
    return ApiResponse(data=DonationData(donation=_respond(lifecycle, donation)))


@router.post("", response_model=ApiResponse[DonationData], status_code=status.HTTP_201_CREATED)
async def create_donation(
    donation_data: DonationCreate,
    current_user: Actor = Depends(require_donor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a new donation (donor only).

    Validates:
    - Pickup date is not in the past
    - Expiry date is after pickup date
    """
    donation = await lifecycle.create(current_user, donation_data.to_columns())

    await log_donation_event(
        db=db,
        action=AuditAction.DONATION_CREATED,
        actor=current_user,
        donation_id=donation.id,
        metadata={"title": donation.title, "category": donation.category.value}
    )

    return ApiResponse(
        message="Donation created successfully",
        data=DonationData(donation=_respond(lifecycle, donation)),
    )


@router.put("/{donation_id}", response_model=ApiResponse[DonationData])
async def update_donation(
    donation_data: DonationUpdate,
    donation_id: int = Depends(parse_donation_id),
    current_user: Actor = Depends(require_donor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """
    Update donation details (owning donor only).

    Picked-up and expired donations can no longer be edited.
    """
    donation, updated_fields = await lifecycle.update(donation_id, current_user, donation_data.to_columns())

    if updated_fields:
        await log_donation_event(
            db=db,
            action=AuditAction.DONATION_UPDATED,
            actor=current_user,
            donation_id=donation_id,
            metadata={"updated_fields": updated_fields}
        )

    return ApiResponse(
        message="Donation updated successfully",
        data=DonationData(donation=_respond(lifecycle, donation)),
    )


@router.delete("/{donation_id}", response_model=ApiResponse[MessageData])
async def delete_donation(
    donation_id: int = Depends(parse_donation_id),
    current_user: Actor = Depends(require_donor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a donation (owning donor only).

    Reserved and picked-up donations cannot be deleted.
    """
    donation = await lifecycle.delete(donation_id, current_user)

    await log_donation_event(
        db=db,
        action=AuditAction.DONATION_DELETED,
        actor=current_user,
        donation_id=donation_id,
        metadata={"title": donation.title, "status": donation.status.value}
    )

    return ApiResponse(message="Donation deleted successfully", data=MessageData(id=donation_id))


@router.post("/{donation_id}/reserve", response_model=ApiResponse[DonationData])
async def reserve_donation(
    request_data: Optional[ReserveRequest] = None,
    donation_id: int = Depends(parse_donation_id),
    current_user: Actor = Depends(require_reserver),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """
    Reserve an available donation (volunteer or charity only).

    Not idempotent: a retried request after a lost response fails with
    ERR_DONATION_NOT_AVAILABLE because the first attempt already won.
    """
    notes = request_data.pickup_notes if request_data else None
    donation = await lifecycle.reserve(donation_id, current_user, notes)

    await log_donation_event(
        db=db,
        action=AuditAction.DONATION_RESERVED,
        actor=current_user,
        donation_id=donation_id,
        metadata={"reserved_by_kind": donation.reserved_by_kind.value}
    )

    return ApiResponse(
        message="Donation reserved successfully",
        data=DonationData(donation=_respond(lifecycle, donation)),
    )


@router.post("/{donation_id}/cancel-reservation", response_model=ApiResponse[DonationData])
async def cancel_reservation(
    donation_id: int = Depends(parse_donation_id),
    current_user: Actor = Depends(get_current_user),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """Cancel the caller's own reservation; the donation becomes available again."""
    donation = await lifecycle.cancel_reservation(donation_id, current_user)

    await log_donation_event(
        db=db,
        action=AuditAction.RESERVATION_CANCELLED,
        actor=current_user,
        donation_id=donation_id
    )

    return ApiResponse(
        message="Reservation cancelled successfully",
        data=DonationData(donation=_respond(lifecycle, donation)),
    )


@router.post("/{donation_id}/pickup", response_model=ApiResponse[DonationData])
async def mark_picked_up(
    donation_id: int = Depends(parse_donation_id),
    current_user: Actor = Depends(get_current_user),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_db)
):
    """Mark the caller's own reservation as picked up."""
    donation = await lifecycle.mark_picked_up(donation_id, current_user)

    await log_donation_event(
        db=db,
        action=AuditAction.DONATION_PICKED_UP,
        actor=current_user,
        donation_id=donation_id
    )

    return ApiResponse(
        message="Donation marked as picked up successfully",
        data=DonationData(donation=_respond(lifecycle, donation)),
    )

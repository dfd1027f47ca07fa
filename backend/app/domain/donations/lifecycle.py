"""
Donation Lifecycle Manager.

Owns the status rules of a donation:

    available ──reserve──▶ reserved ──mark_picked_up──▶ picked-up
        ▲                     │
        └─cancel_reservation──┘
    available ──(expiry passes; sweep or read-time)──▶ expired

Every transition is a single conditional UPDATE whose WHERE clause re-checks
the precondition, so two actors racing for the same donation cannot both
win. When the UPDATE matches no row the donation is re-read to report why.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.actor import Actor
from backend.app.core.config import settings
from backend.app.core.exceptions import (
    DonationExpiredError,
    DonationLockedError,
    DonationNotAvailableError,
    InsufficientPermissionsError,
    InvalidDonationError,
    InvalidDonationStateError,
    ResourceNotFoundError,
)
from backend.app.core.guards import OwnershipGuard
from backend.app.domain.donations.expiry import effective_status
from backend.app.domain.donations.filters import DonationFilter
from backend.app.domain.donations.geo import bounding_box, haversine_miles
from backend.app.models.donation import Donation
from backend.app.models.enums import (
    ContactPreference,
    DonationStatus,
    FoodCategory,
    QuantityUnit,
    StorageTemperature,
)
from backend.app.utils.time import utcnow

logger = logging.getLogger("foodshare.donations")

ENUM_COLUMNS = {
    "category": FoodCategory,
    "quantity_unit": QuantityUnit,
    "storage_temperature": StorageTemperature,
    "contact_preference": ContactPreference,
}

EDITABLE_COLUMNS = frozenset({
    "title", "description", "category", "quantity_amount", "quantity_unit",
    "tags", "contact_preference",
    "is_vegetarian", "is_vegan", "is_gluten_free", "is_nut_free", "is_halal", "is_kosher",
    "storage_temperature", "storage_instructions",
    "expiry_date", "pickup_date", "pickup_start", "pickup_end",
    "latitude", "longitude",
    "address_street", "address_city", "address_state", "address_zip_code", "address_country",
})

REQUIRED_ON_CREATE = frozenset({
    "title", "category", "quantity_amount", "quantity_unit",
    "expiry_date", "pickup_date", "pickup_start", "pickup_end",
    "latitude", "longitude",
})

# Statuses in which the donor may no longer edit / delete
UPDATE_LOCKED = frozenset({DonationStatus.PICKED_UP, DonationStatus.EXPIRED})
DELETE_LOCKED = frozenset({DonationStatus.RESERVED, DonationStatus.PICKED_UP})

SORT_COLUMNS = {
    "created_at": Donation.created_at,
    "expiry_date": Donation.expiry_date,
    "pickup_date": Donation.pickup_date,
    "views": Donation.views,
}

_CLEARED_RESERVATION = {
    "reserved_by_kind": None,
    "reserved_by_id": None,
    "reserved_at": None,
    "reservation_notes": None,
}


class NearbyDonation(NamedTuple):
    donation: Donation
    distance_miles: float


class DonationLifecycle:
    """
    Lifecycle operations over the donations table.

    Args:
        db: session used for every read and write; each mutating call commits
        clock: returns the current naive-UTC time
        urgent_threshold_days: horizon used by the ``urgent`` filter
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        urgent_threshold_days: int = None,
    ):
        self.db = db
        self._clock = clock
        self.urgent_threshold_days = (
            settings.urgent_threshold_days if urgent_threshold_days is None else urgent_threshold_days
        )
        self._ownership = OwnershipGuard()

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------ reads

    async def get(self, donation_id: int) -> Donation:
        """Load a donation fresh from the database or raise ResourceNotFoundError."""
        donation = await self.db.get(Donation, donation_id, populate_existing=True)
        if donation is None:
            raise ResourceNotFoundError("Donation", donation_id)
        return donation

    async def list_donations(
        self,
        donation_filter: DonationFilter,
        page: int = 1,
        limit: int = 20,
        sort: str = "created_at",
    ) -> Tuple[List[Donation], int]:
        """Return one page of matching donations, newest (or highest ``sort``) first, plus the total."""
        conditions = donation_filter.to_conditions(self.now(), self.urgent_threshold_days)
        sort_column = SORT_COLUMNS[sort]

        total_result = await self.db.execute(
            select(func.count(Donation.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Donation)
            .where(*conditions)
            .order_by(sort_column.desc(), Donation.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_miles: float,
        donation_filter: DonationFilter = DonationFilter(),
        limit: Optional[int] = None,
    ) -> List[NearbyDonation]:
        """
        Donations within radius_miles of the point, nearest first.

        Expired donations are left out unless the filter asks for them.
        """
        box = bounding_box(latitude, longitude, radius_miles)
        conditions = donation_filter.to_conditions(self.now(), self.urgent_threshold_days)
        conditions.append(Donation.latitude.between(box.min_lat, box.max_lat))
        if box.min_lng is not None:
            conditions.append(Donation.longitude.between(box.min_lng, box.max_lng))

        result = await self.db.execute(select(Donation).where(*conditions))

        hits = []
        for donation in result.scalars().all():
            distance = haversine_miles(latitude, longitude, donation.latitude, donation.longitude)
            if distance <= radius_miles:
                hits.append(NearbyDonation(donation, distance))

        hits.sort(key=lambda hit: (hit.distance_miles, hit.donation.id))
        if limit is not None:
            hits = hits[:limit]
        return hits

    async def find_expiring_soon(self, days: int) -> List[Donation]:
        """Available donations expiring within the next ``days`` days, soonest first."""
        now = self.now()
        result = await self.db.execute(
            select(Donation)
            .where(
                Donation.status == DonationStatus.AVAILABLE,
                Donation.expiry_date > now,
                Donation.expiry_date <= now + timedelta(days=days),
            )
            .order_by(Donation.expiry_date.asc(), Donation.id.asc())
        )
        return list(result.scalars().all())

    # ----------------------------------------------------------------- writes

    async def create(self, donor: Actor, fields: Dict[str, Any]) -> Donation:
        """
        Create a donation owned by ``donor`` in the available state.

        Raises:
            InvalidDonationError: missing/unknown field, enum value outside its
                set, non-positive quantity, pickup date in the past, or expiry
                not after pickup
        """
        columns = _coerce_columns(fields)
        missing = REQUIRED_ON_CREATE - columns.keys()
        if missing:
            raise InvalidDonationError(
                f"Missing required fields: {', '.join(sorted(missing))}", field=sorted(missing)[0]
            )

        now = self.now()
        _check_schedule(columns["pickup_date"], columns["expiry_date"], now, pickup_changed=True)

        columns["tags"] = columns.get("tags") or []
        donation = Donation(
            donor_id=donor.user_id,
            status=DonationStatus.AVAILABLE,
            views=0,
            **columns,
        )

        self.db.add(donation)
        await self.db.commit()
        await self.db.refresh(donation)

        logger.info("Donation %s created by donor %s", donation.id, donor.user_id)
        return donation

    async def reserve(self, donation_id: int, actor: Actor, notes: Optional[str] = None) -> Donation:
        """
        Claim an available, unexpired donation for a volunteer or charity.

        Raises:
            InsufficientPermissionsError: actor's role cannot reserve
            ResourceNotFoundError: no such donation
            DonationNotAvailableError: status is not available
            DonationExpiredError: expiry date has passed
        """
        kind = actor.reserver_kind
        if kind is None:
            raise InsufficientPermissionsError("Only volunteers and charities can reserve donations")

        now = self.now()
        result = await self.db.execute(
            update(Donation)
            .where(
                Donation.id == donation_id,
                Donation.status == DonationStatus.AVAILABLE,
                Donation.expiry_date > now,
            )
            .values(
                status=DonationStatus.RESERVED,
                reserved_by_kind=kind,
                reserved_by_id=actor.user_id,
                reserved_at=now,
                reservation_notes=notes,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            donation = await self.get(donation_id)
            if donation.status is DonationStatus.AVAILABLE and donation.expiry_date <= now:
                raise DonationExpiredError(donation_id)
            # Reserved by someone else, or released again by a racing cancel
            raise DonationNotAvailableError(donation_id, donation.status.value)

        await self.db.commit()
        logger.info("Donation %s reserved by %s %s", donation_id, kind.value, actor.user_id)
        return await self.get(donation_id)

    async def cancel_reservation(self, donation_id: int, actor: Actor) -> Donation:
        """
        Release the actor's own reservation, returning the donation to available.

        Raises:
            ResourceNotFoundError: no such donation
            InsufficientPermissionsError: actor is not the recorded reserver
            InvalidDonationStateError: donation is no longer reserved
        """
        await self._transition_reserved(
            donation_id,
            actor,
            values={"status": DonationStatus.AVAILABLE, **_CLEARED_RESERVATION},
            action="cancel",
        )
        logger.info("Reservation on donation %s cancelled by %s", donation_id, actor.user_id)
        return await self.get(donation_id)

    async def mark_picked_up(self, donation_id: int, actor: Actor) -> Donation:
        """
        Complete the actor's own reservation (terminal).

        Raises:
            ResourceNotFoundError: no such donation
            InsufficientPermissionsError: actor is not the recorded reserver
            InvalidDonationStateError: donation is not reserved
        """
        now = self.now()
        await self._transition_reserved(
            donation_id,
            actor,
            values={
                "status": DonationStatus.PICKED_UP,
                "picked_up_by_kind": actor.reserver_kind,
                "picked_up_by_id": actor.user_id,
                "picked_up_at": now,
                **_CLEARED_RESERVATION,
            },
            action="mark as picked up",
        )
        logger.info("Donation %s picked up by %s", donation_id, actor.user_id)
        return await self.get(donation_id)

    async def update(self, donation_id: int, actor: Actor, changes: Dict[str, Any]) -> Tuple[Donation, List[str]]:
        """
        Apply a donor's edit.

        Returns:
            (updated donation, names of the columns that were written)

        Raises:
            ResourceNotFoundError, InsufficientPermissionsError,
            DonationLockedError (picked-up or expired), InvalidDonationError
        """
        donation = await self.get(donation_id)
        self._ownership.enforce(donation.donor_id, actor, "donation", "update")

        now = self.now()
        current = effective_status(donation.status, donation.expiry_date, now)
        if current in UPDATE_LOCKED:
            raise DonationLockedError(donation_id, current.value, "updated")

        columns = _coerce_columns(changes)
        if not columns:
            return donation, []

        if "pickup_date" in columns or "expiry_date" in columns:
            _check_schedule(
                columns.get("pickup_date", donation.pickup_date),
                columns.get("expiry_date", donation.expiry_date),
                now,
                pickup_changed="pickup_date" in columns,
            )

        result = await self.db.execute(
            update(Donation)
            .where(
                Donation.id == donation_id,
                Donation.donor_id == actor.user_id,
                Donation.status.notin_(UPDATE_LOCKED),
                or_(Donation.status != DonationStatus.AVAILABLE, Donation.expiry_date > now),
            )
            .values(**columns)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            donation = await self.get(donation_id)
            current = effective_status(donation.status, donation.expiry_date, now)
            raise DonationLockedError(donation_id, current.value, "updated")

        await self.db.commit()
        logger.info("Donation %s updated by donor %s: %s", donation_id, actor.user_id, sorted(columns))
        return await self.get(donation_id), sorted(columns)

    async def delete(self, donation_id: int, actor: Actor) -> Donation:
        """
        Remove a donation owned by the actor.

        Returns:
            The donation as it was before removal

        Raises:
            ResourceNotFoundError, InsufficientPermissionsError,
            DonationLockedError (reserved or picked-up)
        """
        donation = await self.get(donation_id)
        self._ownership.enforce(donation.donor_id, actor, "donation", "delete")

        if donation.status in DELETE_LOCKED:
            raise DonationLockedError(donation_id, donation.status.value, "deleted")

        result = await self.db.execute(
            delete(Donation)
            .where(
                Donation.id == donation_id,
                Donation.donor_id == actor.user_id,
                Donation.status.notin_(DELETE_LOCKED),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            donation = await self.get(donation_id)
            raise DonationLockedError(donation_id, donation.status.value, "deleted")

        await self.db.commit()
        self.db.expunge(donation)
        logger.info("Donation %s deleted by donor %s", donation_id, actor.user_id)
        return donation

    async def increment_views(self, donation_id: int) -> Donation:
        result = await self.db.execute(
            update(Donation)
            .where(Donation.id == donation_id)
            .values(views=Donation.views + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ResourceNotFoundError("Donation", donation_id)
        await self.db.commit()
        return await self.get(donation_id)

    async def sweep_expired(self) -> int:
        """Persist the expired status for every available donation past its expiry date."""
        result = await self.db.execute(
            update(Donation)
            .where(
                Donation.status == DonationStatus.AVAILABLE,
                Donation.expiry_date <= self.now(),
            )
            .values(status=DonationStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        count = result.rowcount or 0
        if count:
            logger.info("Expiry sweep marked %s donation(s) expired", count)
        return count

    # ---------------------------------------------------------------- helpers

    async def _transition_reserved(
        self,
        donation_id: int,
        actor: Actor,
        values: Dict[str, Any],
        action: str,
    ) -> None:
        kind = actor.reserver_kind
        if kind is not None:
            result = await self.db.execute(
                update(Donation)
                .where(
                    Donation.id == donation_id,
                    Donation.status == DonationStatus.RESERVED,
                    and_(
                        Donation.reserved_by_id == actor.user_id,
                        Donation.reserved_by_kind == kind,
                    ),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                await self.db.commit()
                return

        # The collector of a picked-up donation still owns it for error reporting
        donation = await self.get(donation_id)
        if not (_is_reserver(donation, actor) or _is_collector(donation, actor)):
            raise InsufficientPermissionsError(
                message=f"You can only {action} your own reservations",
                details={"resource": "donation", "id": donation_id}
            )
        raise InvalidDonationStateError(donation_id, donation.status.value)


def _is_reserver(donation: Donation, actor: Actor) -> bool:
    kind = actor.reserver_kind
    return (
        kind is not None
        and donation.reserved_by_id == actor.user_id
        and donation.reserved_by_kind == kind
    )


def _is_collector(donation: Donation, actor: Actor) -> bool:
    kind = actor.reserver_kind
    return (
        kind is not None
        and donation.picked_up_by_id == actor.user_id
        and donation.picked_up_by_kind == kind
    )


def _coerce_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Keep editable columns, convert enum strings and reject out-of-range values."""
    unknown = set(fields) - EDITABLE_COLUMNS
    if unknown:
        raise InvalidDonationError(
            f"Unknown or read-only fields: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
        )

    columns = dict(fields)
    for name, enum_type in ENUM_COLUMNS.items():
        if name in columns and columns[name] is not None:
            try:
                columns[name] = enum_type(columns[name])
            except ValueError:
                raise InvalidDonationError(f"Invalid {name.replace('_', ' ')}: {columns[name]!r}", field=name)

    if "quantity_amount" in columns and (columns["quantity_amount"] is None or columns["quantity_amount"] <= 0):
        raise InvalidDonationError("Quantity amount must be greater than 0", field="quantity_amount")

    return columns


def _check_schedule(pickup_date: datetime, expiry_date: datetime, now: datetime, pickup_changed: bool) -> None:
    if pickup_changed and pickup_date < now:
        raise InvalidDonationError("Pickup date cannot be in the past", field="pickup_date")
    if expiry_date <= pickup_date:
        raise InvalidDonationError("Expiry date must be after pickup date", field="expiry_date")

"""
Analytics Service.

Read-only aggregation for the map and admin dashboards: users around a
point, area statistics, address search and the system overview.
"""

from collections import Counter
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.donations import expiry
from backend.app.domain.donations.filters import DonationFilter
from backend.app.domain.donations.geo import bounding_box, haversine_miles
from backend.app.domain.donations.lifecycle import DonationLifecycle
from backend.app.models.donation import Donation
from backend.app.models.enums import DonationStatus, UserRole
from backend.app.models.user import User
from backend.app.schemas.admin import OverviewStatsData
from backend.app.schemas.map import DonationAreaStats, MapUser, UserAreaStats


class AnalyticsService:

    @staticmethod
    async def find_users_nearby(
        db: AsyncSession,
        latitude: float,
        longitude: float,
        radius_miles: float,
        role: Optional[UserRole] = None,
        active: bool = True,
        limit: Optional[int] = None,
    ) -> List[MapUser]:
        """Users with a home location within radius_miles, nearest first. Admins are never listed."""
        box = bounding_box(latitude, longitude, radius_miles)
        conditions = [
            User.is_active.is_(active),
            User.role != UserRole.ADMIN,
            User.latitude.isnot(None),
            User.longitude.isnot(None),
            User.latitude.between(box.min_lat, box.max_lat),
        ]
        if box.min_lng is not None:
            conditions.append(User.longitude.between(box.min_lng, box.max_lng))
        if role is not None:
            conditions.append(User.role == role)

        result = await db.execute(select(User).where(*conditions))

        hits = []
        for user in result.scalars().all():
            distance = haversine_miles(latitude, longitude, user.latitude, user.longitude)
            if distance <= radius_miles:
                hits.append((distance, user))

        hits.sort(key=lambda hit: (hit[0], hit[1].id))
        if limit is not None:
            hits = hits[:limit]

        return [
            MapUser(
                id=user.id,
                name=user.full_name,
                role=user.role,
                organization=user.organization,
                coordinates=[user.longitude, user.latitude],
                city=user.city,
                distance_miles=round(distance, 2),
            )
            for distance, user in hits
        ]

    @staticmethod
    async def get_area_stats(
        db: AsyncSession,
        lifecycle: DonationLifecycle,
        latitude: float,
        longitude: float,
        radius_miles: float,
    ) -> Tuple[DonationAreaStats, UserAreaStats]:
        """Counts for unexpired donations (any status) and active users within the radius."""
        now = lifecycle.now()
        nearby = await lifecycle.find_nearby(
            latitude, longitude, radius_miles, DonationFilter(statuses=None)
        )
        donations = [hit.donation for hit in nearby]

        donation_stats = DonationAreaStats(
            total=len(donations),
            by_category=dict(Counter(d.category.value for d in donations)),
            by_status=dict(Counter(d.status.value for d in donations)),
            urgent=sum(
                1 for d in donations
                if expiry.is_urgent(d.expiry_date, now, lifecycle.urgent_threshold_days)
            ),
            avg_quantity=(
                round(sum(d.quantity_amount for d in donations) / len(donations), 2)
                if donations else None
            ),
        )

        users = await AnalyticsService.find_users_nearby(db, latitude, longitude, radius_miles)
        user_stats = UserAreaStats(
            total=len(users),
            by_role=dict(Counter(u.role.value for u in users)),
        )

        return donation_stats, user_stats

    @staticmethod
    async def search_addresses(
        db: AsyncSession,
        query: str,
        now: datetime,
        limit: int = 20,
    ) -> Tuple[List[Donation], List[User]]:
        """Case-insensitive substring match on pickup addresses and user cities."""
        donation_result = await db.execute(
            select(Donation)
            .where(
                or_(
                    Donation.address_street.icontains(query, autoescape=True),
                    Donation.address_city.icontains(query, autoescape=True),
                    Donation.address_state.icontains(query, autoescape=True),
                    Donation.address_zip_code.icontains(query, autoescape=True),
                ),
                Donation.status == DonationStatus.AVAILABLE,
                Donation.expiry_date > now,
            )
            .order_by(Donation.expiry_date.asc(), Donation.id.asc())
            .limit(limit)
        )

        user_result = await db.execute(
            select(User)
            .where(
                User.city.icontains(query, autoescape=True),
                User.is_active.is_(True),
                User.role != UserRole.ADMIN,
                User.latitude.isnot(None),
                User.longitude.isnot(None),
            )
            .order_by(User.id.asc())
            .limit(limit)
        )

        return list(donation_result.scalars().all()), list(user_result.scalars().all())

    @staticmethod
    async def get_overview_stats(db: AsyncSession, now: datetime) -> OverviewStatsData:
        """System-wide counts for the admin dashboard."""
        role_rows = await db.execute(
            select(User.role, func.count(User.id)).group_by(User.role)
        )
        users_by_role = {role.value: count for role, count in role_rows.all()}

        active_users = (await db.execute(
            select(func.count(User.id)).where(User.is_active.is_(True))
        )).scalar() or 0

        # Stored status lags the clock until the sweep runs
        rows = await db.execute(select(Donation.status, Donation.expiry_date))
        donations_by_status = dict(Counter(
            expiry.effective_status(status, expiry_date, now).value
            for status, expiry_date in rows.all()
        ))

        total_views = (await db.execute(select(func.sum(Donation.views)))).scalar() or 0

        return OverviewStatsData(
            users_by_role=users_by_role,
            active_users=active_users,
            donations_by_status=donations_by_status,
            total_donations=sum(donations_by_status.values()),
            total_views=total_views,
        )

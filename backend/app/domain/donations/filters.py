"""
Immutable donation query filter.

A DonationFilter is assembled once from request parameters and compiled into
SQLAlchemy conditions against the current time.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from backend.app.models.donation import Donation
from backend.app.models.enums import DonationStatus, FoodCategory

DIETARY_FLAGS = (
    "is_vegetarian",
    "is_vegan",
    "is_gluten_free",
    "is_nut_free",
    "is_halal",
    "is_kosher",
)


@dataclass(frozen=True)
class DonationFilter:
    """
    Attributes:
        statuses: effective statuses to match; None matches every status
        category: restrict to one food category
        dietary: dietary flags that must all be set (names from DIETARY_FLAGS)
        urgent: True for donations expiring within the urgency threshold, False for the rest
        include_expired: keep rows whose expiry date has passed even when
            "expired" is not among the requested statuses
    """
    statuses: Optional[FrozenSet[DonationStatus]] = frozenset({DonationStatus.AVAILABLE})
    category: Optional[FoodCategory] = None
    dietary: FrozenSet[str] = field(default_factory=frozenset)
    urgent: Optional[bool] = None
    include_expired: bool = False

    def __post_init__(self):
        unknown = set(self.dietary) - set(DIETARY_FLAGS)
        if unknown:
            raise ValueError(f"Unknown dietary flags: {', '.join(sorted(unknown))}")

    @property
    def matches_expired(self) -> bool:
        return self.include_expired or (
            self.statuses is not None and DonationStatus.EXPIRED in self.statuses
        )

    def to_conditions(self, now: datetime, urgent_threshold_days: int = 1) -> List[ColumnElement]:
        conditions: List[ColumnElement] = []

        if self.statuses is not None:
            ordered = sorted(self.statuses, key=lambda s: s.value)
            conditions.append(or_(*(_status_clause(s, now) for s in ordered)))

        if not self.matches_expired:
            conditions.append(Donation.expiry_date > now)

        if self.category is not None:
            conditions.append(Donation.category == self.category)

        for flag in sorted(self.dietary):
            conditions.append(getattr(Donation, flag).is_(True))

        if self.urgent is not None:
            urgent_cutoff = now + timedelta(days=urgent_threshold_days)
            if self.urgent:
                conditions.append(Donation.expiry_date <= urgent_cutoff)
            else:
                conditions.append(Donation.expiry_date > urgent_cutoff)

        return conditions


def _status_clause(status: DonationStatus, now: datetime) -> ColumnElement:
    # Available and expired are split by the clock until the sweep catches up
    if status is DonationStatus.AVAILABLE:
        return and_(Donation.status == DonationStatus.AVAILABLE, Donation.expiry_date > now)
    if status is DonationStatus.EXPIRED:
        return or_(
            Donation.status == DonationStatus.EXPIRED,
            and_(Donation.status == DonationStatus.AVAILABLE, Donation.expiry_date <= now),
        )
    return Donation.status == status

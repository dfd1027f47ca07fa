"""
Read-time expiry derivations.

Urgency and expiry state depend on the current time, so they are computed
whenever a donation is read and never persisted.
"""

import math
from datetime import datetime, timedelta

from backend.app.models.enums import DonationStatus, ExpiryStatus

SECONDS_PER_DAY = 24 * 60 * 60


def days_until_expiry(expiry_date: datetime, now: datetime) -> int:
    """Whole days until expiry, rounded up (an hour away counts as 1 day)."""
    return math.ceil((expiry_date - now).total_seconds() / SECONDS_PER_DAY)


def is_expired(expiry_date: datetime, now: datetime) -> bool:
    return expiry_date <= now


def is_urgent(expiry_date: datetime, now: datetime, threshold_days: int = 1) -> bool:
    """True when the donation expires within threshold_days (including already expired)."""
    return expiry_date <= now + timedelta(days=threshold_days)


def expiry_status(expiry_date: datetime, now: datetime) -> ExpiryStatus:
    if is_expired(expiry_date, now):
        return ExpiryStatus.EXPIRED
    days = days_until_expiry(expiry_date, now)
    if days <= 1:
        return ExpiryStatus.EXPIRING_SOON
    if days <= 3:
        return ExpiryStatus.EXPIRING_THIS_WEEK
    return ExpiryStatus.GOOD


def effective_status(status: DonationStatus, expiry_date: datetime, now: datetime) -> DonationStatus:
    """
    The status a reader should see.

    An available donation past its expiry is reported as expired even if the
    sweep has not written that status yet.
    """
    if status is DonationStatus.AVAILABLE and is_expired(expiry_date, now):
        return DonationStatus.EXPIRED
    return status

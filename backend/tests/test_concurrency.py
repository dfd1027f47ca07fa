"""
Concurrency Tests.

Validates that racing reservations cannot both win.
"""

import pytest
from sqlalchemy import select, update

from backend.app.core.actor import Actor
from backend.app.core.exceptions import (
    DonationLockedError,
    DonationNotAvailableError,
    InsufficientPermissionsError,
    InvalidDonationStateError,
)
from backend.app.domain.donations.lifecycle import DonationLifecycle
from backend.app.models.donation import Donation
from backend.app.models.enums import DonationStatus


def _actor(user):
    return Actor(user_id=user.id, username=user.username, role=user.role)


@pytest.mark.asyncio
async def test_second_reserver_loses_despite_stale_read(session_factory, make_donation, donor, volunteer, charity):
    """Both actors saw the donation as available; only the first conditional update applies."""
    donation = await make_donation(donor)

    async with session_factory() as first_session, session_factory() as second_session:
        first = DonationLifecycle(first_session)
        second = DonationLifecycle(second_session)

        # Both sides observe "available" before either writes
        assert (await first.get(donation.id)).status is DonationStatus.AVAILABLE
        assert (await second.get(donation.id)).status is DonationStatus.AVAILABLE

        await first.reserve(donation.id, _actor(volunteer))

        with pytest.raises(DonationNotAvailableError):
            await second.reserve(donation.id, _actor(charity))

    async with session_factory() as check:
        stored = (await check.execute(select(Donation).where(Donation.id == donation.id))).scalar_one()
        assert stored.status is DonationStatus.RESERVED
        assert stored.reserved_by_id == volunteer.id


@pytest.mark.asyncio
async def test_cancel_after_pickup_by_other_session(session_factory, make_donation, donor, volunteer, charity):
    """A cancel racing a pickup cannot reopen a donation that was already collected."""
    donation = await make_donation(donor)

    async with session_factory() as session:
        await DonationLifecycle(session).reserve(donation.id, _actor(volunteer))

    async with session_factory() as pickup_session, session_factory() as cancel_session:
        canceller = DonationLifecycle(cancel_session)
        assert (await canceller.get(donation.id)).status is DonationStatus.RESERVED

        await DonationLifecycle(pickup_session).mark_picked_up(donation.id, _actor(volunteer))

        with pytest.raises(InvalidDonationStateError):
            await canceller.cancel_reservation(donation.id, _actor(volunteer))
        with pytest.raises(InsufficientPermissionsError):
            await canceller.cancel_reservation(donation.id, _actor(charity))

    async with session_factory() as check:
        stored = (await check.execute(select(Donation).where(Donation.id == donation.id))).scalar_one()
        assert stored.status is DonationStatus.PICKED_UP


@pytest.mark.asyncio
async def test_edit_racing_pickup_is_rejected(session_factory, make_donation, donor, volunteer):
    donation = await make_donation(donor)

    async with session_factory() as session:
        lifecycle = DonationLifecycle(session)
        await lifecycle.reserve(donation.id, _actor(volunteer))
        await lifecycle.mark_picked_up(donation.id, _actor(volunteer))

    async with session_factory() as donor_session:
        with pytest.raises(DonationLockedError):
            await DonationLifecycle(donor_session).update(donation.id, _actor(donor), {"title": "Changed"})


class _ReleasedBeforeReread(DonationLifecycle):
    """Lets a competing cancel land between a failed claim and the re-read that explains it."""

    released = False

    async def get(self, donation_id):
        if not self.released:
            self.released = True
            await self.db.execute(
                update(Donation)
                .where(Donation.id == donation_id)
                .values(
                    status=DonationStatus.AVAILABLE,
                    reserved_by_kind=None,
                    reserved_by_id=None,
                    reserved_at=None,
                )
            )
            await self.db.commit()
        return await super().get(donation_id)


@pytest.mark.asyncio
async def test_lost_reserve_reports_not_available_when_released_meanwhile(
    session_factory, make_donation, donor, volunteer, charity
):
    donation = await make_donation(donor)

    async with session_factory() as session:
        await DonationLifecycle(session).reserve(donation.id, _actor(volunteer))

    async with session_factory() as session:
        with pytest.raises(DonationNotAvailableError) as exc_info:
            await _ReleasedBeforeReread(session).reserve(donation.id, _actor(charity))

    assert exc_info.value.details["status"] == "available"

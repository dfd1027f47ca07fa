"""
Periodic expiry sweep.

Writes status=expired for available donations past their expiry date so the
stored status catches up with the clock. Read paths still filter by expiry
date, so results are correct between runs.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from backend.app.db.session import AsyncSessionLocal
from backend.app.domain.donations.lifecycle import DonationLifecycle
from backend.app.services.audit import AuditAction, log_event

logger = logging.getLogger("foodshare.sweeper")

SWEEP_JOB_ID = "donation-expiry-sweep"


async def run_expiry_sweep(session_factory=AsyncSessionLocal) -> int:
    """Run one sweep in its own session; returns the number of donations expired."""
    async with session_factory() as session:
        count = await DonationLifecycle(session).sweep_expired()
        if count:
            await log_event(
                db=session,
                action=AuditAction.DONATIONS_EXPIRED,
                metadata={"count": count, "trigger": "scheduler"}
            )
        return count


def start_expiry_scheduler(interval_seconds: int) -> Optional[AsyncIOScheduler]:
    """
    Schedule run_expiry_sweep every interval_seconds on the running event loop.

    Returns None when interval_seconds is 0 or negative (sweep disabled).
    """
    if interval_seconds <= 0:
        logger.info("Expiry sweep disabled")
        return None

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_expiry_sweep,
        "interval",
        seconds=interval_seconds,
        id=SWEEP_JOB_ID,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info("Expiry sweep scheduled every %s seconds", interval_seconds)
    return scheduler

"""
Contact Service.

Priority triage, the urgent-ticket queue and statistics for contact tickets.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from backend.app.models.contact import ContactMessage
from backend.app.models.enums import ContactPriority, ContactStatus
from backend.app.schemas.contact import ContactStatsData

# Unanswered medium-priority tickets escalate after this long
STALE_MEDIUM_AFTER = timedelta(hours=24)

OPEN_STATUSES = frozenset({ContactStatus.NEW, ContactStatus.IN_PROGRESS})


def infer_priority(message: str) -> ContactPriority:
    """Tickets that mention "urgent" jump the queue."""
    if "urgent" in message.lower():
        return ContactPriority.URGENT
    return ContactPriority.MEDIUM


def urgent_condition(now: datetime) -> ColumnElement:
    return or_(
        ContactMessage.priority == ContactPriority.URGENT,
        and_(ContactMessage.priority == ContactPriority.HIGH, ContactMessage.status == ContactStatus.NEW),
        and_(
            ContactMessage.priority == ContactPriority.MEDIUM,
            ContactMessage.status == ContactStatus.NEW,
            ContactMessage.created_at <= now - STALE_MEDIUM_AFTER,
        ),
    )


class ContactService:

    @staticmethod
    async def find_urgent(db: AsyncSession, now: datetime) -> List[ContactMessage]:
        """Urgent tickets, high-priority new ones and medium-priority new ones older than a day; oldest first."""
        result = await db.execute(
            select(ContactMessage)
            .where(urgent_condition(now))
            .order_by(ContactMessage.created_at.asc(), ContactMessage.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_stats(db: AsyncSession) -> ContactStatsData:
        result = await db.execute(select(ContactMessage))
        contacts = list(result.scalars().all())

        response_hours = [
            (c.responded_at - c.created_at).total_seconds() / 3600
            for c in contacts if c.responded_at is not None
        ]
        return ContactStatsData(
            total=len(contacts),
            by_status=dict(Counter(c.status.value for c in contacts)),
            by_priority=dict(Counter(c.priority.value for c in contacts)),
            by_category=dict(Counter(c.category.value for c in contacts)),
            open=sum(1 for c in contacts if c.status in OPEN_STATUSES),
            avg_response_hours=(
                round(sum(response_hours) / len(response_hours), 2) if response_hours else None
            ),
        )

"""
Volunteer Service.

Availability matching, rating aggregation and dashboard statistics for
volunteer profiles.
"""

import logging
from collections import Counter
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.enums import ExperienceLevel, VolunteerRole, VolunteerSkill, VolunteerStatus, Weekday
from backend.app.models.user import User
from backend.app.models.volunteer import VolunteerProfile, VolunteerReview
from backend.app.schemas.volunteer import TimeSlot, VolunteerStatsData

logger = logging.getLogger("foodshare.volunteers")


def is_available(
    profile: VolunteerProfile,
    day: Weekday,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> bool:
    """
    True if the profile works on ``day`` and, when a window is given, is
    flexible or has one slot covering the whole window. Times are zero-padded HH:MM.
    """
    if day.value not in (profile.availability_days or []):
        return False
    if start is None or end is None or profile.is_flexible:
        return True
    return any(TimeSlot(**slot).covers(start, end) for slot in profile.time_slots or [])


class VolunteerService:

    @staticmethod
    async def list_profiles(
        db: AsyncSession,
        role: Optional[VolunteerRole] = None,
        status: Optional[VolunteerStatus] = VolunteerStatus.ACTIVE,
        skill: Optional[VolunteerSkill] = None,
        experience: Optional[ExperienceLevel] = None,
    ) -> List[Tuple[VolunteerProfile, User]]:
        """Profiles with their users, best rated first. Skills live in a JSON list and are matched in Python."""
        conditions = []
        if role is not None:
            conditions.append(VolunteerProfile.volunteer_role == role)
        if status is not None:
            conditions.append(VolunteerProfile.status == status)
        if experience is not None:
            conditions.append(VolunteerProfile.experience == experience)

        result = await db.execute(
            select(VolunteerProfile, User)
            .join(User, User.id == VolunteerProfile.user_id)
            .where(*conditions)
            .order_by(VolunteerProfile.rating_average.desc(), VolunteerProfile.id.asc())
        )
        rows = [(profile, user) for profile, user in result.all()]
        if skill is not None:
            rows = [(profile, user) for profile, user in rows if skill.value in (profile.skills or [])]
        return rows

    @staticmethod
    async def find_available(
        db: AsyncSession,
        role: VolunteerRole,
        day: Weekday,
        start: Optional[str] = None,
        end: Optional[str] = None,
        skill: Optional[VolunteerSkill] = None,
    ) -> List[Tuple[VolunteerProfile, User]]:
        """Active volunteers of a role who can work the given day and window."""
        rows = await VolunteerService.list_profiles(db, role=role, skill=skill)
        return [(profile, user) for profile, user in rows if is_available(profile, day, start, end)]

    @staticmethod
    async def record_rating(
        db: AsyncSession,
        profile: VolunteerProfile,
        reviewer_id: int,
        rating: int,
        comment: Optional[str] = None,
    ) -> VolunteerProfile:
        """
        Store the reviewer's rating, replacing an earlier one, and recompute
        the profile's average and count from all reviews.
        """
        result = await db.execute(
            select(VolunteerReview).where(
                VolunteerReview.volunteer_id == profile.id,
                VolunteerReview.reviewer_id == reviewer_id,
            )
        )
        review = result.scalar_one_or_none()
        if review is None:
            db.add(VolunteerReview(
                volunteer_id=profile.id, reviewer_id=reviewer_id, rating=rating, comment=comment
            ))
        else:
            review.rating = rating
            review.comment = comment
        await db.flush()

        average, count = (await db.execute(
            select(func.avg(VolunteerReview.rating), func.count(VolunteerReview.id))
            .where(VolunteerReview.volunteer_id == profile.id)
        )).one()
        profile.rating_average = round(float(average or 0), 2)
        profile.rating_count = count

        await db.commit()
        await db.refresh(profile)
        logger.info(
            "Volunteer %s rated %s by user %s (average %.2f over %d)",
            profile.id, rating, reviewer_id, profile.rating_average, profile.rating_count,
        )
        return profile

    @staticmethod
    async def get_reviews(db: AsyncSession, profile_id: int) -> List[VolunteerReview]:
        result = await db.execute(
            select(VolunteerReview)
            .where(VolunteerReview.volunteer_id == profile_id)
            .order_by(VolunteerReview.created_at.desc(), VolunteerReview.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_stats(db: AsyncSession) -> VolunteerStatsData:
        result = await db.execute(select(VolunteerProfile))
        profiles = list(result.scalars().all())

        rated = [p.rating_average for p in profiles if p.rating_count]
        return VolunteerStatsData(
            total=len(profiles),
            by_status=dict(Counter(p.status.value for p in profiles)),
            by_role=dict(Counter(p.volunteer_role.value for p in profiles)),
            by_experience=dict(Counter(p.experience.value for p in profiles)),
            with_vehicle=sum(1 for p in profiles if p.has_vehicle),
            average_rating=round(sum(rated) / len(rated), 2) if rated else None,
        )

"""
Volunteer profile database models.

A user may register one volunteer profile describing the work they sign up
for and when they are available. Other users rate profiles; the stored
average is recomputed from the review rows on every rating.
"""

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Enum, Boolean, JSON,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import VolunteerRole, VolunteerStatus, ExperienceLevel, VehicleType


class VolunteerProfile(Base):
    """
    Volunteer profile model.

    ``availability_days`` holds weekday values, ``time_slots`` a list of
    ``{"start": "HH:MM", "end": "HH:MM"}`` objects with zero-padded times.
    """
    __tablename__ = "volunteer_profiles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False, index=True)

    volunteer_role = Column(Enum(VolunteerRole), nullable=False, index=True)
    status = Column(Enum(VolunteerStatus), default=VolunteerStatus.PENDING_APPROVAL, nullable=False, index=True)
    experience = Column(Enum(ExperienceLevel), default=ExperienceLevel.BEGINNER, nullable=False)
    skills = Column(JSON, nullable=False, default=list)

    # Availability
    availability_days = Column(JSON, nullable=False, default=list)
    time_slots = Column(JSON, nullable=False, default=list)
    is_flexible = Column(Boolean, default=False, nullable=False)

    # Vehicle
    has_vehicle = Column(Boolean, default=False, nullable=False)
    vehicle_type = Column(Enum(VehicleType), nullable=True)
    vehicle_insured = Column(Boolean, default=False, nullable=False)

    # Preferences
    max_distance_miles = Column(Float, default=25, nullable=False)
    max_duration_hours = Column(Float, default=4, nullable=False)

    # Emergency contact
    emergency_contact_name = Column(String(100), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)

    # Denormalized from volunteer_reviews
    rating_average = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    notes = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<VolunteerProfile(id={self.id}, user_id={self.user_id}, role='{self.volunteer_role.value}')>"


class VolunteerReview(Base):
    """One reviewer's rating of a volunteer; a second rating replaces the first."""
    __tablename__ = "volunteer_reviews"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    volunteer_id = Column(Integer, ForeignKey('volunteer_profiles.id'), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('volunteer_id', 'reviewer_id', name='uq_volunteer_reviews_reviewer'),
        CheckConstraint('rating BETWEEN 1 AND 5', name='ck_volunteer_reviews_rating_range'),
    )

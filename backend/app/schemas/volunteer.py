"""
Volunteer profile schemas.

Request bodies flatten onto the volunteer_profiles columns through
``to_columns``; responses nest them back into availability, vehicle and
preference blocks.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from backend.app.models.enums import (
    ExperienceLevel, VehicleType, VolunteerRole, VolunteerSkill, VolunteerStatus, Weekday,
)
from backend.app.models.volunteer import VolunteerProfile, VolunteerReview
from backend.app.schemas.common import Pagination
from backend.app.schemas.donation import TIME_OF_DAY_PATTERN
from backend.app.schemas.user import PHONE_PATTERN


def normalize_time_of_day(value: str) -> str:
    """'9:05' -> '09:05', so slot times compare correctly as strings."""
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{int(minutes):02d}"


class TimeSlot(BaseModel):
    start: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h")
    end: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h")

    @field_validator("start", "end")
    @classmethod
    def zero_pad(cls, value: str) -> str:
        return normalize_time_of_day(value)

    def covers(self, start: str, end: str) -> bool:
        return self.start <= start and self.end >= end


class Availability(BaseModel):
    days: List[Weekday] = Field(..., min_length=1, description="At least one day")
    time_slots: List[TimeSlot] = Field(default_factory=list)
    is_flexible: bool = False


class Vehicle(BaseModel):
    has_vehicle: bool = False
    type: Optional[VehicleType] = None
    insured: bool = False


class Preferences(BaseModel):
    max_distance_miles: float = Field(25, ge=1, le=100)
    max_duration_hours: float = Field(4, ge=1, le=12)


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., pattern=PHONE_PATTERN)


def _flatten(data: Dict[str, Any]) -> Dict[str, Any]:
    columns = {}
    if "role" in data:
        columns["volunteer_role"] = data["role"]
    for key in ("status", "experience", "skills", "notes"):
        if key in data:
            columns[key] = data[key]

    availability = data.get("availability")
    if availability is not None:
        columns["availability_days"] = [day.value for day in availability["days"]]
        columns["time_slots"] = availability["time_slots"]
        columns["is_flexible"] = availability["is_flexible"]

    vehicle = data.get("vehicle")
    if vehicle is not None:
        columns["has_vehicle"] = vehicle["has_vehicle"]
        columns["vehicle_type"] = vehicle["type"]
        columns["vehicle_insured"] = vehicle["insured"]

    preferences = data.get("preferences")
    if preferences is not None:
        columns.update(preferences)

    if "emergency_contact" in data:
        contact = data["emergency_contact"] or {}
        columns["emergency_contact_name"] = contact.get("name")
        columns["emergency_contact_phone"] = contact.get("phone")

    if "skills" in columns:
        columns["skills"] = [skill.value for skill in columns["skills"] or []]
    return columns


class VolunteerCreate(BaseModel):
    role: VolunteerRole
    availability: Availability
    skills: List[VolunteerSkill] = Field(default_factory=list)
    experience: ExperienceLevel = ExperienceLevel.BEGINNER
    vehicle: Vehicle = Field(default_factory=Vehicle)
    preferences: Preferences = Field(default_factory=Preferences)
    emergency_contact: Optional[EmergencyContact] = None
    notes: Optional[str] = Field(None, max_length=500)

    class Config:
        str_strip_whitespace = True

    def to_columns(self) -> Dict[str, Any]:
        return _flatten(self.model_dump())


class VolunteerUpdate(BaseModel):
    """Partial update; ``status`` is admin-only."""
    role: Optional[VolunteerRole] = None
    status: Optional[VolunteerStatus] = None
    availability: Optional[Availability] = None
    skills: Optional[List[VolunteerSkill]] = None
    experience: Optional[ExperienceLevel] = None
    vehicle: Optional[Vehicle] = None
    preferences: Optional[Preferences] = None
    emergency_contact: Optional[EmergencyContact] = None
    notes: Optional[str] = Field(None, max_length=500)

    class Config:
        str_strip_whitespace = True

    def to_columns(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        # Required blocks cannot be nulled out
        for key in ("role", "status", "availability", "experience", "vehicle", "preferences"):
            if key in data and data[key] is None:
                del data[key]
        return _flatten(data)


class RateVolunteerRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)

    class Config:
        str_strip_whitespace = True


class VolunteerUser(BaseModel):
    id: int
    name: str
    email: str
    organization: Optional[str] = None


class Rating(BaseModel):
    average: float
    count: int


class ReviewResponse(BaseModel):
    id: int
    reviewer_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VolunteerResponse(BaseModel):
    id: int
    user_id: int
    user: Optional[VolunteerUser] = None
    role: VolunteerRole
    status: VolunteerStatus
    availability: Availability
    skills: List[VolunteerSkill]
    experience: ExperienceLevel
    vehicle: Vehicle
    preferences: Preferences
    emergency_contact: Optional[EmergencyContact] = None
    rating: Rating
    notes: Optional[str] = None
    reviews: Optional[List[ReviewResponse]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(
        cls,
        profile: VolunteerProfile,
        user=None,
        reviews: Optional[List[VolunteerReview]] = None,
    ) -> "VolunteerResponse":
        emergency_contact = None
        if profile.emergency_contact_name and profile.emergency_contact_phone:
            emergency_contact = EmergencyContact(
                name=profile.emergency_contact_name,
                phone=profile.emergency_contact_phone,
            )

        return cls(
            id=profile.id,
            user_id=profile.user_id,
            user=VolunteerUser(
                id=user.id, name=user.full_name, email=user.email, organization=user.organization
            ) if user is not None else None,
            role=profile.volunteer_role,
            status=profile.status,
            availability=Availability(
                days=profile.availability_days,
                time_slots=profile.time_slots or [],
                is_flexible=profile.is_flexible,
            ),
            skills=profile.skills or [],
            experience=profile.experience,
            vehicle=Vehicle(
                has_vehicle=profile.has_vehicle,
                type=profile.vehicle_type,
                insured=profile.vehicle_insured,
            ),
            preferences=Preferences(
                max_distance_miles=profile.max_distance_miles,
                max_duration_hours=profile.max_duration_hours,
            ),
            emergency_contact=emergency_contact,
            rating=Rating(average=profile.rating_average, count=profile.rating_count),
            notes=profile.notes,
            reviews=[ReviewResponse.model_validate(r) for r in reviews] if reviews is not None else None,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class VolunteerData(BaseModel):
    volunteer: VolunteerResponse


class VolunteerListData(BaseModel):
    volunteers: List[VolunteerResponse]
    pagination: Pagination


class AvailableVolunteersData(BaseModel):
    volunteers: List[VolunteerResponse]
    filters: Dict[str, Optional[str]]


class RatingData(BaseModel):
    volunteer_id: int
    rating: Rating


class VolunteerStatsData(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_role: Dict[str, int]
    by_experience: Dict[str, int]
    with_vehicle: int
    average_rating: Optional[float]

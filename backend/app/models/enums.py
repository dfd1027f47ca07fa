"""
Enumerations shared by the user, donation, volunteer and contact models.

Every closed set the API accepts lives here so that schemas, models and
query filters agree on the same values.
"""

import enum
from typing import Optional


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        DONOR: Lists surplus food donations
        VOLUNTEER: Reserves and picks up donations
        CHARITY: Reserves and picks up donations on behalf of an organization
        ADMIN: Supreme user with system-level access
    """
    DONOR = "donor"
    VOLUNTEER = "volunteer"
    CHARITY = "charity"
    ADMIN = "admin"


class DonationStatus(str, enum.Enum):
    """
    Donation status enumeration.

    Status flow:
        AVAILABLE → RESERVED → PICKED_UP
        RESERVED → AVAILABLE (reservation cancelled)
        AVAILABLE → EXPIRED (expiry sweep, or observed lazily at read time)
    """
    AVAILABLE = "available"
    RESERVED = "reserved"
    PICKED_UP = "picked-up"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class ReserverKind(str, enum.Enum):
    """Which slot of a reservation the reserving actor occupies."""
    VOLUNTEER = "volunteer"
    CHARITY = "charity"


_RESERVER_KIND_BY_ROLE = {
    UserRole.DONOR: None,
    UserRole.VOLUNTEER: ReserverKind.VOLUNTEER,
    UserRole.CHARITY: ReserverKind.CHARITY,
    UserRole.ADMIN: None,
}

def reserver_kind_for(role: UserRole) -> Optional[ReserverKind]:
    """Return the reservation slot a role reserves under, or None if it cannot reserve."""
    return _RESERVER_KIND_BY_ROLE[role]


class FoodCategory(str, enum.Enum):
    FRUITS = "fruits"
    VEGETABLES = "vegetables"
    GRAINS = "grains"
    DAIRY = "dairy"
    MEAT = "meat"
    CANNED = "canned"
    BAKED = "baked"
    FROZEN = "frozen"
    BEVERAGES = "beverages"
    SNACKS = "snacks"
    OTHER = "other"


class QuantityUnit(str, enum.Enum):
    KG = "kg"
    LBS = "lbs"
    PIECES = "pieces"
    CANS = "cans"
    BOXES = "boxes"
    BOTTLES = "bottles"
    BAGS = "bags"


class StorageTemperature(str, enum.Enum):
    ROOM = "room"
    REFRIGERATED = "refrigerated"
    FROZEN = "frozen"


class ContactPreference(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"
    BOTH = "both"


class ExpiryStatus(str, enum.Enum):
    """Read-time classification of how close a donation is to expiring."""
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring-soon"
    EXPIRING_THIS_WEEK = "expiring-this-week"
    GOOD = "good"


class Weekday(str, enum.Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class VolunteerRole(str, enum.Enum):
    """The kind of work a volunteer signs up for."""
    FOOD_COLLECTION = "food-collection"
    FOOD_DISTRIBUTION = "food-distribution"
    COORDINATION = "coordination"
    DRIVING = "driving"
    SORTING = "sorting"
    ADMIN = "admin"


class VolunteerStatus(str, enum.Enum):
    """
    Volunteer profile status.

    New profiles start in PENDING_APPROVAL; only admins move them on.
    """
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING_APPROVAL = "pending-approval"


class VolunteerSkill(str, enum.Enum):
    DRIVING = "driving"
    LIFTING = "lifting"
    COOKING = "cooking"
    ORGANIZATION = "organization"
    COMMUNICATION = "communication"
    FIRST_AID = "first-aid"
    FOOD_SAFETY = "food-safety"
    LOGISTICS = "logistics"
    CUSTOMER_SERVICE = "customer-service"
    MULTILINGUAL = "multilingual"


class ExperienceLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class VehicleType(str, enum.Enum):
    CAR = "car"
    VAN = "van"
    TRUCK = "truck"
    MOTORCYCLE = "motorcycle"
    BICYCLE = "bicycle"


class ContactCategory(str, enum.Enum):
    GENERAL = "general"
    DONATION = "donation"
    VOLUNTEER = "volunteer"
    PARTNERSHIP = "partnership"
    SUPPORT = "support"
    FEEDBACK = "feedback"
    OTHER = "other"


class ContactPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ContactStatus(str, enum.Enum):
    """
    Contact ticket status.

    Status flow:
        NEW → IN_PROGRESS (assigned) → RESOLVED (responded) → CLOSED
    """
    NEW = "new"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ContactSource(str, enum.Enum):
    WEBSITE = "website"
    MOBILE_APP = "mobile-app"
    EMAIL = "email"
    PHONE = "phone"
    SOCIAL_MEDIA = "social-media"

"""
Map discovery schemas.

Compact payloads for plotting donations and users around a point.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel

from backend.app.models.enums import DonationStatus, FoodCategory, UserRole
from backend.app.schemas.donation import Address, Dietary, PickupTime, Quantity, Storage, DonationResponse


class MapCenter(BaseModel):
    lat: float
    lng: float


class MapDonation(BaseModel):
    id: int
    type: str = "donation"
    title: str
    category: FoodCategory
    status: DonationStatus
    is_urgent: bool
    coordinates: List[float]
    address: Address
    pickup_date: datetime
    pickup_time: PickupTime
    quantity: Quantity
    expiry_date: datetime
    days_until_expiry: int
    donor_id: int
    dietary: Dietary
    storage: Storage
    distance_miles: Optional[float] = None

    @classmethod
    def from_response(cls, donation: DonationResponse) -> "MapDonation":
        return cls(
            id=donation.id,
            title=donation.title,
            category=donation.category,
            status=donation.status,
            is_urgent=donation.is_urgent,
            coordinates=donation.location.coordinates,
            address=donation.location.address,
            pickup_date=donation.pickup_date,
            pickup_time=donation.pickup_time,
            quantity=donation.quantity,
            expiry_date=donation.expiry_date,
            days_until_expiry=donation.days_until_expiry,
            donor_id=donation.donor_id,
            dietary=donation.dietary,
            storage=donation.storage,
            distance_miles=donation.distance_miles,
        )


class MapDonationsData(BaseModel):
    donations: List[MapDonation]
    center: MapCenter
    radius: float
    filters: Dict[str, Optional[str]]


class MapUser(BaseModel):
    id: int
    type: str = "user"
    name: str
    role: UserRole
    organization: Optional[str] = None
    coordinates: List[float]
    city: Optional[str] = None
    distance_miles: Optional[float] = None


class MapUsersData(BaseModel):
    users: List[MapUser]
    center: MapCenter
    radius: float
    filters: Dict[str, Optional[str]]


class DonationAreaStats(BaseModel):
    total: int
    by_category: Dict[str, int]
    by_status: Dict[str, int]
    urgent: int
    avg_quantity: Optional[float]


class UserAreaStats(BaseModel):
    total: int
    by_role: Dict[str, int]


class MapStatsData(BaseModel):
    donations: DonationAreaStats
    users: UserAreaStats
    center: MapCenter
    radius: float


class MapSearchData(BaseModel):
    query: str
    donations: List[MapDonation]
    users: List[MapUser]
    total: int


class MapAllData(BaseModel):
    donations: Optional[List[MapDonation]] = None
    users: Optional[List[MapUser]] = None
    center: MapCenter
    radius: float
    types: List[str]

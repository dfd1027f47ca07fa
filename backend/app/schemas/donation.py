"""
Donation Pydantic schemas.

Request bodies keep the nested JSON shape clients send (quantity, pickup_time,
location, dietary, storage); ``to_columns`` flattens them onto the table.
Responses rebuild the nested shape and add the read-time fields.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from backend.app.domain.donations import expiry
from backend.app.models.donation import Donation
from backend.app.models.enums import (
    ContactPreference,
    DonationStatus,
    ExpiryStatus,
    FoodCategory,
    QuantityUnit,
    ReserverKind,
    StorageTemperature,
)
from backend.app.schemas.common import Pagination
from backend.app.utils.time import as_naive_utc

TIME_OF_DAY_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

# Columns that may never be written as NULL through a partial update
_NOT_NULL_COLUMNS = frozenset({
    "title", "category", "quantity_amount", "quantity_unit", "tags", "contact_preference",
    "is_vegetarian", "is_vegan", "is_gluten_free", "is_nut_free", "is_halal", "is_kosher",
    "storage_temperature", "expiry_date", "pickup_date", "pickup_start", "pickup_end",
    "latitude", "longitude",
})


class Quantity(BaseModel):
    amount: float = Field(..., ge=0.1, description="Amount, greater than 0")
    unit: QuantityUnit


class PickupTime(BaseModel):
    start: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h")
    end: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h")


class Address(BaseModel):
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field("United States", max_length=100)


class Location(BaseModel):
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")
    address: Address = Field(default_factory=Address)

    @field_validator("coordinates")
    @classmethod
    def coordinates_in_range(cls, value: List[float]) -> List[float]:
        lng, lat = value
        if not -180 <= lng <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        if not -90 <= lat <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return value


class Dietary(BaseModel):
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_nut_free: bool = False
    is_halal: bool = False
    is_kosher: bool = False


class Storage(BaseModel):
    temperature: StorageTemperature = StorageTemperature.ROOM
    special_instructions: Optional[str] = Field(None, max_length=500)


def _flatten(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map a (possibly partial) nested request dump onto donation column names."""
    columns: Dict[str, Any] = {}
    for key in ("title", "description", "category", "tags", "contact_preference",
                "expiry_date", "pickup_date"):
        if key in data:
            columns[key] = data[key]

    quantity = data.get("quantity") or {}
    if "amount" in quantity:
        columns["quantity_amount"] = quantity["amount"]
    if "unit" in quantity:
        columns["quantity_unit"] = quantity["unit"]

    pickup_time = data.get("pickup_time") or {}
    if "start" in pickup_time:
        columns["pickup_start"] = pickup_time["start"]
    if "end" in pickup_time:
        columns["pickup_end"] = pickup_time["end"]

    location = data.get("location") or {}
    if "coordinates" in location:
        columns["longitude"], columns["latitude"] = location["coordinates"]
    for key, value in (location.get("address") or {}).items():
        columns[f"address_{key}"] = value

    columns.update(data.get("dietary") or {})

    storage = data.get("storage") or {}
    if "temperature" in storage:
        columns["storage_temperature"] = storage["temperature"]
    if "special_instructions" in storage:
        columns["storage_instructions"] = storage["special_instructions"]

    return columns


class _DonationDates(BaseModel):
    @field_validator("expiry_date", "pickup_date", check_fields=False)
    @classmethod
    def normalize_datetime(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(value) if value is not None else value

    @field_validator("tags", check_fields=False)
    @classmethod
    def strip_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        return [tag.strip() for tag in value if tag.strip()]


class DonationCreate(_DonationDates):
    """Schema for creating a donation."""
    title: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: FoodCategory
    quantity: Quantity
    expiry_date: datetime
    pickup_date: datetime
    pickup_time: PickupTime
    location: Location
    dietary: Dietary = Field(default_factory=Dietary)
    storage: Storage = Field(default_factory=Storage)
    tags: List[str] = Field(default_factory=list)
    contact_preference: ContactPreference = ContactPreference.EMAIL

    class Config:
        str_strip_whitespace = True

    @field_validator("tags")
    @classmethod
    def tag_length(cls, value: List[str]) -> List[str]:
        if any(len(tag) > 50 for tag in value):
            raise ValueError("Each tag must be at most 50 characters")
        return value

    def to_columns(self) -> Dict[str, Any]:
        return _flatten(self.model_dump())


class DonationUpdate(_DonationDates):
    """Schema for a donor's partial edit. Only fields present in the body are written."""
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[FoodCategory] = None
    quantity: Optional[Quantity] = None
    expiry_date: Optional[datetime] = None
    pickup_date: Optional[datetime] = None
    pickup_time: Optional[PickupTime] = None
    location: Optional[Location] = None
    dietary: Optional[Dietary] = None
    storage: Optional[Storage] = None
    tags: Optional[List[str]] = None
    contact_preference: Optional[ContactPreference] = None

    class Config:
        str_strip_whitespace = True

    def to_columns(self) -> Dict[str, Any]:
        columns = _flatten(self.model_dump(exclude_unset=True))
        return {
            key: value for key, value in columns.items()
            if value is not None or key not in _NOT_NULL_COLUMNS
        }


class ReserveRequest(BaseModel):
    pickup_notes: Optional[str] = Field(None, max_length=500)

    class Config:
        str_strip_whitespace = True


class ReservationInfo(BaseModel):
    kind: ReserverKind
    user_id: int
    reserved_at: Optional[datetime]
    notes: Optional[str]


class GeoPoint(BaseModel):
    type: str = "Point"
    coordinates: List[float]
    address: Address


class DonationResponse(BaseModel):
    """Schema for a donation as returned by the API."""
    id: int
    donor_id: int
    title: str
    description: Optional[str]
    category: FoodCategory
    quantity: Quantity
    expiry_date: datetime
    pickup_date: datetime
    pickup_time: PickupTime
    location: GeoPoint
    pickup_address: str
    dietary: Dietary
    storage: Storage
    tags: List[str]
    contact_preference: ContactPreference
    status: DonationStatus
    reserved_by: Optional[ReservationInfo]
    picked_up_by_kind: Optional[ReserverKind] = None
    picked_up_by_id: Optional[int]
    picked_up_at: Optional[datetime]
    is_urgent: bool
    days_until_expiry: int
    expiry_status: ExpiryStatus
    views: int
    distance_miles: Optional[float] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(
        cls,
        donation: Donation,
        now: datetime,
        urgent_threshold_days: int = 1,
        distance_miles: Optional[float] = None,
    ) -> "DonationResponse":
        reserved_by = None
        if donation.reserved_by_id is not None:
            reserved_by = ReservationInfo(
                kind=donation.reserved_by_kind,
                user_id=donation.reserved_by_id,
                reserved_at=donation.reserved_at,
                notes=donation.reservation_notes,
            )

        return cls(
            id=donation.id,
            donor_id=donation.donor_id,
            title=donation.title,
            description=donation.description,
            category=donation.category,
            quantity=Quantity(amount=donation.quantity_amount, unit=donation.quantity_unit),
            expiry_date=donation.expiry_date,
            pickup_date=donation.pickup_date,
            pickup_time=PickupTime(start=donation.pickup_start, end=donation.pickup_end),
            location=GeoPoint(
                coordinates=[donation.longitude, donation.latitude],
                address=Address(
                    street=donation.address_street,
                    city=donation.address_city,
                    state=donation.address_state,
                    zip_code=donation.address_zip_code,
                    country=donation.address_country,
                ),
            ),
            pickup_address=donation.pickup_address_string,
            dietary=Dietary(
                is_vegetarian=donation.is_vegetarian,
                is_vegan=donation.is_vegan,
                is_gluten_free=donation.is_gluten_free,
                is_nut_free=donation.is_nut_free,
                is_halal=donation.is_halal,
                is_kosher=donation.is_kosher,
            ),
            storage=Storage(
                temperature=donation.storage_temperature,
                special_instructions=donation.storage_instructions,
            ),
            tags=list(donation.tags or []),
            contact_preference=donation.contact_preference,
            status=expiry.effective_status(donation.status, donation.expiry_date, now),
            reserved_by=reserved_by,
            picked_up_by_kind=donation.picked_up_by_kind,
            picked_up_by_id=donation.picked_up_by_id,
            picked_up_at=donation.picked_up_at,
            is_urgent=expiry.is_urgent(donation.expiry_date, now, urgent_threshold_days),
            days_until_expiry=expiry.days_until_expiry(donation.expiry_date, now),
            expiry_status=expiry.expiry_status(donation.expiry_date, now),
            views=donation.views,
            distance_miles=round(distance_miles, 2) if distance_miles is not None else None,
            created_at=donation.created_at,
            updated_at=donation.updated_at,
        )


class DonationData(BaseModel):
    donation: DonationResponse


class DonationListData(BaseModel):
    donations: List[DonationResponse]
    pagination: Pagination


class ExpiringSoonData(BaseModel):
    donations: List[DonationResponse]
    days_until_expiry: int

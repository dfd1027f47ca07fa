"""
Donation database model.

A donation is a food-surplus listing offered by a donor and reservable by a
volunteer or charity until it is picked up or expires.
"""

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Enum, Boolean, JSON,
    Index, CheckConstraint,
)
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import (
    DonationStatus, ReserverKind, FoodCategory, QuantityUnit,
    StorageTemperature, ContactPreference,
)


class Donation(Base):
    """
    Donation model for the food-sharing marketplace.

    Reservation columns are populated if and only if status is RESERVED.
    Urgency and expiry state are derived at read time and never stored.
    """
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - immutable after creation
    donor_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Description
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(Enum(FoodCategory), nullable=False)
    quantity_amount = Column(Float, nullable=False)
    quantity_unit = Column(Enum(QuantityUnit), nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    contact_preference = Column(Enum(ContactPreference), default=ContactPreference.EMAIL, nullable=False)

    # Dietary flags
    is_vegetarian = Column(Boolean, default=False, nullable=False)
    is_vegan = Column(Boolean, default=False, nullable=False)
    is_gluten_free = Column(Boolean, default=False, nullable=False)
    is_nut_free = Column(Boolean, default=False, nullable=False)
    is_halal = Column(Boolean, default=False, nullable=False)
    is_kosher = Column(Boolean, default=False, nullable=False)

    # Storage
    storage_temperature = Column(Enum(StorageTemperature), default=StorageTemperature.ROOM, nullable=False)
    storage_instructions = Column(String(500), nullable=True)

    # Schedule (naive UTC)
    expiry_date = Column(DateTime, nullable=False)
    pickup_date = Column(DateTime, nullable=False)
    pickup_start = Column(String(5), nullable=False)
    pickup_end = Column(String(5), nullable=False)

    # Geolocation
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address_street = Column(String(200), nullable=True)
    address_city = Column(String(100), nullable=True)
    address_state = Column(String(100), nullable=True)
    address_zip_code = Column(String(20), nullable=True)
    address_country = Column(String(100), nullable=True, default="United States")

    # Lifecycle
    status = Column(Enum(DonationStatus), default=DonationStatus.AVAILABLE, nullable=False, index=True)
    reserved_by_kind = Column(Enum(ReserverKind), nullable=True)
    reserved_by_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    reserved_at = Column(DateTime, nullable=True)
    reservation_notes = Column(String(500), nullable=True)
    picked_up_by_kind = Column(Enum(ReserverKind), nullable=True)
    picked_up_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    picked_up_at = Column(DateTime, nullable=True)
    views = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_donations_status_expiry', 'status', 'expiry_date'),
        Index('ix_donations_location', 'latitude', 'longitude'),
        Index('ix_donations_donor_created', 'donor_id', 'created_at'),
        Index('ix_donations_category_status', 'category', 'status'),
        CheckConstraint(
            "(status = 'RESERVED') = (reserved_by_id IS NOT NULL)",
            name='ck_donations_reservation_matches_status',
        ),
    )

    @property
    def pickup_address_string(self) -> str:
        if not self.address_street:
            return ""
        return f"{self.address_street}, {self.address_city}, {self.address_state} {self.address_zip_code}"

    def __repr__(self):
        return f"<Donation(id={self.id}, title='{self.title}', donor_id={self.donor_id}, status='{self.status.value}')>"

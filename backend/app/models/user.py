"""
User database model.

This module defines the User SQLAlchemy model for authentication.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Float
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole


class User(Base):
    """
    User model for authentication and user management.

    Donors, volunteers and charities share this table; the role decides
    which donation operations a user may perform.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Profile
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    organization = Column(String(200), nullable=True)
    phone = Column(String(30), nullable=True)

    role = Column(Enum(UserRole), default=UserRole.DONOR, nullable=False, index=True)

    # Home location (map discovery)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    city = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}', role='{self.role.value}')>"

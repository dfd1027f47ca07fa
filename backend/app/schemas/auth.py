"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional
from backend.app.models.enums import UserRole


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /auth/register endpoint. Admin accounts cannot self-register.
    """
    email: EmailStr = Field(..., description="User email address")
    username: str = Field(..., min_length=3, max_length=50, description="Unique username")
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    organization: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    role: UserRole = Field(default=UserRole.DONOR, description="User role (defaults to donor)")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    city: Optional[str] = Field(None, max_length=100)


class UserLogin(BaseModel):
    """
    Schema for user login.

    Supports login with either username or email.
    """
    username: str = Field(..., description="Username or email")
    password: str = Field(..., description="Password")


class UserResponse(BaseModel):
    """Schema for user information response."""
    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    organization: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TokenData(BaseModel):
    """
    JWT token payload returned by successful login/register operations.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserResponse


class UserData(BaseModel):
    user: UserResponse

"""
User profile schemas.

Self-service profile updates and the admin user search.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from backend.app.models.enums import UserRole
from backend.app.schemas.auth import UserResponse

PHONE_PATTERN = r"^[\+]?[1-9][\d]{0,15}$"

# Fields only an admin may change
ADMIN_ONLY_FIELDS = frozenset({"role", "is_active"})

_NOT_NULL_COLUMNS = frozenset({"first_name", "last_name", "role", "is_active"})


class UserUpdate(BaseModel):
    """
    Partial profile update. Unset fields are left alone; an explicit null
    clears optional fields and is ignored for required ones.
    """
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    organization: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    city: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    class Config:
        str_strip_whitespace = True

    def to_columns(self) -> Dict[str, Any]:
        return {
            key: value for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key not in _NOT_NULL_COLUMNS
        }


class UserSearchData(BaseModel):
    query: str
    users: List[UserResponse]
    total: int

"""
Response envelope shared by every endpoint.
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """``{"success": true, "message": ..., "data": {...}}``"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class Pagination(BaseModel):
    """Pagination block for list responses."""
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            items_per_page=limit,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class MessageData(BaseModel):
    """Placeholder data block for responses that only carry a message."""
    id: Optional[int] = Field(None, description="Affected resource id")

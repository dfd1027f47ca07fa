"""
Contact ticket schemas.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field

from backend.app.models.enums import ContactCategory, ContactPriority, ContactSource, ContactStatus
from backend.app.schemas.common import Pagination

CONTACT_PHONE_PATTERN = r"^[\+]?[\d\s\-\(\)\.]{5,20}$"


class ContactCreate(BaseModel):
    """Public contact form submission."""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=CONTACT_PHONE_PATTERN)
    subject: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=1000)
    category: ContactCategory = ContactCategory.GENERAL
    source: ContactSource = ContactSource.WEBSITE
    tags: List[str] = Field(default_factory=list)

    class Config:
        str_strip_whitespace = True


class RespondRequest(BaseModel):
    message: str = Field(..., min_length=5, max_length=1000)

    class Config:
        str_strip_whitespace = True


class AssignRequest(BaseModel):
    user_id: int = Field(..., ge=1)


class NoteRequest(BaseModel):
    content: str = Field(..., min_length=5, max_length=500)

    class Config:
        str_strip_whitespace = True


class FollowUpRequest(BaseModel):
    date: datetime
    notes: Optional[str] = Field(None, max_length=500)

    class Config:
        str_strip_whitespace = True


class ContactNoteResponse(BaseModel):
    id: int
    content: str
    added_by_id: int
    added_at: datetime

    class Config:
        from_attributes = True


class FollowUp(BaseModel):
    scheduled: bool
    date: Optional[datetime] = None
    notes: Optional[str] = None


class ContactResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    subject: str
    message: str
    category: ContactCategory
    priority: ContactPriority
    status: ContactStatus
    source: ContactSource
    tags: List[str]
    assigned_to_id: Optional[int] = None
    response_message: Optional[str] = None
    responded_by_id: Optional[int] = None
    responded_at: Optional[datetime] = None
    follow_up: FollowUp
    notes: Optional[List[ContactNoteResponse]] = None
    age_hours: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, contact, now: datetime, notes=None) -> "ContactResponse":
        return cls(
            id=contact.id,
            first_name=contact.first_name,
            last_name=contact.last_name,
            email=contact.email,
            phone=contact.phone,
            subject=contact.subject,
            message=contact.message,
            category=contact.category,
            priority=contact.priority,
            status=contact.status,
            source=contact.source,
            tags=list(contact.tags or []),
            assigned_to_id=contact.assigned_to_id,
            response_message=contact.response_message,
            responded_by_id=contact.responded_by_id,
            responded_at=contact.responded_at,
            follow_up=FollowUp(
                scheduled=contact.follow_up_scheduled,
                date=contact.follow_up_date,
                notes=contact.follow_up_notes,
            ),
            notes=[ContactNoteResponse.model_validate(n) for n in notes] if notes is not None else None,
            age_hours=max(int((now - contact.created_at).total_seconds() // 3600), 0),
            created_at=contact.created_at,
            updated_at=contact.updated_at,
        )


class ContactReceipt(BaseModel):
    id: int
    subject: str
    category: ContactCategory
    priority: ContactPriority
    status: ContactStatus


class ContactReceiptData(BaseModel):
    contact: ContactReceipt


class ContactData(BaseModel):
    contact: ContactResponse


class ContactListData(BaseModel):
    contacts: List[ContactResponse]
    pagination: Pagination


class UrgentContactsData(BaseModel):
    contacts: List[ContactResponse]
    total: int


class ContactStatsData(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_category: Dict[str, int]
    open: int
    avg_response_hours: Optional[float]

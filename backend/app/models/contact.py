"""
Contact ticket database models.

Messages submitted through the public contact form, worked by admins or by
the user a ticket is assigned to.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Boolean, JSON, Index
from backend.app.db.session import Base
from backend.app.models.enums import ContactCategory, ContactPriority, ContactStatus, ContactSource
from backend.app.utils.time import utcnow


class ContactMessage(Base):
    """
    Contact ticket model.

    Timestamps are naive UTC written by the application, so the age of a
    ticket can be compared against the clock in queries.
    """
    __tablename__ = "contact_messages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Sender
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(30), nullable=False)

    subject = Column(String(100), nullable=False)
    message = Column(String(1000), nullable=False)
    category = Column(Enum(ContactCategory), default=ContactCategory.GENERAL, nullable=False)
    priority = Column(Enum(ContactPriority), default=ContactPriority.MEDIUM, nullable=False)
    status = Column(Enum(ContactStatus), default=ContactStatus.NEW, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    source = Column(Enum(ContactSource), default=ContactSource.WEBSITE, nullable=False)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(50), nullable=True)

    # Handling
    assigned_to_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    response_message = Column(String(1000), nullable=True)
    responded_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    responded_at = Column(DateTime, nullable=True)

    # Follow-up
    follow_up_scheduled = Column(Boolean, default=False, nullable=False)
    follow_up_date = Column(DateTime, nullable=True)
    follow_up_notes = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index('ix_contact_messages_status_priority_created', 'status', 'priority', 'created_at'),
        Index('ix_contact_messages_category_status', 'category', 'status'),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<ContactMessage(id={self.id}, subject='{self.subject}', status='{self.status.value}')>"


class ContactNote(Base):
    __tablename__ = "contact_notes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    contact_id = Column(Integer, ForeignKey('contact_messages.id'), nullable=False, index=True)
    content = Column(String(500), nullable=False)
    added_by_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    added_at = Column(DateTime, default=utcnow, nullable=False)

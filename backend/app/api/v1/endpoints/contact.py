"""
Contact API Endpoints.

The public contact form plus ticket handling for admins and assignees:
listing, the urgent queue, responses, assignment, notes and follow-ups.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.endpoints.users import get_user_or_404
from backend.app.core.actor import Actor
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError, ResourceNotFoundError
from backend.app.core.guards import require_admin
from backend.app.db.session import get_db
from backend.app.models.contact import ContactMessage, ContactNote
from backend.app.models.enums import ContactCategory, ContactPriority, ContactStatus
from backend.app.schemas.common import ApiResponse, Pagination
from backend.app.schemas.contact import (
    AssignRequest,
    ContactCreate,
    ContactData,
    ContactListData,
    ContactReceipt,
    ContactReceiptData,
    ContactResponse,
    ContactStatsData,
    FollowUpRequest,
    NoteRequest,
    RespondRequest,
    UrgentContactsData,
)
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.contact import ContactService, infer_priority
from backend.app.utils.time import as_naive_utc, utcnow

logger = logging.getLogger("foodshare.contact")

router = APIRouter(prefix="/contact", tags=["Contact"])


async def _get_contact_or_404(db: AsyncSession, contact_id: int) -> ContactMessage:
    result = await db.execute(select(ContactMessage).where(ContactMessage.id == contact_id))
    contact = result.scalar_one_or_none()
    if contact is None:
        raise ResourceNotFoundError("Contact", contact_id)
    return contact


def _ensure_handler(contact: ContactMessage, actor: Actor, action: str):
    """Admins handle every ticket; other users only the ones assigned to them."""
    if not actor.is_admin and contact.assigned_to_id != actor.user_id:
        raise InsufficientPermissionsError(
            message=f"You can only {action} contacts assigned to you",
            details={"resource": "contact", "id": contact.id}
        )


async def _get_notes(db: AsyncSession, contact_id: int):
    result = await db.execute(
        select(ContactNote)
        .where(ContactNote.contact_id == contact_id)
        .order_by(ContactNote.added_at.asc(), ContactNote.id.asc())
    )
    return list(result.scalars().all())


@router.post("", response_model=ApiResponse[ContactReceiptData], status_code=status.HTTP_201_CREATED)
async def submit_contact(
    contact: ContactCreate,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Submit the public contact form. No authentication required.

    Messages that mention "urgent" are filed with urgent priority.
    """
    ticket = ContactMessage(
        **contact.model_dump(),
        priority=infer_priority(contact.message),
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    db.add(ticket)
    await db.commit()
    await db.refresh(ticket)

    logger.info(
        "Contact %s received (category=%s, priority=%s)",
        ticket.id, ticket.category.value, ticket.priority.value,
    )

    return ApiResponse(
        message="Message submitted successfully",
        data=ContactReceiptData(
            contact=ContactReceipt(
                id=ticket.id,
                subject=ticket.subject,
                category=ticket.category,
                priority=ticket.priority,
                status=ticket.status,
            )
        )
    )


@router.get("", response_model=ApiResponse[ContactListData])
async def list_contacts(
    status_filter: Optional[ContactStatus] = Query(None, alias="status"),
    priority: Optional[ContactPriority] = Query(None),
    category: Optional[ContactCategory] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List contact tickets, newest first (admin-only).
    """
    conditions = []
    if status_filter is not None:
        conditions.append(ContactMessage.status == status_filter)
    if priority is not None:
        conditions.append(ContactMessage.priority == priority)
    if category is not None:
        conditions.append(ContactMessage.category == category)

    total_result = await db.execute(select(func.count(ContactMessage.id)).where(*conditions))
    total = total_result.scalar() or 0

    offset = (page - 1) * limit
    result = await db.execute(
        select(ContactMessage)
        .where(*conditions)
        .order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
        .offset(offset)
        .limit(limit)
    )
    now = utcnow()

    return ApiResponse(
        data=ContactListData(
            contacts=[ContactResponse.from_model(c, now) for c in result.scalars().all()],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.get("/urgent", response_model=ApiResponse[UrgentContactsData])
async def urgent_contacts(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Tickets needing attention now (admin-only): every urgent ticket, new
    high-priority tickets and new medium-priority tickets older than a day.
    """
    now = utcnow()
    contacts = await ContactService.find_urgent(db, now)
    return ApiResponse(
        data=UrgentContactsData(
            contacts=[ContactResponse.from_model(c, now) for c in contacts],
            total=len(contacts),
        )
    )


@router.get("/stats/overview", response_model=ApiResponse[ContactStatsData])
async def contact_stats(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return ApiResponse(data=await ContactService.get_stats(db))


@router.get("/{contact_id}", response_model=ApiResponse[ContactData])
async def get_contact(
    contact_id: int,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """A ticket with its notes (admin or assignee)."""
    contact = await _get_contact_or_404(db, contact_id)
    _ensure_handler(contact, current_user, "view")
    notes = await _get_notes(db, contact.id)
    return ApiResponse(data=ContactData(contact=ContactResponse.from_model(contact, utcnow(), notes)))


@router.post("/{contact_id}/respond", response_model=ApiResponse[ContactData])
async def respond_to_contact(
    contact_id: int,
    request: RespondRequest,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Record a response and resolve the ticket (admin or assignee)."""
    contact = await _get_contact_or_404(db, contact_id)
    _ensure_handler(contact, current_user, "respond to")

    now = utcnow()
    contact.response_message = request.message
    contact.responded_by_id = current_user.user_id
    contact.responded_at = now
    contact.status = ContactStatus.RESOLVED
    await db.commit()
    await db.refresh(contact)

    await log_event(
        db=db,
        action=AuditAction.CONTACT_RESPONDED,
        actor_id=current_user.user_id,
        actor_username=current_user.username,
        metadata={"contact_id": contact.id}
    )

    return ApiResponse(
        message="Response sent successfully",
        data=ContactData(contact=ContactResponse.from_model(contact, now))
    )


@router.post("/{contact_id}/assign", response_model=ApiResponse[ContactData])
async def assign_contact(
    contact_id: int,
    request: AssignRequest,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign a ticket to a user and mark it in progress (admin-only).
    """
    contact = await _get_contact_or_404(db, contact_id)
    assignee = await get_user_or_404(db, request.user_id)

    if not assignee.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot assign a contact to an inactive user"
        )

    contact.assigned_to_id = assignee.id
    contact.status = ContactStatus.IN_PROGRESS
    await db.commit()
    await db.refresh(contact)

    await log_event(
        db=db,
        action=AuditAction.CONTACT_ASSIGNED,
        actor_id=admin.user_id,
        actor_username=admin.username,
        target_user_id=assignee.id,
        target_username=assignee.username,
        metadata={"contact_id": contact.id}
    )

    return ApiResponse(
        message="Contact assigned successfully",
        data=ContactData(contact=ContactResponse.from_model(contact, utcnow()))
    )


@router.post("/{contact_id}/notes", response_model=ApiResponse[ContactData])
async def add_contact_note(
    contact_id: int,
    request: NoteRequest,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Add an internal note (admin or assignee)."""
    contact = await _get_contact_or_404(db, contact_id)
    _ensure_handler(contact, current_user, "add notes to")

    db.add(ContactNote(contact_id=contact.id, content=request.content, added_by_id=current_user.user_id))
    await db.commit()

    notes = await _get_notes(db, contact.id)
    return ApiResponse(
        message="Note added successfully",
        data=ContactData(contact=ContactResponse.from_model(contact, utcnow(), notes))
    )


@router.post("/{contact_id}/follow-up", response_model=ApiResponse[ContactData])
async def schedule_follow_up(
    contact_id: int,
    request: FollowUpRequest,
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Schedule a follow-up in the future (admin or assignee)."""
    contact = await _get_contact_or_404(db, contact_id)
    _ensure_handler(contact, current_user, "schedule follow-ups for")

    now = utcnow()
    follow_up_date = as_naive_utc(request.date)
    if follow_up_date <= now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Follow-up date must be in the future"
        )

    contact.follow_up_scheduled = True
    contact.follow_up_date = follow_up_date
    contact.follow_up_notes = request.notes
    await db.commit()
    await db.refresh(contact)

    await log_event(
        db=db,
        action=AuditAction.CONTACT_FOLLOW_UP_SCHEDULED,
        actor_id=current_user.user_id,
        actor_username=current_user.username,
        metadata={"contact_id": contact.id, "date": follow_up_date.isoformat()}
    )

    return ApiResponse(
        message="Follow-up scheduled successfully",
        data=ContactData(contact=ContactResponse.from_model(contact, now))
    )

"""Contacts router - API endpoints for contact management."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.background import SideEffects, get_notification_service, get_side_effects
from app.core.deps import get_current_session, get_db, require_csrf_header
from app.core.permissions import can_delete_resource
from app.core.visibility import can_access_resource, resolve_viewer_id
from app.db.enums import AuditAction, AuditEntity, ContactStatus
from app.schemas.activity import ActivityRead
from app.schemas.auth import UserSession
from app.schemas.contact import ContactCreate, ContactListResponse, ContactRead, ContactUpdate
from app.services import audit_service, contact_service, deal_service, notification_events, task_service
from app.services.notification_service import NotificationService
from app.services.user_service import get_user_names
from app.utils.pagination import PaginationParams, get_pagination, page_envelope

router = APIRouter()


def _get_visible_contact(db: Session, session: UserSession, contact_id: UUID):
    """404 for contacts outside the org or hidden from the caller."""
    contact = contact_service.get_contact(db, session.org_id, contact_id)
    if not contact or not can_access_resource(session.user_id, session.role, contact):
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.get("", response_model=ContactListResponse)
def list_contacts(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    pagination: PaginationParams = Depends(get_pagination),
    search: str | None = Query(None, description="Name, email, company or phone"),
    status: ContactStatus | None = None,
    tags: str | None = None,
    owner_id: UUID | None = None,
    sort_by: str | None = None,
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    show_all: bool = False,
):
    """
    List contacts visible to the caller.

    show_all=true lets managers and admins see every contact in the org.
    """
    contacts, total = contact_service.list_contacts(
        db,
        session.org_id,
        resolve_viewer_id(session, show_all),
        pagination,
        search=search,
        status=status.value if status else None,
        tags=tags,
        owner_id=owner_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    names = get_user_names(db, [c.owner_id for c in contacts])
    return page_envelope(
        [contact_service.to_contact_read(c, names) for c in contacts], total, pagination
    )


@router.post("", response_model=ContactRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_contact(
    request: Request,
    data: ContactCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Create a contact, audit it, and tell the rest of the org."""
    try:
        contact = contact_service.create_contact(db, session.org_id, session.user_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_service.log_audit(
        db,
        action=AuditAction.CREATED,
        entity=AuditEntity.CONTACT,
        entity_id=contact.id,
        entity_name=contact.full_name,
        details={"email": contact.email, "company": contact.company},
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )

    side_effects.schedule(
        "new_contact",
        notification_events.new_contact,
        notifier,
        contact_id=contact.id,
        organization_id=session.org_id,
        created_by_user_id=session.user_id,
    )
    if contact.owner_id and contact.owner_id != session.user_id:
        side_effects.schedule(
            "contact_assigned",
            notification_events.contact_assigned,
            notifier,
            contact_id=contact.id,
            organization_id=session.org_id,
            assigned_to_user_id=contact.owner_id,
            assigned_by_user_id=session.user_id,
        )

    names = get_user_names(db, [contact.owner_id])
    return contact_service.to_contact_read(contact, names)


@router.get("/{contact_id}")
def get_contact(
    contact_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Contact with recent deals, open tasks, activities and counters."""
    contact = _get_visible_contact(db, session, contact_id)
    detail = contact_service.get_contact_detail(db, contact)

    user_ids = [contact.owner_id, *[t.assigned_to_id for t in detail["tasks"]], *[d.owner_id for d in detail["deals"]]]
    names = get_user_names(db, user_ids)
    contact_names = {contact.id: contact.full_name}
    return {
        **contact_service.to_contact_read(contact, names).model_dump(),
        "deals": [deal_service.to_deal_read(d, names, contact_names) for d in detail["deals"]],
        "tasks": [task_service.to_task_read(t, names) for t in detail["tasks"]],
        "activities": [ActivityRead.model_validate(a) for a in detail["activities"]],
        "counts": detail["counts"],
    }


@router.put("/{contact_id}", response_model=ContactRead, dependencies=[Depends(require_csrf_header)])
def update_contact(
    request: Request,
    contact_id: UUID,
    data: ContactUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    notifier: NotificationService = Depends(get_notification_service),
):
    contact = _get_visible_contact(db, session, contact_id)
    try:
        contact, change = contact_service.update_contact(db, contact, data, session.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if change.changed_fields:
        audit_service.log_audit(
            db,
            action=AuditAction.UPDATED,
            entity=AuditEntity.CONTACT,
            entity_id=contact.id,
            entity_name=contact.full_name,
            details={"changes": change.changed_fields},
            user_id=session.user_id,
            user_name=session.name,
            organization_id=session.org_id,
            request=request,
        )

    if change.owner_changed and contact.owner_id and contact.owner_id != session.user_id:
        side_effects.schedule(
            "contact_assigned",
            notification_events.contact_assigned,
            notifier,
            contact_id=contact.id,
            organization_id=session.org_id,
            assigned_to_user_id=contact.owner_id,
            assigned_by_user_id=session.user_id,
        )

    names = get_user_names(db, [contact.owner_id])
    return contact_service.to_contact_read(contact, names)


@router.delete("/{contact_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_contact(
    request: Request,
    contact_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Delete a contact and its activities. Linked deals and tasks are unlinked."""
    contact = _get_visible_contact(db, session, contact_id)
    if not can_delete_resource(session, contact):
        raise HTTPException(status_code=403, detail="Not allowed to delete this contact")

    entity_id, entity_name = contact.id, contact.full_name
    contact_service.delete_contact(db, contact)

    audit_service.log_audit(
        db,
        action=AuditAction.DELETED,
        entity=AuditEntity.CONTACT,
        entity_id=entity_id,
        entity_name=entity_name,
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )

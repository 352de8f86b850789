"""Deals router - API endpoints for the sales pipeline."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.background import SideEffects, get_notification_service, get_side_effects
from app.core.deps import get_current_session, get_db, require_csrf_header
from app.core.permissions import can_delete_resource
from app.core.visibility import can_access_resource, resolve_viewer_id
from app.db.enums import AuditAction, AuditEntity, DealStage
from app.schemas.activity import ActivityRead
from app.schemas.auth import UserSession
from app.schemas.deal import DealCreate, DealListResponse, DealRead, DealUpdate
from app.services import audit_service, deal_service, notification_events, task_service
from app.services.notification_service import NotificationService
from app.services.user_service import get_user_names
from app.utils.pagination import PaginationParams, get_pagination, page_envelope

router = APIRouter()


def _get_visible_deal(db: Session, session: UserSession, deal_id: UUID):
    deal = deal_service.get_deal(db, session.org_id, deal_id)
    if not deal or not can_access_resource(session.user_id, session.role, deal):
        raise HTTPException(status_code=404, detail="Deal not found")
    return deal


def _read(db: Session, deal) -> DealRead:
    names = get_user_names(db, [deal.owner_id])
    contact_names = deal_service.get_contact_names(db, [deal.contact_id])
    return deal_service.to_deal_read(deal, names, contact_names)


@router.get("", response_model=DealListResponse)
def list_deals(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    pagination: PaginationParams = Depends(get_pagination),
    search: str | None = Query(None, description="Search in title and description"),
    stage: DealStage | None = None,
    contact_id: UUID | None = None,
    owner_id: UUID | None = None,
    sort_by: str | None = None,
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    show_all: bool = False,
):
    deals, total = deal_service.list_deals(
        db,
        session.org_id,
        resolve_viewer_id(session, show_all),
        pagination,
        search=search,
        stage=stage.value if stage else None,
        contact_id=contact_id,
        owner_id=owner_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    names = get_user_names(db, [d.owner_id for d in deals])
    contact_names = deal_service.get_contact_names(db, [d.contact_id for d in deals])
    return page_envelope(
        [deal_service.to_deal_read(d, names, contact_names) for d in deals], total, pagination
    )


@router.post("", response_model=DealRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_deal(
    request: Request,
    data: DealCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    notifier: NotificationService = Depends(get_notification_service),
):
    try:
        deal = deal_service.create_deal(db, session.org_id, session.user_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_service.log_audit(
        db,
        action=AuditAction.CREATED,
        entity=AuditEntity.DEAL,
        entity_id=deal.id,
        entity_name=deal.title,
        details={"value": deal.value, "stage": deal.stage},
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )

    if deal.owner_id and deal.owner_id != session.user_id:
        side_effects.schedule(
            "deal_assigned",
            notification_events.deal_assigned,
            notifier,
            deal_id=deal.id,
            organization_id=session.org_id,
            assigned_to_user_id=deal.owner_id,
        )
    return _read(db, deal)


@router.get("/{deal_id}")
def get_deal(
    deal_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Deal with its tasks and timeline."""
    deal = _get_visible_deal(db, session, deal_id)
    tasks = sorted(deal.tasks, key=lambda t: (t.due_date is None, t.due_date))
    activities = sorted(deal.activities, key=lambda a: a.created_at, reverse=True)[:20]
    names = get_user_names(db, [deal.owner_id, *[t.assigned_to_id for t in tasks]])
    return {
        **_read(db, deal).model_dump(),
        "tasks": [task_service.to_task_read(t, names) for t in tasks],
        "activities": [ActivityRead.model_validate(a) for a in activities],
    }


@router.put("/{deal_id}", response_model=DealRead, dependencies=[Depends(require_csrf_header)])
def update_deal(
    request: Request,
    deal_id: UUID,
    data: DealUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Update a deal.

    A stage change is audited as stage_changed and, on won/lost, announced
    to the organization. Any other change is audited as updated.
    """
    deal = _get_visible_deal(db, session, deal_id)
    try:
        deal, change = deal_service.update_deal(db, deal, data, session.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if change.stage_changed:
        audit_service.log_audit(
            db,
            action=AuditAction.STAGE_CHANGED,
            entity=AuditEntity.DEAL,
            entity_id=deal.id,
            entity_name=deal.title,
            details={
                "previous_stage": change.previous_stage,
                "new_stage": deal.stage,
                "changes": change.changed_fields,
            },
            user_id=session.user_id,
            user_name=session.name,
            organization_id=session.org_id,
            request=request,
        )
        event = None
        if deal_service.is_won(deal):
            event = notification_events.deal_won
        elif deal_service.is_lost(deal):
            event = notification_events.deal_lost
        if event is not None:
            side_effects.schedule(
                f"deal_{deal.stage}",
                event,
                notifier,
                deal_id=deal.id,
                organization_id=session.org_id,
                actor_user_id=session.user_id,
            )
    elif change.changed_fields:
        audit_service.log_audit(
            db,
            action=AuditAction.UPDATED,
            entity=AuditEntity.DEAL,
            entity_id=deal.id,
            entity_name=deal.title,
            details={"changes": change.changed_fields},
            user_id=session.user_id,
            user_name=session.name,
            organization_id=session.org_id,
            request=request,
        )

    if change.owner_changed and deal.owner_id and deal.owner_id != session.user_id:
        side_effects.schedule(
            "deal_assigned",
            notification_events.deal_assigned,
            notifier,
            deal_id=deal.id,
            organization_id=session.org_id,
            assigned_to_user_id=deal.owner_id,
        )
    return _read(db, deal)


@router.delete("/{deal_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_deal(
    request: Request,
    deal_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    deal = _get_visible_deal(db, session, deal_id)
    if not can_delete_resource(session, deal):
        raise HTTPException(status_code=403, detail="Not allowed to delete this deal")

    entity_id, entity_name = deal.id, deal.title
    deal_service.delete_deal(db, deal)

    audit_service.log_audit(
        db,
        action=AuditAction.DELETED,
        entity=AuditEntity.DEAL,
        entity_id=entity_id,
        entity_name=entity_name,
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )

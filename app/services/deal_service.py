"""Deal service - pipeline business logic."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.visibility import apply_visibility_filter
from app.db.base import utcnow
from app.db.enums import CLOSED_DEAL_STAGES, DealStage
from app.db.models import Contact, Deal
from app.schemas.deal import DealCreate, DealRead, DealUpdate
from app.services import activity_service
from app.services.user_service import validate_org_user
from app.utils.normalization import blank_to_none
from app.utils.pagination import PaginationParams, apply_sort, paginate_query

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"created_at", "updated_at", "title", "value", "stage", "expected_close", "probability"}
ENUM_FIELDS = {"stage", "priority", "visibility"}
REQUIRED_FIELDS = {"title", "value", "currency", "stage", "probability", "priority", "visibility"}


@dataclass
class DealChange:
    """What an update touched, for audit and notifications."""

    changed_fields: list[str] = field(default_factory=list)
    previous_stage: str | None = None
    previous_owner_id: UUID | None = None

    @property
    def stage_changed(self) -> bool:
        return "stage" in self.changed_fields

    @property
    def owner_changed(self) -> bool:
        return "owner_id" in self.changed_fields


def get_deal(db: Session, org_id: UUID, deal_id: UUID) -> Deal | None:
    """Deal by id, scoped to the organization."""
    return db.query(Deal).filter(Deal.id == deal_id, Deal.organization_id == org_id).first()


def _validate_contact(db: Session, org_id: UUID, contact_id: UUID | None) -> None:
    if contact_id and not (
        db.query(Contact.id).filter(Contact.id == contact_id, Contact.organization_id == org_id).first()
    ):
        raise ValueError("Contact not found")


def list_deals(
    db: Session,
    org_id: UUID,
    viewer_id: UUID | None,
    pagination: PaginationParams,
    *,
    search: str | None = None,
    stage: str | None = None,
    contact_id: UUID | None = None,
    owner_id: UUID | None = None,
    sort_by: str | None = None,
    sort_order: str = "desc",
) -> tuple[list[Deal], int]:
    """List deals the viewer may see (viewer_id=None: everything in the org)."""
    query = apply_visibility_filter(db.query(Deal), Deal, org_id, viewer_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Deal.title.ilike(pattern), Deal.description.ilike(pattern)))
    if stage:
        query = query.filter(Deal.stage == stage)
    if contact_id:
        query = query.filter(Deal.contact_id == contact_id)
    if owner_id:
        query = query.filter(Deal.owner_id == owner_id)

    return paginate_query(apply_sort(query, Deal, sort_by, sort_order, SORTABLE_FIELDS), pagination)


def create_deal(db: Session, org_id: UUID, user_id: UUID, data: DealCreate) -> Deal:
    """Create a deal. Owner defaults to the creator; closed stages get actual_close now."""
    owner_id = data.owner_id or user_id
    validate_org_user(db, org_id, owner_id)
    _validate_contact(db, org_id, data.contact_id)

    values = blank_to_none(data.model_dump(exclude={"owner_id", "visible_to", *ENUM_FIELDS}))
    deal = Deal(
        organization_id=org_id,
        owner_id=owner_id,
        stage=data.stage.value,
        priority=data.priority.value,
        visibility=data.visibility.value,
        visible_to=data.visible_to,
        created_by_user_id=user_id,
        updated_by_user_id=user_id,
        **values,
    )
    if data.stage in CLOSED_DEAL_STAGES:
        deal.actual_close = utcnow()
    db.add(deal)
    db.commit()
    db.refresh(deal)
    logger.info("Created deal %s in org %s", deal.id, org_id)
    return deal


def update_deal(
    db: Session,
    deal: Deal,
    data: DealUpdate,
    actor_user_id: UUID,
) -> tuple[Deal, DealChange]:
    """
    Update deal fields.

    Moving to won/lost sets actual_close when it is not already set. A stage
    change also writes a deal_updated timeline entry after the deal is saved.
    """
    update_data = blank_to_none(data.model_dump(exclude_unset=True))
    change = DealChange(previous_stage=deal.stage, previous_owner_id=deal.owner_id)

    if "owner_id" in update_data:
        validate_org_user(db, deal.organization_id, update_data["owner_id"])
    if "contact_id" in update_data:
        _validate_contact(db, deal.organization_id, update_data["contact_id"])

    for field_name, value in update_data.items():
        if value is None and field_name in REQUIRED_FIELDS:
            continue
        if field_name in ENUM_FIELDS:
            value = value.value
        if field_name == "visible_to" and value is not None:
            value = sorted(set(value), key=str)
        if getattr(deal, field_name) != value:
            change.changed_fields.append(field_name)
        setattr(deal, field_name, value)

    if change.stage_changed and deal.stage in {s.value for s in CLOSED_DEAL_STAGES}:
        if deal.actual_close is None:
            deal.actual_close = utcnow()

    deal.updated_by_user_id = actor_user_id
    db.commit()
    db.refresh(deal)

    if change.stage_changed:
        activity_service.log_deal_stage_change(db, deal)

    return deal, change


def delete_deal(db: Session, deal: Deal) -> None:
    db.delete(deal)
    db.commit()


def is_won(deal: Deal) -> bool:
    return deal.stage == DealStage.WON.value


def is_lost(deal: Deal) -> bool:
    return deal.stage == DealStage.LOST.value


def to_deal_read(
    deal: Deal,
    names: dict[UUID, str] | None = None,
    contact_names: dict[UUID, str] | None = None,
) -> DealRead:
    read = DealRead.model_validate(deal)
    read.owner_name = (names or {}).get(deal.owner_id) if deal.owner_id else None
    read.contact_name = (contact_names or {}).get(deal.contact_id) if deal.contact_id else None
    read.visible_to = list(deal.visible_to or [])
    return read


def get_contact_names(db: Session, contact_ids) -> dict[UUID, str]:
    ids = {contact_id for contact_id in contact_ids if contact_id}
    if not ids:
        return {}
    return {contact.id: contact.full_name for contact in db.query(Contact).filter(Contact.id.in_(ids)).all()}

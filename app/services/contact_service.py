"""Contact service - business logic for contacts."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.visibility import apply_visibility_filter
from app.db.enums import TaskStatus
from app.db.models import Activity, Contact, Deal, Task
from app.schemas.contact import ContactCreate, ContactRead, ContactUpdate
from app.services.user_service import validate_org_user
from app.utils.normalization import blank_to_none, normalize_email
from app.utils.pagination import PaginationParams, apply_sort, paginate_query

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"created_at", "updated_at", "first_name", "last_name", "company", "status"}


@dataclass
class ContactChange:
    """What an update touched, for audit and notifications."""

    changed_fields: list[str] = field(default_factory=list)
    previous_owner_id: UUID | None = None

    @property
    def owner_changed(self) -> bool:
        return "owner_id" in self.changed_fields


def get_contact(db: Session, org_id: UUID, contact_id: UUID) -> Contact | None:
    """Contact by id, scoped to the organization."""
    return (
        db.query(Contact)
        .filter(Contact.id == contact_id, Contact.organization_id == org_id)
        .first()
    )


def list_contacts(
    db: Session,
    org_id: UUID,
    viewer_id: UUID | None,
    pagination: PaginationParams,
    *,
    search: str | None = None,
    status: str | None = None,
    tags: str | None = None,
    owner_id: UUID | None = None,
    sort_by: str | None = None,
    sort_order: str = "desc",
) -> tuple[list[Contact], int]:
    """List contacts the viewer may see (viewer_id=None: everything in the org)."""
    query = apply_visibility_filter(db.query(Contact), Contact, org_id, viewer_id)

    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Contact.first_name.ilike(pattern),
                Contact.last_name.ilike(pattern),
                Contact.email.ilike(pattern),
                Contact.company.ilike(pattern),
                Contact.phone.ilike(pattern),
            )
        )
    if status:
        query = query.filter(Contact.status == status)
    if tags:
        query = query.filter(Contact.tags.ilike(f"%{tags}%"))
    if owner_id:
        query = query.filter(Contact.owner_id == owner_id)

    return paginate_query(apply_sort(query, Contact, sort_by, sort_order, SORTABLE_FIELDS), pagination)


def create_contact(db: Session, org_id: UUID, user_id: UUID, data: ContactCreate) -> Contact:
    """Create a contact. Owner defaults to the creator."""
    owner_id = data.owner_id or user_id
    validate_org_user(db, org_id, owner_id)

    values = blank_to_none(data.model_dump(exclude={"owner_id", "visibility", "visible_to"}))
    values["email"] = normalize_email(values.get("email"))
    values["status"] = data.status.value
    values["last_name"] = values.get("last_name") or ""

    contact = Contact(
        organization_id=org_id,
        owner_id=owner_id,
        visibility=data.visibility.value,
        visible_to=data.visible_to,
        created_by_user_id=user_id,
        updated_by_user_id=user_id,
        **values,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info("Created contact %s in org %s", contact.id, org_id)
    return contact


def update_contact(
    db: Session,
    contact: Contact,
    data: ContactUpdate,
    actor_user_id: UUID,
) -> tuple[Contact, ContactChange]:
    """
    Update contact fields.

    Uses exclude_unset=True so only explicitly provided fields are updated.
    Empty strings clear optional fields.
    """
    update_data = blank_to_none(data.model_dump(exclude_unset=True))
    change = ContactChange(previous_owner_id=contact.owner_id)

    if "owner_id" in update_data:
        validate_org_user(db, contact.organization_id, update_data["owner_id"])

    # Required fields cannot be cleared
    required_fields = {"first_name", "status", "visibility"}

    for field_name, value in update_data.items():
        if value is None and field_name in required_fields:
            continue
        if field_name == "last_name" and value is None:
            value = ""
        if field_name == "email":
            value = normalize_email(value)
        if field_name in {"status", "visibility"}:
            value = value.value
        if field_name == "visible_to" and value is not None:
            value = sorted(set(value), key=str)
        if getattr(contact, field_name) != value:
            change.changed_fields.append(field_name)
        setattr(contact, field_name, value)

    contact.updated_by_user_id = actor_user_id
    db.commit()
    db.refresh(contact)
    return contact, change


def delete_contact(db: Session, contact: Contact) -> None:
    db.delete(contact)
    db.commit()


def get_contact_detail(db: Session, contact: Contact) -> dict:
    """Recent deals, open tasks, recent activities and counters for one contact."""
    deals = (
        db.query(Deal)
        .filter(Deal.contact_id == contact.id)
        .order_by(Deal.created_at.desc())
        .limit(5)
        .all()
    )
    open_tasks = (
        db.query(Task)
        .filter(Task.contact_id == contact.id, Task.status != TaskStatus.COMPLETED.value)
        .order_by(Task.due_date.asc())
        .limit(5)
        .all()
    )
    activities = (
        db.query(Activity)
        .filter(Activity.contact_id == contact.id)
        .order_by(Activity.created_at.desc())
        .limit(10)
        .all()
    )
    counts = {
        "deals": db.query(func.count(Deal.id)).filter(Deal.contact_id == contact.id).scalar() or 0,
        "tasks": db.query(func.count(Task.id)).filter(Task.contact_id == contact.id).scalar() or 0,
        "activities": db.query(func.count(Activity.id)).filter(Activity.contact_id == contact.id).scalar() or 0,
    }
    return {"deals": deals, "tasks": open_tasks, "activities": activities, "counts": counts}


def to_contact_read(contact: Contact, names: dict[UUID, str] | None = None) -> ContactRead:
    read = ContactRead.model_validate(contact)
    read.owner_name = (names or {}).get(contact.owner_id) if contact.owner_id else None
    read.visible_to = list(contact.visible_to or [])
    return read

"""Global search across contacts, deals and open tasks."""

from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.visibility import apply_visibility_filter
from app.db.enums import TaskStatus
from app.db.models import Contact, Deal, Task

MIN_QUERY_LENGTH = 2
RESULTS_PER_TYPE = 5


def global_search(db: Session, org_id: UUID, viewer_id: UUID | None, q: str | None) -> dict:
    """
    Top matches per type, visibility applied. Queries shorter than two
    characters return empty groups.
    """
    empty = {"contacts": [], "deals": [], "tasks": []}
    q = (q or "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        return empty

    pattern = f"%{q}%"

    contacts = (
        apply_visibility_filter(db.query(Contact), Contact, org_id, viewer_id)
        .filter(
            or_(
                Contact.first_name.ilike(pattern),
                Contact.last_name.ilike(pattern),
                Contact.email.ilike(pattern),
                Contact.company.ilike(pattern),
                Contact.phone.ilike(pattern),
            )
        )
        .order_by(Contact.updated_at.desc())
        .limit(RESULTS_PER_TYPE)
        .all()
    )
    deals = (
        apply_visibility_filter(db.query(Deal), Deal, org_id, viewer_id)
        .filter(Deal.title.ilike(pattern))
        .order_by(Deal.updated_at.desc())
        .limit(RESULTS_PER_TYPE)
        .all()
    )
    tasks = (
        apply_visibility_filter(db.query(Task), Task, org_id, viewer_id)
        .filter(Task.title.ilike(pattern), Task.status != TaskStatus.COMPLETED.value)
        .order_by(Task.due_date.asc())
        .limit(RESULTS_PER_TYPE)
        .all()
    )

    return {
        "contacts": [
            {
                "id": contact.id,
                "first_name": contact.first_name,
                "last_name": contact.last_name,
                "email": contact.email,
                "company": contact.company,
            }
            for contact in contacts
        ],
        "deals": [
            {
                "id": deal.id,
                "title": deal.title,
                "value": deal.value,
                "stage": deal.stage,
                "contact_name": deal.contact.full_name if deal.contact else None,
            }
            for deal in deals
        ],
        "tasks": [
            {
                "id": task.id,
                "title": task.title,
                "due_date": task.due_date,
                "priority": task.priority,
            }
            for task in tasks
        ],
    }

"""Organization service - tenant records and organization settings."""

import copy
import logging
import re
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.models import Organization
from app.schemas.settings import OrgSettingsRead, OrgSettingsUpdate

logger = logging.getLogger(__name__)

# Defaults used for any key the organization has not customised
DEFAULT_ORG_SETTINGS: dict = {
    "deal_stages": [
        {"id": "lead", "label": "Lead", "color": "gray", "probability": 10},
        {"id": "qualified", "label": "Qualified", "color": "blue", "probability": 25},
        {"id": "proposal", "label": "Proposal", "color": "indigo", "probability": 50},
        {"id": "negotiation", "label": "Negotiation", "color": "purple", "probability": 75},
        {"id": "won", "label": "Won", "color": "green", "probability": 100},
        {"id": "lost", "label": "Lost", "color": "red", "probability": 0},
    ],
    "contact_statuses": [
        {"id": "active", "label": "Active", "color": "green"},
        {"id": "inactive", "label": "Inactive", "color": "gray"},
        {"id": "lead", "label": "Lead", "color": "blue"},
        {"id": "prospect", "label": "Prospect", "color": "yellow"},
    ],
    "task_priorities": [
        {"id": "low", "label": "Low", "color": "gray"},
        {"id": "medium", "label": "Medium", "color": "yellow"},
        {"id": "high", "label": "High", "color": "red"},
    ],
    "notifications": {
        "emailEnabled": False,
        "taskReminders": True,
        "dealUpdates": True,
        "dailyDigest": False,
    },
    "date_format": "yyyy-MM-dd",
}

ORG_FIELDS = ("name", "logo", "favicon", "primary_color", "timezone", "currency", "locale")


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:100] or "org"


def get_org_by_id(db: Session, org_id: UUID) -> Organization | None:
    return db.query(Organization).filter(Organization.id == org_id).first()


def get_org_by_slug(db: Session, slug: str) -> Organization | None:
    return db.query(Organization).filter(Organization.slug == slug.lower()).first()


def create_org(db: Session, name: str, slug: str | None = None) -> Organization:
    """
    Create a new organization.

    Raises:
        ValueError: If slug already exists
    """
    slug = (slug or slugify(name)).lower()
    if get_org_by_slug(db, slug):
        raise ValueError(f"Organization slug '{slug}' already exists")
    org = Organization(name=name, slug=slug)
    db.add(org)
    db.commit()
    db.refresh(org)
    logger.info("Created organization %s (%s)", org.id, slug)
    return org


def effective_settings(org: Organization) -> dict:
    """Defaults overlaid with the organization's stored settings."""
    merged = copy.deepcopy(DEFAULT_ORG_SETTINGS)
    if isinstance(org.settings, dict):
        merged.update(org.settings)
    return merged


def to_settings_read(org: Organization) -> OrgSettingsRead:
    return OrgSettingsRead(
        id=org.id,
        name=org.name,
        slug=org.slug,
        logo=org.logo,
        favicon=org.favicon,
        primary_color=org.primary_color,
        timezone=org.timezone,
        currency=org.currency,
        locale=org.locale,
        settings=effective_settings(org),
    )


def update_org_settings(db: Session, org: Organization, data: OrgSettingsUpdate) -> tuple[Organization, list[str]]:
    """
    Apply an organization settings update.

    Returns (org, changed_keys). Keys under `settings` are reported as
    "settings.<key>".
    """
    update_data = data.model_dump(exclude_unset=True)
    changed: list[str] = []

    for field_name in ORG_FIELDS:
        if field_name not in update_data:
            continue
        value = update_data[field_name]
        if value is None and field_name in {"name", "primary_color", "timezone", "currency", "locale"}:
            continue
        if getattr(org, field_name) != value:
            changed.append(field_name)
        setattr(org, field_name, value)

    if update_data.get("settings"):
        stored = dict(org.settings) if isinstance(org.settings, dict) else {}
        for key, value in update_data["settings"].items():
            if stored.get(key) != value:
                changed.append(f"settings.{key}")
            stored[key] = value
        org.settings = stored

    db.commit()
    db.refresh(org)
    return org, changed

"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime

from sqlalchemy import Date, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, utcnow
from app.db.enums import DealPriority, DealStage, Visibility
from app.db.types import VisibleToList

if TYPE_CHECKING:
    from app.db.models import Activity, Contact, Task, User


class Deal(Base):
    """An opportunity moving through the sales pipeline."""

    __tablename__ = "deals"
    __table_args__ = (
        Index("idx_deals_org_stage", "organization_id", "stage"),
        Index("idx_deals_org_owner", "organization_id", "owner_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    value: Mapped[float] = mapped_column(default=0.0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    stage: Mapped[str] = mapped_column(String(20), default=DealStage.LEAD.value, nullable=False)
    probability: Mapped[int] = mapped_column(default=0, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), default=DealPriority.MEDIUM.value, nullable=False)
    expected_close: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_close: Mapped[datetime | None] = mapped_column(nullable=True)
    lost_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )

    # Visibility
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    visibility: Mapped[str] = mapped_column(String(20), default=Visibility.ORG.value, nullable=False)
    visible_to: Mapped[list | None] = mapped_column(VisibleToList, nullable=True)

    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    contact: Mapped[Contact | None] = relationship(back_populates="deals")
    owner: Mapped[User | None] = relationship(foreign_keys=[owner_id])
    tasks: Mapped[list[Task]] = relationship(back_populates="deal")
    activities: Mapped[list[Activity]] = relationship(
        back_populates="deal", cascade="all, delete-orphan"
    )

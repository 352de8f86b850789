"""Reports router - dashboard metrics."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db
from app.schemas.auth import UserSession
from app.services import dashboard_service

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard")
def get_dashboard(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Pipeline, monthly performance, contact and task counters, recent activity."""
    return dashboard_service.get_dashboard(db, session.org_id)

"""Global search endpoint."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db
from app.core.visibility import resolve_viewer_id
from app.schemas.auth import UserSession
from app.services import search_service

router = APIRouter(prefix="/search", tags=["search"])


@router.get("")
def global_search(
    q: str | None = Query(None, max_length=200, description="At least two characters"),
    show_all: bool = False,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Up to five contacts, deals and open tasks matching q, as the caller sees them."""
    return search_service.global_search(db, session.org_id, resolve_viewer_id(session, show_all), q)

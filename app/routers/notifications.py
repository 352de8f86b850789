"""Notifications router - the caller's inbox and manager announcements."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.background import SideEffects, get_notification_service, get_side_effects
from app.core.deps import get_current_session, get_db, require_csrf_header, require_min_role
from app.db.enums import MIN_ROLE_ANNOUNCE
from app.schemas.auth import UserSession
from app.schemas.notification import (
    NotificationBulkResult,
    NotificationDelete,
    NotificationListResponse,
    NotificationMarkRead,
    NotificationRead,
    NotificationSend,
    NotificationSendResult,
)
from app.services import notification_events, notification_service
from app.services.notification_service import NotificationService
from app.services.user_service import get_user

router = APIRouter()


def _to_read(notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        link=notification.link,
        metadata=notification.meta,
        is_read=notification.is_read,
        read_at=notification.read_at,
        created_at=notification.created_at,
    )


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = False,
):
    """The caller's notifications, newest first, with the unread badge count."""
    items, total, unread = notification_service.list_notifications(
        db,
        session.user_id,
        session.org_id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return NotificationListResponse(
        data=[_to_read(n) for n in items],
        total=total,
        unread_count=unread,
    )


@router.post(
    "",
    response_model=NotificationSendResult,
    status_code=202,
    dependencies=[Depends(require_csrf_header)],
)
def send_notification(
    data: NotificationSend,
    session: UserSession = Depends(require_min_role(MIN_ROLE_ANNOUNCE)),
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Send a system notification to explicit users, the admins, or everyone
    in the organization. Delivery runs after the response.
    """
    if data.user_ids:
        user_ids = [uid for uid in dict.fromkeys(data.user_ids) if get_user(db, session.org_id, uid)]
        if not user_ids:
            raise HTTPException(status_code=400, detail="No valid recipients")
    elif data.admins_only:
        user_ids = notification_service.admin_user_ids(db, session.org_id)
    elif data.all_users:
        user_ids = notification_service.org_user_ids(db, session.org_id, exclude_user_id=session.user_id)
    else:
        raise HTTPException(status_code=400, detail="Provide user_ids, all_users or admins_only")

    side_effects.schedule(
        "system_message",
        notification_events.system_message,
        notifier,
        organization_id=session.org_id,
        title=data.title,
        message=data.message,
        link=data.link,
        sender_user_id=session.user_id,
        user_ids=user_ids if data.user_ids else None,
        admins_only=bool(data.admins_only and not data.user_ids),
    )
    return NotificationSendResult(recipients=len(user_ids))


@router.patch("", response_model=NotificationBulkResult, dependencies=[Depends(require_csrf_header)])
def mark_notifications_read(
    data: NotificationMarkRead,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Mark the caller's notifications read: `ids`, or `markAllRead: true`."""
    if not data.mark_all_read and not data.ids:
        raise HTTPException(status_code=400, detail="Provide ids or markAllRead")
    count = notification_service.mark_read(
        db, session.user_id, session.org_id, data.ids, mark_all=data.mark_all_read
    )
    return NotificationBulkResult(count=count)


@router.delete("", response_model=NotificationBulkResult, dependencies=[Depends(require_csrf_header)])
def delete_notifications(
    data: NotificationDelete,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    if not data.delete_all and not data.ids:
        raise HTTPException(status_code=400, detail="Provide ids or deleteAll")
    count = notification_service.delete_notifications(
        db, session.user_id, session.org_id, data.ids, delete_all=data.delete_all
    )
    return NotificationBulkResult(count=count)

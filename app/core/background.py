"""Post-response side effects (notification fan-out).

Each side effect runs after the response is sent, in its own database
session, inside its own error boundary. Failures are logged and dropped;
they never reach the request that scheduled them. Pass ids and plain
values to scheduled functions, not ORM instances bound to the request
session.
"""

import logging
from typing import Any, Callable

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from app.db.session import SessionLocal

logger = logging.getLogger(__name__)


def run_side_effect(
    session_factory: Callable[[], Session],
    label: str,
    fn: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> None:
    """Run fn(db, *args, **kwargs) in a fresh session; log and swallow failures."""
    db = session_factory()
    try:
        fn(db, *args, **kwargs)
    except Exception:
        db.rollback()
        logger.exception("Side effect %s failed", label)
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Session factory used by side effects. Overridden in tests."""
    return SessionLocal


class SideEffects:
    """Schedules side effects on the response's BackgroundTasks."""

    def __init__(self, background_tasks: BackgroundTasks, session_factory: Callable[[], Session]):
        self._tasks = background_tasks
        self._session_factory = session_factory

    def schedule(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._tasks.add_task(run_side_effect, self._session_factory, label, fn, *args, **kwargs)


def get_side_effects(
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory),
) -> SideEffects:
    """FastAPI dependency returning the per-request side effect scheduler."""
    return SideEffects(background_tasks, session_factory)


def get_notification_service(request: Request):
    """The application's NotificationService, built once at startup."""
    return request.app.state.notification_service

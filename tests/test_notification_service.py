"""Tests for NotificationService fan-out, preferences and providers."""

import uuid
from datetime import timedelta

from app.db.base import utcnow
from app.db.enums import NotificationType, Role
from app.db.models import Notification, Task
from app.services import notification_events, notification_service, preference_service
from app.services.notification_providers import (
    EmailProvider,
    InAppProvider,
    NotificationMessage,
    NotificationProvider,
)
from app.services.notification_service import (
    REASON_DISABLED_BY_USER,
    REASON_USER_NOT_FOUND,
    NotificationService,
)


class RecordingProvider(NotificationProvider):
    name = "recording"

    def __init__(self):
        self.sent = []

    def send(self, db, notification, user):
        self.sent.append((notification.type_value, user.id))
        return True


class ExplodingProvider(NotificationProvider):
    name = "exploding"

    def send(self, db, notification, user):
        raise RuntimeError("provider down")


def _content(type=NotificationType.DEAL_WON):
    return {"type": type, "title": "Deal won!", "message": "Acme for USD 1,000.00"}


def _notifications_for(db, user_id):
    return db.query(Notification).filter(Notification.user_id == user_id).all()


# =============================================================================
# Preferences
# =============================================================================

def test_missing_preferences_mean_enabled():
    assert preference_service.is_type_enabled(None, NotificationType.DEAL_WON)
    assert preference_service.is_type_enabled({}, NotificationType.TASK_ASSIGNED)
    assert preference_service.is_type_enabled({"notifications": {}}, NotificationType.SYSTEM)
    assert preference_service.is_type_enabled({"notifications": "garbage"}, NotificationType.SYSTEM)


def test_only_explicit_false_disables_a_type():
    prefs = {"notifications": {"deal_won": False, "deal_lost": None, "task_assigned": 0}}

    assert not preference_service.is_type_enabled(prefs, NotificationType.DEAL_WON)
    assert preference_service.is_type_enabled(prefs, NotificationType.DEAL_LOST)
    assert preference_service.is_type_enabled(prefs, NotificationType.TASK_ASSIGNED)


def test_legacy_group_toggle_disables_covered_types():
    prefs = {"notifications": {"dealUpdates": False}}

    assert not preference_service.is_type_enabled(prefs, "deal_won")
    assert not preference_service.is_type_enabled(prefs, NotificationType.DEAL_LOST)
    assert preference_service.is_type_enabled(prefs, NotificationType.DEAL_ASSIGNED)


def test_type_key_wins_over_legacy_group_toggle():
    prefs = {"notifications": {"dealUpdates": False, "deal_won": True}}

    assert preference_service.is_type_enabled(prefs, NotificationType.DEAL_WON)
    # Types without their own key still follow the group toggle
    assert not preference_service.is_type_enabled(prefs, NotificationType.DEAL_LOST)

    prefs = {"notifications": {"dealUpdates": True, "deal_won": False}}
    assert not preference_service.is_type_enabled(prefs, NotificationType.DEAL_WON)


def test_merge_preferences_merges_notification_toggles():
    merged = preference_service.merge_preferences(
        {"theme": "dark", "notifications": {"deal_won": False}},
        {"notifications": {"task_assigned": False}, "theme": "light"},
    )

    assert merged == {
        "theme": "light",
        "notifications": {"deal_won": False, "task_assigned": False},
    }


# =============================================================================
# notify
# =============================================================================

def test_notify_disabled_type_sends_nothing(db, test_org, user_factory):
    user = user_factory(preferences={"notifications": {"deal_won": False}})
    recording = RecordingProvider()
    service = NotificationService([recording])

    outcome = service.notify(db, user_id=user.id, organization_id=test_org.id, **_content())

    assert outcome.sent is False
    assert outcome.reason == REASON_DISABLED_BY_USER
    assert outcome.results == []
    assert recording.sent == []
    assert _notifications_for(db, user.id) == []


def test_notify_absent_type_is_delivered_in_app(db, test_org, test_user):
    service = NotificationService()

    outcome = service.notify(db, user_id=test_user.id, organization_id=test_org.id, **_content())

    assert outcome.sent is True
    assert [r.provider for r in outcome.results] == ["in-app"]
    rows = _notifications_for(db, test_user.id)
    assert len(rows) == 1
    assert rows[0].type == "deal_won"
    assert rows[0].is_read is False


def test_notify_unknown_user_returns_reason(db, test_org):
    outcome = NotificationService().notify(
        db, user_id=uuid.uuid4(), organization_id=test_org.id, **_content()
    )

    assert outcome.sent is False
    assert outcome.reason == REASON_USER_NOT_FOUND


def test_notify_user_of_other_org_is_not_found(db, test_org, other_org, user_factory):
    outsider = user_factory(org=other_org)

    outcome = NotificationService().notify(
        db, user_id=outsider.id, organization_id=test_org.id, **_content()
    )

    assert outcome.reason == REASON_USER_NOT_FOUND
    assert _notifications_for(db, outsider.id) == []


def test_provider_failure_is_recorded_not_raised(db, test_org, test_user):
    recording = RecordingProvider()
    service = NotificationService([ExplodingProvider(), recording])

    outcome = service.notify(db, user_id=test_user.id, organization_id=test_org.id, **_content())

    assert [(r.provider, r.success) for r in outcome.results] == [
        ("in-app", True),
        ("exploding", False),
        ("recording", True),
    ]
    assert outcome.sent is True
    assert recording.sent == [("deal_won", test_user.id)]


def test_in_app_provider_is_always_first():
    service = NotificationService([RecordingProvider()])
    assert service.provider_names == ["in-app", "recording"]


# =============================================================================
# Fan-out
# =============================================================================

def test_notify_org_excludes_actor_and_inactive_users(
    db, test_org, other_org, admin_user, test_user, user_factory
):
    actor = user_factory(Role.MANAGER)
    inactive = user_factory(is_active=False)
    user_factory(org=other_org)

    outcomes = NotificationService().notify_org(
        db, organization_id=test_org.id, exclude_user_id=actor.id, **_content()
    )

    notified = {o.user_id for o in outcomes}
    assert notified == {admin_user.id, test_user.id}
    assert actor.id not in notified
    assert inactive.id not in notified


def test_notify_admins_targets_admins_and_managers(db, test_org, admin_user, manager_user, test_user):
    outcomes = NotificationService().notify_admins(
        db, organization_id=test_org.id, **_content(NotificationType.SYSTEM)
    )

    assert {o.user_id for o in outcomes} == {admin_user.id, manager_user.id}


def test_notify_many_continues_after_a_failure(db, test_org, test_user, second_user, monkeypatch):
    service = NotificationService()
    original = service.notify

    def flaky_notify(db, *, user_id, **kwargs):
        if user_id == test_user.id:
            raise RuntimeError("boom")
        return original(db, user_id=user_id, **kwargs)

    monkeypatch.setattr(service, "notify", flaky_notify)

    outcomes = service.notify_many(
        db, user_ids=[test_user.id, second_user.id], organization_id=test_org.id, **_content()
    )

    assert [o.sent for o in outcomes] == [False, True]
    assert len(_notifications_for(db, second_user.id)) == 1


# =============================================================================
# Providers
# =============================================================================

def test_email_provider_requires_opt_in():
    provider = EmailProvider(from_address="crm@test.com")

    assert not provider.is_enabled(NotificationType.DEAL_WON, {})
    assert not provider.is_enabled(
        NotificationType.DEAL_WON, {"notifications": {"emailEnabled": True}}
    )
    assert provider.is_enabled(
        NotificationType.DEAL_WON, {"notifications": {"emailEnabled": True, "dealWon": True}}
    )
    # No email toggle exists for assignments
    assert not provider.is_enabled(
        NotificationType.TASK_ASSIGNED,
        {"notifications": {"emailEnabled": True, "taskAssigned": True}},
    )


def test_in_app_provider_rolls_back_on_failure(db, test_user, monkeypatch):
    def broken_commit():
        raise RuntimeError("db down")

    monkeypatch.setattr(db, "commit", broken_commit)

    ok = InAppProvider().send(db, NotificationMessage(type="system", title="Hello"), test_user)

    assert ok is False


def test_build_service_registers_email_when_enabled(monkeypatch):
    monkeypatch.setattr(notification_service.settings, "EMAIL_NOTIFICATIONS_ENABLED", True)
    service = notification_service.build_notification_service()
    assert service.provider_names == ["in-app", "email"]

    monkeypatch.setattr(notification_service.settings, "EMAIL_NOTIFICATIONS_ENABLED", False)
    assert notification_service.build_notification_service().provider_names == ["in-app"]


def test_recipient_helpers(db, test_org, admin_user, test_user, org_factory, user_factory):
    user_factory(Role.ADMIN, org=org_factory("Elsewhere"))

    assert notification_service.admin_user_ids(db, test_org.id) == [admin_user.id]
    assert notification_service.org_user_ids(db, test_org.id, exclude_user_id=admin_user.id) == [
        test_user.id
    ]


# =============================================================================
# Task reminders
# =============================================================================

def test_send_due_task_reminders_skips_already_reminded(db, test_org, test_user):
    now = utcnow()
    due_soon = Task(
        organization_id=test_org.id,
        title="Call Acme back",
        due_date=now + timedelta(hours=3),
        assigned_to_id=test_user.id,
        owner_id=test_user.id,
    )
    far_away = Task(
        organization_id=test_org.id,
        title="Quarterly review",
        due_date=now + timedelta(days=5),
        assigned_to_id=test_user.id,
        owner_id=test_user.id,
    )
    db.add_all([due_soon, far_away])
    db.commit()

    service = NotificationService()
    assert notification_events.send_due_task_reminders(db, service, hours=24, now=now) == 1
    assert notification_events.send_due_task_reminders(db, service, hours=24, now=now) == 0

    reminders = _notifications_for(db, test_user.id)
    assert [(n.type, n.link) for n in reminders] == [("task_reminder", f"/tasks/{due_soon.id}")]

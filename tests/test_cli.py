"""Tests for the admin CLI."""

from datetime import timedelta

from click.testing import CliRunner

from app.cli import cli
from app.db.base import utcnow
from app.db.enums import Role
from app.db.models import Notification, Organization, Task, User


def test_create_org_bootstraps_admin(db):
    result = CliRunner().invoke(
        cli,
        [
            "create-org",
            "--name", "Acme Corp",
            "--admin-email", "Admin@Acme.com",
            "--admin-password", "long-enough-pw",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Created organization: Acme Corp" in result.output

    db.expire_all()
    org = db.query(Organization).one()
    assert org.slug == "acme-corp"
    admin = db.query(User).filter(User.organization_id == org.id).one()
    assert admin.email == "admin@acme.com"
    assert admin.role == Role.ADMIN.value


def test_create_org_rejects_duplicate_slug(db, test_org):
    result = CliRunner().invoke(
        cli,
        [
            "create-org",
            "--name", "Copycat",
            "--slug", test_org.slug,
            "--admin-email", "admin@copycat.com",
            "--admin-password", "long-enough-pw",
        ],
    )

    assert "already exists" in result.output
    db.expire_all()
    assert db.query(Organization).count() == 1


def test_create_org_rejects_short_password(db):
    result = CliRunner().invoke(
        cli,
        ["create-org", "--name", "Acme", "--admin-email", "a@acme.com", "--admin-password", "short"],
    )

    assert "Invalid admin details" in result.output
    assert db.query(Organization).count() == 0


def test_revoke_sessions_bumps_token_version(db, test_user):
    result = CliRunner().invoke(cli, ["revoke-sessions", "--email", test_user.email])

    assert result.exit_code == 0
    db.expire_all()
    assert db.get(User, test_user.id).token_version == 2


def test_send_task_reminders(db, test_org, test_user):
    db.add(
        Task(
            organization_id=test_org.id,
            title="Send contract",
            due_date=utcnow() + timedelta(hours=2),
            assigned_to_id=test_user.id,
            owner_id=test_user.id,
        )
    )
    db.commit()

    first = CliRunner().invoke(cli, ["send-task-reminders", "--hours", "24"])
    second = CliRunner().invoke(cli, ["send-task-reminders"])

    assert "Sent 1 reminder(s)" in first.output
    assert "Sent 0 reminder(s)" in second.output
    db.expire_all()
    assert db.query(Notification).filter(Notification.user_id == test_user.id).count() == 1

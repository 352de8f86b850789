"""CLI tools for CRM administration."""

import click

from app.db.base import Base
from app.db.enums import Role
from app.db.session import SessionLocal, engine


@click.group()
def cli():
    """CRM CLI tools."""
    pass


@cli.command()
def init_db():
    """
    Create all tables for the configured DATABASE_URL.

    Example:
        python -m app.cli init-db
    """
    import app.db.models  # noqa: F401 - register models on Base.metadata

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Database schema created")


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", default=None, help="URL-friendly slug (defaults to a slug of the name)")
@click.option("--admin-email", required=True, help="Admin email address")
@click.option("--admin-name", default=None, help="Admin display name")
@click.password_option("--admin-password", help="Initial admin password (min 8 characters)")
def create_org(name: str, slug: str | None, admin_email: str, admin_name: str | None, admin_password: str):
    """
    Create organization and its first admin.

    This is the bootstrap command for setting up a new tenant.

    Example:
        python -m app.cli create-org --name "Acme Corp" --slug "acme" --admin-email "admin@acme.com"
    """
    from pydantic import ValidationError

    from app.schemas.user import UserCreate
    from app.services import org_service, user_service

    try:
        admin = UserCreate(
            email=admin_email,
            name=admin_name or admin_email.split("@")[0],
            password=admin_password,
            role=Role.ADMIN,
        )
    except ValidationError as e:
        click.echo(f"❌ Invalid admin details: {e.errors()[0]['msg']}")
        return

    db = SessionLocal()
    try:
        org = org_service.create_org(db, name, slug)
        user = user_service.create_user(db, org.id, admin)

        click.echo(f"✓ Created organization: {org.name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Slug: {org.slug}")
        click.echo(f"✓ Created admin {user.email}")
    except ValueError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m app.cli revoke-sessions --email "user@example.com"
    """
    from app.services import auth_service, user_service

    db = SessionLocal()
    try:
        user = user_service.find_active_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        auth_service.revoke_sessions(db, user)
        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


@cli.command()
@click.option("--hours", default=24, show_default=True, help="Remind about tasks due within this many hours")
def send_task_reminders(hours: int):
    """
    Notify assignees of open tasks that are due soon.

    Meant to run from cron. Tasks already reminded are skipped.

    Example:
        python -m app.cli send-task-reminders --hours 24
    """
    from app.services import notification_events
    from app.services.notification_service import build_notification_service

    db = SessionLocal()
    try:
        sent = notification_events.send_due_task_reminders(
            db, build_notification_service(), hours=hours
        )
        click.echo(f"✓ Sent {sent} reminder(s)")
    finally:
        db.close()


if __name__ == "__main__":
    cli()

"""CLI tools for Appointly administration."""

import asyncio

import click

from appointly.core.config import settings
from appointly.core.security import create_session_token
from appointly.core.structured_logging import configure_logging
from appointly.db.enums import Role
from appointly.db.models import User
from appointly.db.session import SessionLocal
from appointly.services import admin_service, cleanup_service, reminder_service
from appointly.services.email_sender import build_email_client


@click.group()
def cli():
    """Appointly CLI tools."""
    configure_logging(settings.LOG_LEVEL)


async def _run_reminders(test_email: str | None, interval_minutes: int) -> reminder_service.ReminderRunResult:
    email_client = build_email_client(settings.RESEND_API_KEY, settings.EMAIL_FROM)
    try:
        with SessionLocal() as db:
            return await reminder_service.dispatch_reminders(
                db,
                email_client,
                test_recipient=test_email,
                test_interval_minutes=interval_minutes,
                max_attempts=settings.REMINDER_MAX_ATTEMPTS,
            )
    finally:
        await email_client.aclose()


@cli.command()
@click.option("--test-email", default=None, help="Send every reminder here without marking appointments")
@click.option(
    "--interval-minutes",
    default=settings.TEST_CRON_INTERVAL_MINUTES,
    show_default=True,
    type=click.IntRange(min=1),
    help="Test-mode window size",
)
def send_reminders(test_email: str | None, interval_minutes: int):
    """
    Run the reminder job once.

    Same job the /cron/reminders endpoint runs; useful from crontab.

    Example:
        appointly send-reminders --test-email me@example.com --interval-minutes 30
    """
    result = asyncio.run(_run_reminders(test_email or settings.TEST_SEND_TO_MAIL or None, interval_minutes))
    click.echo(
        f"Found {result.total}: sent {result.sent}, failed {result.failed}, "
        f"skipped {result.skipped} (emails {result.emails_sent}, in-app {result.in_app_sent})"
    )
    if result.failed:
        raise SystemExit(1)


@cli.command()
@click.option(
    "--days",
    default=settings.CLEANUP_SOFT_DELETE_DAYS,
    show_default=True,
    type=click.IntRange(min=1),
    help="Soft-delete cancellations older than this many days",
)
def cleanup(days: int):
    """Complete ended appointments and soft-delete old cancellations."""
    with SessionLocal() as db:
        result = cleanup_service.run_cleanup(db, soft_delete_days=days)
    click.echo(
        f"Completed {result.completed}, soft-deleted {result.soft_deleted} "
        f"(total {result.total_processed})"
    )


@cli.command()
@click.option("--email", required=True, help="User email address")
@click.option("--name", default=None, help="Display name")
@click.option("--admin", is_flag=True, help="Grant the admin role")
def create_user(email: str, name: str | None, admin: bool):
    """Create a user row (identity is managed by the auth provider)."""
    db = SessionLocal()
    try:
        user = admin_service.create_user(db, email, name=name, role=Role.ADMIN if admin else Role.USER)
        click.echo(f"✓ Created user {user.email}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Role: {user.role}")
    except ValueError as e:
        db.rollback()
        click.echo(f"❌ {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email address")
def issue_token(email: str):
    """Print a session token for a user (local testing of the API)."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            click.echo(f"❌ No user with email {email}")
            raise SystemExit(1)
        click.echo(create_session_token(user.id, user.role, user.token_version))
    finally:
        db.close()


if __name__ == "__main__":
    cli()

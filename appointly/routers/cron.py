"""
Cron endpoints for scheduled jobs.

Protected by the X-Cron-Secret header when CRON_SECRET is configured.
Call from an external scheduler (Vercel cron, GH Actions, crontab): reminders
hourly, cleanup once a day.
"""
import logging

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from appointly.core.config import settings
from appointly.core.deps import get_db, get_email_client
from appointly.core.rate_limit import CRON_RATE_LIMIT, limiter
from appointly.core.security import secrets_match
from appointly.services import cleanup_service, reminder_service
from appointly.services.email_sender import EmailClient
from appointly.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def error_response(status_code: int, code: str, message: str, details: str | None = None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def cron_secret_valid(provided: str | None) -> bool:
    """Secret is enforced only when the check is enabled and a secret is set."""
    if not settings.ENABLE_CRON_SECRET_CHECK or not settings.CRON_SECRET:
        return True
    return secrets_match(provided, settings.CRON_SECRET)


@router.api_route("/reminders", methods=["GET", "POST"])
@limiter.limit(CRON_RATE_LIMIT)
async def run_reminders(
    request: Request,
    x_cron_secret: str | None = Header(None),
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
):
    """
    Send due appointment reminders.

    TEST_SEND_TO_MAIL switches to test mode: a TEST_CRON_INTERVAL_MINUTES
    window starting now, all email to that address, no bookkeeping.
    """
    if not cron_secret_valid(x_cron_secret):
        logger.warning("Unauthorized reminder job attempt (%s)", request.method)
        return error_response(401, "UNAUTHORIZED", "Invalid or missing cron secret")

    test_recipient = settings.TEST_SEND_TO_MAIL.strip() if settings.cron_test_mode else None
    logger.info("Starting appointment reminder job (%s)", request.method)
    try:
        result = await reminder_service.dispatch_reminders(
            db,
            email_client,
            test_recipient=test_recipient,
            test_interval_minutes=settings.TEST_CRON_INTERVAL_MINUTES,
            max_attempts=settings.REMINDER_MAX_ATTEMPTS,
        )
    except Exception as e:
        logger.exception("Appointment reminder job failed")
        return error_response(500, "INTERNAL_ERROR", "Failed to process appointment reminders", str(e))

    logger.info("Appointment reminder job completed successfully")
    return {"success": True, "data": result.as_response_data(utc_now())}


@router.api_route("/cleanup", methods=["GET", "POST"])
@limiter.limit(CRON_RATE_LIMIT)
def run_cleanup(
    request: Request,
    x_cron_secret: str | None = Header(None),
    db: Session = Depends(get_db),
):
    """
    Complete ended appointments and soft-delete old cancellations.

    Cancellations older than CLEANUP_SOFT_DELETE_DAYS are soft-deleted.
    """
    if not cron_secret_valid(x_cron_secret):
        logger.warning("Unauthorized cleanup job attempt (%s)", request.method)
        return error_response(401, "UNAUTHORIZED", "Invalid or missing cron secret")

    now = utc_now()
    try:
        result = cleanup_service.run_cleanup(
            db, now=now, soft_delete_days=settings.CLEANUP_SOFT_DELETE_DAYS
        )
    except Exception as e:
        logger.exception("Cleanup job failed")
        return error_response(500, "INTERNAL_ERROR", "Failed to perform cleanup", str(e))

    return {"success": True, "data": result.as_response_data(now)}

"""Appointment Email Service - email content and sends for appointments.

Provides:
- HTML email templates for each appointment email type
- Variable building from an appointment and its owner
- Send helpers that take an explicit EmailClient
"""

from __future__ import annotations

import html as html_module
import logging
import re
from datetime import datetime
from enum import Enum
from typing import NamedTuple

from sqlalchemy.orm import Session

from appointly.core.config import settings
from appointly.core.structured_logging import mask_email
from appointly.db.models import Appointment
from appointly.services.email_sender import EmailClient
from appointly.utils.datetime_utils import format_for_humans

logger = logging.getLogger(__name__)

# Variable pattern for template substitution: {{variable_name}}
VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


class AppointmentEmailType(str, Enum):
    """Types of emails sent for appointments."""

    CONFIRMED = "confirmed"
    REMINDER = "reminder"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"


class RenderedEmail(NamedTuple):
    subject: str
    html: str
    text: str


_LAYOUT = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: linear-gradient(135deg, {{accent_from}} 0%, {{accent_to}} 100%); padding: 30px; border-radius: 12px 12px 0 0;">
        <h1 style="color: white; margin: 0; font-size: 24px;">{{heading}}</h1>
        <p style="color: white; margin: 8px 0 0 0; opacity: 0.9;">{{app_name}}</p>
    </div>
    <div style="background: #f9fafb; padding: 30px; border-radius: 0 0 12px 12px; border: 1px solid #e5e7eb; border-top: none;">
        <p>Hello {{name}},</p>
        <p>{{intro}}</p>
        <div style="background: white; border-radius: 8px; padding: 20px; margin: 20px 0; border: 1px solid #e5e7eb;">
            <h3 style="margin-top: 0;">{{title}}</h3>
            <table style="width: 100%; border-collapse: collapse;">
                <tr><td style="padding: 8px 0; color: #6b7280;">Starts:</td><td style="padding: 8px 0;"><strong>{{start}}</strong></td></tr>
                <tr><td style="padding: 8px 0; color: #6b7280;">Ends:</td><td style="padding: 8px 0;"><strong>{{end}}</strong></td></tr>
                <tr><td style="padding: 8px 0; color: #6b7280;">Duration:</td><td style="padding: 8px 0;"><strong>{{duration}} minutes</strong></td></tr>
                <tr><td style="padding: 8px 0; color: #6b7280;">Location:</td><td style="padding: 8px 0;"><strong>{{location}}</strong></td></tr>
                <tr><td style="padding: 8px 0; color: #6b7280;">Meeting link:</td><td style="padding: 8px 0;"><strong>{{meeting_url}}</strong></td></tr>
            </table>
            <p style="color: #6b7280; margin-bottom: 0;">{{description}}</p>
        </div>
        <p>{{extra}}</p>
        <div style="margin: 25px 0; text-align: center;">
            <a href="{{appointment_url}}" style="display: inline-block; padding: 12px 24px; background: {{accent_from}}; color: white; text-decoration: none; border-radius: 8px; font-weight: 500;">View appointment</a>
        </div>
        <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">
        <p style="color: #9ca3af; font-size: 12px; margin: 0;">
            This email was sent to you because you have an account with {{app_name}}.<br>
            This is an automated message. Please do not reply directly to this email.
        </p>
    </div>
</body>
</html>"""

TEMPLATES: dict[AppointmentEmailType, dict[str, str]] = {
    AppointmentEmailType.CONFIRMED: {
        "subject": "Appointment Confirmed: {{title}}",
        "heading": "Appointment Confirmed",
        "intro": "Your appointment has been scheduled.",
        "accent_from": "#10b981",
        "accent_to": "#059669",
    },
    AppointmentEmailType.REMINDER: {
        "subject": "Reminder: {{title}} on {{start}}",
        "heading": "Appointment Reminder",
        "intro": "This is a friendly reminder about your upcoming appointment.",
        "accent_from": "#6366f1",
        "accent_to": "#8b5cf6",
    },
    AppointmentEmailType.RESCHEDULED: {
        "subject": "Appointment Rescheduled: {{title}}",
        "heading": "Appointment Rescheduled",
        "intro": "Your appointment has been moved to a new time.",
        "accent_from": "#f59e0b",
        "accent_to": "#d97706",
    },
    AppointmentEmailType.CANCELLED: {
        "subject": "Appointment Cancelled: {{title}}",
        "heading": "Appointment Cancelled",
        "intro": "Your appointment has been cancelled.",
        "accent_from": "#ef4444",
        "accent_to": "#dc2626",
    },
}


def render_template(template: str, variables: dict[str, str], *, escape: bool = True) -> str:
    """Substitute {{variable}} placeholders; unknown names render empty."""

    def replace(match: re.Match) -> str:
        value = variables.get(match.group(1), "")
        return html_module.escape(value) if escape else value

    return VARIABLE_PATTERN.sub(replace, template)


def build_appointment_variables(appointment: Appointment) -> dict[str, str]:
    """Template variables for an appointment and its owner."""
    user = appointment.user
    base_url = str(settings.FRONTEND_URL).rstrip("/")
    return {
        "app_name": settings.APP_NAME,
        "name": (user.name if user and user.name else "User"),
        "title": appointment.title,
        "description": appointment.description or "",
        "start": format_for_humans(appointment.start_date_time),
        "end": format_for_humans(appointment.end_date_time),
        "duration": str(appointment.duration),
        "location": appointment.location or "Not specified",
        "meeting_url": appointment.meeting_url or "Not provided",
        "appointment_url": f"{base_url}/appointments/{appointment.id}",
    }


def render_appointment_email(
    email_type: AppointmentEmailType,
    appointment: Appointment,
    extra: str = "",
) -> RenderedEmail:
    """Render subject, HTML and plain-text bodies for an appointment email."""
    template = TEMPLATES[email_type]
    variables = build_appointment_variables(appointment)
    variables.update(
        heading=template["heading"],
        intro=template["intro"],
        accent_from=template["accent_from"],
        accent_to=template["accent_to"],
        extra=extra,
    )
    subject = render_template(template["subject"], variables, escape=False)
    html = render_template(_LAYOUT, variables)
    text_lines = [
        f"Hello {variables['name']},",
        "",
        template["intro"],
        "",
        variables["title"],
        f"Starts: {variables['start']}",
        f"Ends: {variables['end']}",
        f"Duration: {variables['duration']} minutes",
        f"Location: {variables['location']}",
        f"Meeting link: {variables['meeting_url']}",
    ]
    if extra:
        text_lines += ["", extra]
    text_lines += ["", variables["appointment_url"]]
    return RenderedEmail(subject=subject, html=html, text="\n".join(text_lines))


# =============================================================================
# Lifecycle sends (confirmation / rescheduled / cancelled)
# =============================================================================

async def _send(
    email_client: EmailClient,
    appointment: Appointment,
    email_type: AppointmentEmailType,
    extra: str = "",
) -> str:
    rendered = render_appointment_email(email_type, appointment, extra)
    return await email_client.send_email(
        to=appointment.user.email,
        subject=rendered.subject,
        html=rendered.html,
        text=rendered.text,
    )


async def send_confirmation(db: Session, email_client: EmailClient, appointment: Appointment) -> str:
    """Send the confirmation email and record it on the appointment."""
    message_id = await _send(email_client, appointment, AppointmentEmailType.CONFIRMED)
    appointment.email_notification_sent = True
    db.commit()
    return message_id


async def send_rescheduled(
    email_client: EmailClient,
    appointment: Appointment,
    old_start: datetime | None = None,
) -> str:
    extra = f"Previously scheduled for {format_for_humans(old_start)}." if old_start else ""
    return await _send(email_client, appointment, AppointmentEmailType.RESCHEDULED, extra)


async def send_cancelled(
    email_client: EmailClient,
    appointment: Appointment,
    reason: str | None = None,
) -> str:
    extra = f"Reason: {reason}" if reason else ""
    return await _send(email_client, appointment, AppointmentEmailType.CANCELLED, extra)


async def send_quietly(coro, appointment: Appointment, email_type: AppointmentEmailType) -> bool:
    """
    Await a lifecycle send, logging instead of raising on failure.

    Lifecycle emails never fail the API request that triggered them.
    """
    try:
        await coro
        return True
    except Exception:
        logger.exception(
            "Failed to send %s email for appointment %s to %s",
            email_type.value,
            appointment.id,
            mask_email(appointment.user.email if appointment.user else None),
        )
        return False

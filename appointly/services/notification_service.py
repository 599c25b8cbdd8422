"""
Notification Service - handles in-app notifications.

Provides CRUD for notifications and trigger functions for appointment events.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from appointly.db.enums import APPOINTMENT_ENTITY_TYPE, NotificationType
from appointly.db.models import Notification
from appointly.services import preferences_service
from appointly.utils.datetime_utils import format_for_humans, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Notification CRUD
# =============================================================================


def create_notification(
    db: Session,
    user_id: UUID,
    type: NotificationType,
    title: str,
    description: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
) -> Notification:
    """Create a notification."""
    notification = Notification(
        user_id=user_id,
        type=type.value,
        title=title,
        description=description,
        entity_type=entity_type,
        entity_id=entity_id,
        read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info("Created %s notification for user %s", type.value, user_id)
    return notification


def list_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Notification]:
    """Get notifications for user, newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)

    if unread_only:
        query = query.filter(Notification.read.is_(False))

    return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()


def get_unread_count(db: Session, user_id: UUID) -> int:
    """Get count of unread notifications."""
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).count()


def mark_read(
    db: Session,
    notification_id: UUID,
    user_id: UUID,
) -> Optional[Notification]:
    """
    Mark a notification as read.

    Conditional update on read = false, so marking twice is a no-op and
    read_at keeps its first value. Returns None if the notification does
    not belong to the user.
    """
    now = utc_now()
    db.execute(
        update(Notification)
        .where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        .values(read=True, read_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if notification is not None:
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Mark all notifications as read. Returns count updated."""
    result = db.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        .values(read=True, read_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0


# =============================================================================
# Notification Triggers (called from appointment and reminder services)
# =============================================================================


def notify_appointment_created(
    db: Session,
    user_id: UUID,
    appointment_id: UUID,
    appointment_title: str,
    start_date_time: datetime,
) -> Optional[Notification]:
    """Notify user that their appointment was scheduled."""
    if not preferences_service.should_notify(db, user_id, "appointment_created_notif"):
        return None
    return create_notification(
        db=db,
        user_id=user_id,
        type=NotificationType.APPOINTMENT_CREATED,
        title="Appointment Created",
        description=(
            f'Your appointment "{appointment_title}" has been scheduled for '
            f"{format_for_humans(start_date_time)}."
        ),
        entity_type=APPOINTMENT_ENTITY_TYPE,
        entity_id=appointment_id,
    )


def notify_appointment_reminder(
    db: Session,
    user_id: UUID,
    appointment_id: UUID,
    appointment_title: str,
    start_date_time: datetime,
) -> Notification:
    """
    Create the in-app reminder.

    Channel toggles are decided by the reminder dispatcher, not here.
    """
    return create_notification(
        db=db,
        user_id=user_id,
        type=NotificationType.APPOINTMENT_REMINDER,
        title="Appointment Reminder",
        description=(
            f'Reminder: Your appointment "{appointment_title}" is coming up on '
            f"{format_for_humans(start_date_time)}."
        ),
        entity_type=APPOINTMENT_ENTITY_TYPE,
        entity_id=appointment_id,
    )


def notify_appointment_rescheduled(
    db: Session,
    user_id: UUID,
    appointment_id: UUID,
    appointment_title: str,
    new_start_date_time: datetime,
) -> Optional[Notification]:
    if not preferences_service.should_notify(db, user_id, "appointment_rescheduled_notif"):
        return None
    return create_notification(
        db=db,
        user_id=user_id,
        type=NotificationType.APPOINTMENT_RESCHEDULED,
        title="Appointment Rescheduled",
        description=(
            f'Your appointment "{appointment_title}" has been rescheduled to '
            f"{format_for_humans(new_start_date_time)}."
        ),
        entity_type=APPOINTMENT_ENTITY_TYPE,
        entity_id=appointment_id,
    )


def notify_appointment_cancelled(
    db: Session,
    user_id: UUID,
    appointment_id: UUID,
    appointment_title: str,
    reason: Optional[str] = None,
) -> Optional[Notification]:
    if not preferences_service.should_notify(db, user_id, "appointment_cancelled_notif"):
        return None
    description = f'Your appointment "{appointment_title}" has been cancelled.'
    if reason:
        description = f"{description[:-1]}. Reason: {reason}"
    return create_notification(
        db=db,
        user_id=user_id,
        type=NotificationType.APPOINTMENT_CANCELLED,
        title="Appointment Cancelled",
        description=description,
        entity_type=APPOINTMENT_ENTITY_TYPE,
        entity_id=appointment_id,
    )


def notify_appointment_completed(
    db: Session,
    user_id: UUID,
    appointment_id: UUID,
    appointment_title: str,
) -> Notification:
    return create_notification(
        db=db,
        user_id=user_id,
        type=NotificationType.APPOINTMENT_COMPLETED,
        title="Appointment Completed",
        description=f'Your appointment "{appointment_title}" has been marked as completed.',
        entity_type=APPOINTMENT_ENTITY_TYPE,
        entity_id=appointment_id,
    )

"""Admin service - user management and platform counters."""

import logging
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from appointly.db.enums import AppointmentStatus, Role
from appointly.db.models import Appointment, User
from appointly.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def get_platform_stats(db: Session) -> dict[str, int]:
    """Dashboard counters across every user."""
    appointments = db.query(Appointment).filter(Appointment.deleted_at.is_(None))
    return {
        "totalUsers": db.query(User).count(),
        "totalAppointments": appointments.count(),
        "upcomingAppointments": appointments.filter(
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.start_date_time >= utc_now(),
        ).count(),
        "completedAppointments": appointments.filter(
            Appointment.status == AppointmentStatus.COMPLETED.value,
        ).count(),
    }


def list_users(
    db: Session,
    search: str | None = None,
    role: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[User], int]:
    query = db.query(User)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.email.asc()).offset(offset).limit(limit).all()
    return users, total


def get_user(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def create_user(db: Session, email: str, name: str | None = None, role: Role = Role.USER) -> User:
    """Create a user row. Raises ValueError if the email is taken."""
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValueError(f"User with email {email} already exists")
    user = User(email=email, name=name, role=Role(role).value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_user(
    db: Session,
    user: User,
    actor_id: UUID,
    role: Role | None = None,
    banned: bool | None = None,
    ban_reason: str | None = None,
) -> User:
    """
    Change a user's role or ban state.

    Banning bumps token_version so existing sessions stop validating.
    Admins cannot demote or ban themselves.
    """
    if user.id == actor_id and (banned or (role is not None and role != Role.ADMIN)):
        raise ValueError("Admins cannot demote or ban themselves")

    if role is not None:
        user.role = Role(role).value

    if banned is True and user.is_active:
        user.is_active = False
        user.ban_reason = ban_reason
        user.token_version = (user.token_version or 1) + 1
        logger.info("User %s banned by %s", user.id, actor_id)
    elif banned is False and not user.is_active:
        user.is_active = True
        user.ban_reason = None
        logger.info("User %s unbanned by %s", user.id, actor_id)

    db.commit()
    db.refresh(user)
    return user

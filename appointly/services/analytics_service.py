"""Analytics service for the admin dashboard.

Platform-wide aggregations over appointments. Soft-deleted rows are excluded.
"""
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from appointly.db.enums import AppointmentStatus
from appointly.db.models import Appointment
from appointly.utils.datetime_utils import ensure_utc, utc_now


PERIOD_DAYS = 30


def _live(db: Session):
    return db.query(Appointment).filter(Appointment.deleted_at.is_(None))


def _rate(part: int, whole: int) -> float:
    """Percentage rounded to two decimals; 0 when whole is 0."""
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def _status_counts(db: Session) -> dict[str, int]:
    rows = (
        db.query(Appointment.status, func.count(Appointment.id))
        .filter(Appointment.deleted_at.is_(None))
        .group_by(Appointment.status)
        .all()
    )
    return {status: count for status, count in rows}


# ============================================================================
# Overview
# ============================================================================

def get_overview(db: Session, now: datetime | None = None) -> dict[str, Any]:
    """
    Key metrics: totals, last 30 days vs the 30 before, and outcome rates.

    Growth is 100 when the previous period is empty but the current one isn't.
    """
    now = ensure_utc(now) if now else utc_now()
    current_start = now - timedelta(days=PERIOD_DAYS)
    previous_start = now - timedelta(days=2 * PERIOD_DAYS)

    total = _live(db).count()
    current = _live(db).filter(Appointment.start_date_time >= current_start).count()
    previous = _live(db).filter(
        Appointment.start_date_time >= previous_start,
        Appointment.start_date_time < current_start,
    ).count()
    counts = _status_counts(db)

    if previous > 0:
        growth = round((current - previous) / previous * 100, 2)
    else:
        growth = 100.0 if current > 0 else 0.0

    return {
        "totalAppointments": total,
        "totalAppointmentsCurrentPeriod": current,
        "totalAppointmentsPreviousPeriod": previous,
        "growthRate": growth,
        "averageAppointmentsPerDay": round(current / PERIOD_DAYS, 2),
        "completionRate": _rate(counts.get(AppointmentStatus.COMPLETED.value, 0), total),
        "cancellationRate": _rate(counts.get(AppointmentStatus.CANCELLED.value, 0), total),
        "noShowRate": _rate(counts.get(AppointmentStatus.NO_SHOW.value, 0), total),
    }


# ============================================================================
# Distributions
# ============================================================================

def get_status_distribution(db: Session) -> list[dict[str, Any]]:
    """Count and share of each status present."""
    counts = _status_counts(db)
    total = sum(counts.values())
    return [
        {"status": status, "count": count, "percentage": _rate(count, total)}
        for status, count in sorted(counts.items())
    ]


def get_time_slots(db: Session) -> list[dict[str, int]]:
    """Appointment counts per UTC start hour, always 24 entries."""
    hours = [0] * 24
    for (start,) in db.query(Appointment.start_date_time).filter(Appointment.deleted_at.is_(None)):
        hours[ensure_utc(start).hour] += 1
    return [{"hour": hour, "count": count} for hour, count in enumerate(hours)]


# ============================================================================
# Time series
# ============================================================================

TIMESERIES_PERIODS = ("day", "week", "month")


def _bucket_start(moment: datetime, period: str) -> datetime:
    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return day - timedelta(days=day.weekday())
    if period == "month":
        return day.replace(day=1)
    return day


def _next_bucket(start: datetime, period: str) -> datetime:
    if period == "week":
        return start + timedelta(weeks=1)
    if period == "month":
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)
    return start + timedelta(days=1)


def _bucket_labels(start: datetime, period: str) -> tuple[str, str]:
    """(isoDate key, short chart label) for a bucket."""
    if period == "week":
        year, week, _ = start.isocalendar()
        end = start + timedelta(days=6)
        return f"{year}-W{week:02d}", f"{start:%b} {start.day}-{end.day}"
    if period == "month":
        return f"{start:%Y-%m}", f"{start:%b %Y}"
    return start.date().isoformat(), f"{start:%b} {start.day}"


def get_timeseries(
    db: Session,
    period: str = "day",
    days: int = PERIOD_DAYS,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """
    Appointment counts per UTC day, ISO week or calendar month.

    Buckets cover the last `days` days including today, with empty buckets
    present. previousPeriodCount counts appointments `days` days earlier,
    shifted onto the same bucket.
    """
    if period not in TIMESERIES_PERIODS:
        raise ValueError(f"Unknown period: {period}")
    if days < 1:
        raise ValueError("days must be at least 1")

    now = ensure_utc(now) if now else utc_now()
    shift = timedelta(days=days)
    first = _bucket_start(now - timedelta(days=days - 1), period)

    buckets = [first]
    while _next_bucket(buckets[-1], period) <= now:
        buckets.append(_next_bucket(buckets[-1], period))
    end = _next_bucket(buckets[-1], period)

    current: dict[datetime, int] = {}
    previous: dict[datetime, int] = {}
    rows = db.query(Appointment.start_date_time).filter(
        Appointment.deleted_at.is_(None),
        Appointment.start_date_time >= first - shift,
        Appointment.start_date_time < end,
    )
    for (start,) in rows:
        start = ensure_utc(start)
        if start >= first:
            key = _bucket_start(start, period)
            current[key] = current.get(key, 0) + 1
        else:
            key = _bucket_start(start + shift, period)
            previous[key] = previous.get(key, 0) + 1

    series = []
    for bucket in buckets:
        iso_date, label = _bucket_labels(bucket, period)
        series.append({
            "date": label,
            "isoDate": iso_date,
            "count": current.get(bucket, 0),
            "previousPeriodCount": previous.get(bucket, 0),
        })
    return series

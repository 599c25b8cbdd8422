"""Datetime helpers."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Return value as an aware UTC datetime.

    Naive values (SQLite hands these back) are assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_for_humans(value: datetime) -> str:
    """Format like 'Mon, Mar 3, 2:30 PM UTC' for emails and notifications."""
    value = ensure_utc(value)
    hour = value.strftime("%I").lstrip("0") or "12"
    return f"{value.strftime('%a, %b')} {value.day}, {hour}:{value.strftime('%M %p')} UTC"

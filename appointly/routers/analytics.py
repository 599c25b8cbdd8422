"""Analytics router - admin dashboard aggregations."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from appointly.core.deps import get_db, require_roles
from appointly.db.enums import Role
from appointly.schemas.auth import UserSession
from appointly.services import analytics_service

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
)


@router.get("/overview")
def get_overview(
    _: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Totals, 30-day growth and outcome rates."""
    return analytics_service.get_overview(db)


@router.get("/status-distribution")
def get_status_distribution(
    _: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    return analytics_service.get_status_distribution(db)


@router.get("/time-slots")
def get_time_slots(
    _: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Appointments per start hour (UTC)."""
    return analytics_service.get_time_slots(db)


@router.get("/timeseries")
def get_timeseries(
    period: Literal["day", "week", "month"] = "day",
    days: int = Query(30, ge=1, le=365, alias="range"),
    _: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Appointments per day, ISO week or month over the last `range` days."""
    return analytics_service.get_timeseries(db, period=period, days=days)

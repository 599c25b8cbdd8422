"""API routers."""

from appointly.routers.admin import router as admin_router
from appointly.routers.analytics import router as analytics_router
from appointly.routers.appointments import router as appointments_router
from appointly.routers.cron import router as cron_router
from appointly.routers.notifications import router as notifications_router
from appointly.routers.preferences import router as preferences_router

__all__ = [
    "admin_router",
    "analytics_router",
    "appointments_router",
    "cron_router",
    "notifications_router",
    "preferences_router",
]

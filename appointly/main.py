"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from appointly.core.config import settings
from appointly.core.structured_logging import configure_logging
from appointly.db.session import engine
from appointly.services.email_sender import build_email_client

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from appointly.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the email transport for the life of the process."""
    app.state.email_client = build_email_client(settings.RESEND_API_KEY, settings.EMAIL_FROM)
    try:
        yield
    finally:
        await app.state.email_client.aclose()


app = FastAPI(
    title="Appointly API",
    description="Appointment scheduling with email and in-app reminders",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With", "X-Cron-Secret"],
)

# ============================================================================
# Routers
# ============================================================================

from appointly.routers import (
    admin_router,
    analytics_router,
    appointments_router,
    cron_router,
    notifications_router,
    preferences_router,
)

app.include_router(appointments_router, prefix="/appointments", tags=["appointments"])
app.include_router(preferences_router, prefix="/preferences", tags=["preferences"])
app.include_router(notifications_router, prefix="/notifications", tags=["notifications"])

# Routers carrying their own prefix
app.include_router(cron_router)
app.include_router(admin_router)
app.include_router(analytics_router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}

"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"
    APP_NAME: str = "Appointly"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./appointly.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24 * 7

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (links inside emails)
    FRONTEND_URL: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute, 0 disables)
    RATE_LIMIT_API: int = 60

    # Email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = ""

    # Reminder cron endpoint
    CRON_SECRET: str = ""
    ENABLE_CRON_SECRET_CHECK: bool = True
    TEST_SEND_TO_MAIL: str = ""  # Non-empty enables test mode and overrides the recipient
    TEST_CRON_INTERVAL_MINUTES: int = 5
    REMINDER_MAX_ATTEMPTS: int = 3

    # Cleanup cron endpoint
    CLEANUP_SOFT_DELETE_DAYS: int = 30  # Cancelled appointments older than this are soft-deleted

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cron_test_mode(self) -> bool:
        return bool(self.TEST_SEND_TO_MAIL.strip())


settings = Settings()

"""Configuration management for hearth."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    sqlite_db_path: str = Field(default="./data/hearth.db", description="Path to the SQLite database file")
    db_pool_size: int = Field(default=4, ge=1, description="Number of pooled SQLite connections")
    db_busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout for write locks")

    # Time Zone used for "today" and all daily schedules
    timezone: str = Field(default="Asia/Tokyo", description="IANA time zone of the household")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    logfire_environment: str = Field(default="production", description="Environment label attached to traces")

    # Notification transport (optional, falls back to logging sender)
    notification_webhook_url: str | None = Field(
        default=None, description="Endpoint receiving push notification requests"
    )
    notification_webhook_token: str | None = Field(
        default=None, description="Bearer token sent to the notification endpoint"
    )

    # Scheduler Configuration
    generation_hour: int = Field(default=0, ge=0, le=23, description="Local hour of daily task generation")
    generation_minute: int = Field(default=5, ge=0, le=59, description="Local minute of daily task generation")
    daily_notification_hour: int = Field(default=19, ge=0, le=23, description="Local hour of not-completed reminder")
    daily_notification_minute: int = Field(default=0, ge=0, le=59, description="Local minute of not-completed reminder")
    tomorrow_notification_hour: int = Field(default=20, ge=0, le=23, description="Local hour of tomorrow preview")
    tomorrow_notification_minute: int = Field(default=0, ge=0, le=59, description="Local minute of tomorrow preview")
    reminder_interval_minutes: int = Field(default=30, ge=1, description="Minutes between overdue reminder sweeps")

    # Outbox Configuration
    outbox_interval_seconds: float = Field(default=10.0, gt=0, description="Seconds between outbox drains")
    outbox_batch_size: int = Field(default=100, ge=1, description="Maximum outbox records per drain")
    outbox_max_retries: int = Field(default=5, ge=1, description="Attempts before an outbox record becomes FAILED")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_BAD_REQUEST: int = 400
    HTTP_FORBIDDEN: int = 403
    HTTP_NOT_FOUND: int = 404
    HTTP_CONFLICT: int = 409
    HTTP_GONE: int = 410
    HTTP_SERVER_ERROR: int = 500
    HTTP_SERVICE_UNAVAILABLE: int = 503

    # Task Definition limits
    MIN_DURATION_MINUTES: int = 1
    MAX_DURATION_MINUTES: int = 1440  # One day
    MAX_MONTHLY_DAY: int = 28  # Every month has a 28th
    MAX_TASK_POINTS: int = 1000

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100  # Default pagination limit for list queries
    MAX_LIST_LIMIT: int = 10_000  # Upper bound for unpaginated repository scans

    # Job Tracker Configuration
    TRACKER_ERROR_MAXLEN: int = 500  # Truncate stored job errors

    # Outbox error messages are stored truncated
    OUTBOX_ERROR_MAXLEN: int = 1000

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()

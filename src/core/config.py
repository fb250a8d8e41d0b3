"""Configuration management for the task selection engine."""

from datetime import time
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

    # SQLite Configuration
    sqlite_db_path: str = Field(default="./data/task_engine.db", description="SQLite database file path")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    service_environment: str = Field(default="production", description="Environment name reported to Logfire")

    # OpenRouter Configuration
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key for LLM access")

    # Google Places Configuration
    google_maps_api_key: str | None = Field(default=None, description="Google Maps API key for nearby place search")
    places_base_url: str = Field(
        default="https://places.googleapis.com/v1", description="Google Places API (New) base URL"
    )

    # Operator Alert Configuration
    operator_webhook_url: str | None = Field(
        default=None, description="Webhook that receives data-integrity and job failure alerts"
    )
    enable_operator_alerts: bool = Field(default=True, description="Enable/disable operator alerts")
    operator_alert_cooldown_minutes: int = Field(
        default=60, description="Cooldown period between alerts for the same error category (in minutes)"
    )

    # Eligibility Configuration
    timezone: str = Field(default="UTC", description="IANA timezone used for local time-of-day rules")
    proximity_radius_meters: float = Field(
        default=500.0, description="Maximum distance from a physical task location to count as 'there'"
    )
    business_hours_start: time = Field(default=time(9, 0), description="Start of the business-hours band")
    business_hours_end: time = Field(default=time(17, 0), description="End of the business-hours band")

    # Collaborator Configuration
    collaborator_timeout_seconds: float = Field(
        default=10.0, description="Upper bound for any natural-language or geolocation call"
    )
    decomposition_max_attempts: int = Field(default=3, description="Attempts for blocker decomposition calls")
    decomposition_base_delay_seconds: float = Field(
        default=1.0, description="Base delay for exponential backoff between decomposition attempts"
    )

    # Recurrence Configuration
    recurrence_check_cron: str = Field(
        default="*/15 * * * *", description="CRON schedule for generating due recurring task instances"
    )

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

    # AI Model Configuration
    model_id: str = Field(
        default="anthropic/claude-3.5-sonnet",
        description="Model ID for OpenRouter (defaults to Claude 3.5 Sonnet)",
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # Priority
    MIN_PRIORITY: int = 0
    MAX_PRIORITY: int = 100
    DEFAULT_BASE_PRIORITY: int = 50
    SECONDS_PER_DAY: int = 86400
    URGENCY_WINDOW_DAYS: int = 7  # Deadlines closer than this start raising priority
    WEEK_URGENCY_WEIGHT: float = 0.5

    # Time-of-day bands (local hour each band starts at)
    NIGHT_START_HOUR: int = 0
    MORNING_START_HOUR: int = 6
    AFTERNOON_START_HOUR: int = 12
    EVENING_START_HOUR: int = 18

    # Solar
    CIVIL_TWILIGHT_DEGREES: float = -6.0  # Sun altitude at civil dawn/dusk

    # Geo
    EARTH_RADIUS_METERS: float = 6_371_000.0

    # Retry
    RETRY_MAX_DELAY_SECONDS: float = 30.0
    CIRCUIT_BREAKER_THRESHOLD: int = 5
    CIRCUIT_BREAKER_COOLDOWN_SECONDS: float = 60.0

    # Scheduler
    JOB_MAX_RETRIES: int = 3
    JOB_DEAD_LETTER_THRESHOLD: int = 3  # Consecutive failures before dead-lettering
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100

    # HTTP
    HTTP_CLIENT_ERROR_START: int = 400
    HTTP_CLIENT_ERROR_END: int = 500

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100  # Default pagination limit for list queries

    # Decomposition
    MAX_SUBTASKS: int = 7  # Longer plans are truncated

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


# Global settings instance
settings = Settings()
constants = Constants()

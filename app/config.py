"""Application configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Clinic Scheduler", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database
    database_url: str = Field(
        default="postgresql://localhost:5432/clinic_scheduler",
        alias="DATABASE_URL",
    )

    # Redis / arq
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str | None = Field(default=None, alias="REDIS_USERNAME")
    redis_password: str | None = Field(default=None, alias="REDIS_PASSWORD")
    redis_ssl: bool = Field(default=False, alias="REDIS_SSL")
    arq_queue_name: str = Field(default="arq:queue", alias="ARQ_QUEUE_NAME")
    worker_max_jobs: int = Field(default=20, alias="WORKER_MAX_JOBS")
    worker_job_timeout: int = Field(default=300, alias="WORKER_JOB_TIMEOUT")
    reminder_job_max_tries: int = Field(default=5, ge=1, alias="REMINDER_JOB_MAX_TRIES")
    reminder_job_retry_base_seconds: int = Field(
        default=60,
        ge=1,
        alias="REMINDER_JOB_RETRY_BASE_SECONDS",
        description="Base defer for job-level retries, doubled on each try",
    )

    # Booking policy
    business_day_start_hour: int = Field(default=8, ge=0, le=23, alias="BUSINESS_DAY_START_HOUR")
    business_day_end_hour: int = Field(default=18, ge=1, le=24, alias="BUSINESS_DAY_END_HOUR")
    business_timezone: str = Field(default="UTC", alias="BUSINESS_TIMEZONE")
    slot_interval_minutes: int = Field(default=30, ge=1, alias="SLOT_INTERVAL_MINUTES")
    max_suggestions: int = Field(default=3, ge=0, alias="MAX_SUGGESTIONS")
    suggestion_search_iterations: int = Field(
        default=16, ge=0, alias="SUGGESTION_SEARCH_ITERATIONS"
    )
    reminder_lead_time_hours: int = Field(default=24, ge=1, alias="REMINDER_LEAD_TIME_HOURS")

    # Notifications
    notification_primary_channel: str = Field(
        default="email", alias="NOTIFICATION_PRIMARY_CHANNEL"
    )
    notification_fallback_channel: str = Field(
        default="email", alias="NOTIFICATION_FALLBACK_CHANNEL"
    )
    notification_max_retry_attempts: int = Field(
        default=3, ge=0, alias="NOTIFICATION_MAX_RETRY_ATTEMPTS"
    )
    notification_retry_base_delay_seconds: float = Field(
        default=5, ge=0, alias="NOTIFICATION_RETRY_BASE_DELAY_SECONDS"
    )

    # Resend (email)
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    email_from_address: str = Field(default="noreply@clinic.com", alias="EMAIL_FROM_ADDRESS")
    email_from_name: str = Field(default="Clinic Appointment System", alias="EMAIL_FROM_NAME")

    # Twilio (SMS / WhatsApp)
    twilio_account_sid: str = Field(default="", alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str = Field(default="", alias="TWILIO_AUTH_TOKEN")
    twilio_sms_from: str = Field(default="", alias="TWILIO_SMS_FROM")
    twilio_whatsapp_from: str = Field(default="", alias="TWILIO_WHATSAPP_FROM")
    twilio_timeout_seconds: float = Field(default=15.0, alias="TWILIO_TIMEOUT_SECONDS")

    # Firebase (push)
    firebase_credentials_path: str | None = Field(
        default=None,
        alias="FIREBASE_CREDENTIALS_PATH",
        description="Path to Firebase service account JSON file",
    )
    firebase_config_json: str | None = Field(
        default=None,
        alias="FIREBASE_CONFIG_JSON",
        description="Raw JSON string of the Firebase service account",
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def email_configured(self) -> bool:
        """Whether Resend credentials are present."""
        return bool(self.resend_api_key)

    @property
    def sms_configured(self) -> bool:
        """Whether Twilio SMS credentials are present."""
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_sms_from)

    @property
    def whatsapp_configured(self) -> bool:
        """Whether Twilio WhatsApp credentials are present."""
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_whatsapp_from
        )

    @property
    def push_configured(self) -> bool:
        """Whether a Firebase service account is configured."""
        return bool(self.firebase_credentials_path or self.firebase_config_json)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()

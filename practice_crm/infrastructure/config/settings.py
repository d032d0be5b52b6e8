"""Application settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings."""

    debug_mode: bool = False
    contact_repository: str = "in_memory"  # in_memory or postgres
    database_url: str = ""  # Required when contact_repository=postgres

    # Twilio (SMS)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    twilio_validate_signature: bool = False

    # Resend (email)
    resend_api_key: str = ""
    email_from: str = "Practice <appointments@example.com>"
    admin_email: str = ""

    # Delivery; when disabled messages are only logged
    notifications_enabled: bool = False
    notification_max_attempts: int = 3
    notification_base_delay_seconds: float = 1.0
    notification_timeout_seconds: int = 10

    cron_secret: str = ""
    site_url: str = "http://localhost:8000"
    display_time_zone: str = "America/New_York"

    # Bookable hours, local to display_time_zone
    business_day_start_hour: int = 9
    business_day_end_hour: int = 17
    session_minutes: int = 50

    redis_url: str = "redis://localhost:6379/0"
    sms_idempotency_enabled: bool = True
    sms_idempotency_ttl_seconds: int = 3600

    # Workflow sweep
    missed_appointment_grace_minutes: int = 15
    questionnaire_stale_hours: int = 24
    appointment_list_limit: int = 200  # upper bound for list_appointments

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
    )


settings = Settings()

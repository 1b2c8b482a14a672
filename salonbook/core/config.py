from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT (tokens are issued by the auth service; we only verify them)
    secret_key: str
    access_token_expire_minutes: int = 15
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Comma-separated emails allowed to manage hours, time blocks and bookings
    admin_emails: str = ""

    # Env
    env: str = "development"

    # Scheduling rules
    business_timezone: str = ""  # IANA name; empty uses the server clock
    slot_granularity_minutes: int = 30
    default_open_time: str = "08:00"
    default_close_time: str = "18:00"
    business_cache_ttl_seconds: int = 300

    # Delivery
    delivery_max_attempts: int = 3
    delivery_backoff_base_seconds: float = 2.0  # delay after attempt n is base ** n
    transport_timeout_seconds: float = 30.0
    delivery_claim_ttl_seconds: int = 15 * 60  # a claim older than this is treated as abandoned
    channel_priority: str = "WHATSAPP,SMS,EMAIL"

    # Background jobs
    scheduler_enabled: bool = True
    pending_sweep_interval_seconds: int = 5 * 60
    pending_sweep_batch_size: int = 50
    reminder_interval_seconds: int = 24 * 60 * 60
    reminder_lookahead_days: int = 2
    default_reminder_hours: int = 24

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Salon"

    # Twilio (SMS and WhatsApp)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""
    twilio_whatsapp_from: str = ""
    sms_default_country_code: str = "55"

    # Branding and contact used in message bodies
    site_name: str = "Salon"
    contact_email: str = "contact@example.com"
    contact_phone: str = "(00) 00000-0000"
    contact_address: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def admin_emails_list(self) -> list[str]:
        return [e.strip().lower() for e in self.admin_emails.split(",") if e.strip()]

    @property
    def channel_priority_list(self) -> list[str]:
        return [c.strip().upper() for c in self.channel_priority.split(",") if c.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)

    @property
    def twilio_enabled(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)


settings = Settings()
